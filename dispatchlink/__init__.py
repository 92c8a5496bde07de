from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_jwt_extended import JWTManager

# Initialize extensions
db = SQLAlchemy()
bcrypt = Bcrypt()
jwt = JWTManager()


def create_app(config_object='dispatchlink.config.Config'):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize extensions
    db.init_app(app)
    bcrypt.init_app(app)
    jwt.init_app(app)

    # Create tables if they don't exist
    with app.app_context():
        create_tables()

    # Import and register Blueprints
    from dispatchlink.auth_routes import auth_bp
    from dispatchlink.profile_routes import profile_bp
    from dispatchlink.connection_routes import connection_bp

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(profile_bp, url_prefix='/profile')
    app.register_blueprint(connection_bp, url_prefix='/connections')

    return app


def create_tables():
    # Models must be imported so their tables are registered on the metadata
    from dispatchlink import models  # noqa: F401

    db.create_all()
