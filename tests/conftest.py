import pytest

from dispatchlink import bcrypt, create_app, db
from dispatchlink.models import User

PASSWORD = "hanoihue-Secret1"


@pytest.fixture()
def app():
    app = create_app('dispatchlink.config.TestConfig')
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user(app):
    counter = {'n': 0}

    def _make_user(role='dispatcher', **fields):
        counter['n'] += 1
        user = User(
            email=fields.pop('email', f"{role}{counter['n']}@example.com"),
            password_hash=bcrypt.generate_password_hash(PASSWORD).decode('utf-8'),
            first_name=fields.pop('first_name', role.title()),
            last_name=fields.pop('last_name', str(counter['n'])),
            company_name=fields.pop('company_name', f"{role.title()} Co {counter['n']}"),
            role=role,
            **fields,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture()
def auth_headers(client):
    def _auth_headers(user):
        response = client.post('/auth/login', json={'email': user.email, 'password': PASSWORD})
        assert response.status_code == 200
        return {'Authorization': f"Bearer {response.get_json()['access_token']}"}

    return _auth_headers
