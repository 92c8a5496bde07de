from flask import Blueprint, request, jsonify
from flask_jwt_extended import create_access_token
from sqlalchemy import func, select

from dispatchlink import db, bcrypt
from dispatchlink.models import USER_ROLES, User
from dispatchlink.utils import clean_text
from dispatchlink.verification import format_carrier_identifier

auth_bp = Blueprint('auth', __name__)

TEXT_FIELDS = ('email', 'first_name', 'last_name', 'company_name', 'mc_number', 'dot_number')


@auth_bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    fields = {name: clean_text(data.get(name)) for name in TEXT_FIELDS}
    invalid = sorted(name for name, value in fields.items() if value is None)
    if invalid:
        return jsonify({'message': f'Invalid value for: {", ".join(invalid)}'}), 400

    email = fields['email'].lower()
    password = data.get('password')
    first_name = fields['first_name']
    role = data.get('role')

    if not isinstance(password, str):
        password = None
    if not email or not password or not first_name:
        return jsonify({'message': 'Email, password and first name are required'}), 400
    if '@' not in email:
        return jsonify({'message': 'Invalid email address'}), 400
    if role not in USER_ROLES:
        return jsonify({'message': f'Role must be one of: {", ".join(USER_ROLES)}'}), 400

    # Check if the user already exists
    user_exists = db.session.execute(
        select(User.id).where(func.lower(User.email) == email)
    ).first()

    if user_exists:
        return jsonify({'message': 'User already exists'}), 400

    # Hash the password and insert the new user
    password_hash = bcrypt.generate_password_hash(password).decode('utf-8')
    user = User(
        email=email,
        password_hash=password_hash,
        first_name=first_name,
        last_name=fields['last_name'],
        company_name=fields['company_name'],
        role=role,
    )
    if role == 'dispatcher':
        user.years_experience = 0
        user.specialties = []
        user.carrier_scout_subscribed = False
    elif role in ('carrier', 'broker'):
        user.mc_number = format_carrier_identifier(fields['mc_number'], 'MC')
        user.dot_number = format_carrier_identifier(fields['dot_number'], 'DOT')

    try:
        db.session.add(user)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        print(f"[ERROR] Failed to register user {email}: {e}")
        return jsonify({'message': 'Failed to register user'}), 500

    print(f"[DEBUG] Registered {role} user ID {user.id}")
    return jsonify({'message': 'User registered successfully', 'id': user.id}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    email = clean_text(data.get('email'))
    password = data.get('password')
    if not email or not isinstance(password, str):
        return jsonify({'message': 'Invalid email or password'}), 401
    email = email.lower()

    user = db.session.execute(
        select(User).where(func.lower(User.email) == email)
    ).scalars().first()

    if user and bcrypt.check_password_hash(user.password_hash, password):
        # Generate JWT access token
        access_token = create_access_token(identity=str(user.id))
        return jsonify({'access_token': access_token}), 200

    return jsonify({'message': 'Invalid email or password'}), 401
