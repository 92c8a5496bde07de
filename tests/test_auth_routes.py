from dispatchlink import db
from dispatchlink.models import User


def _register(client, **overrides):
    payload = {
        'email': 'Dispatch@Example.com',
        'password': 'hanoihue',
        'first_name': 'Dana',
        'last_name': 'Ruiz',
        'company_name': 'Ruiz Dispatch',
        'role': 'dispatcher',
    }
    payload.update(overrides)
    return client.post('/auth/register', json=payload)


def test_register_and_login(client):
    response = _register(client)
    assert response.status_code == 201

    user = db.session.get(User, response.get_json()['id'])
    assert user.email == 'dispatch@example.com'
    assert user.years_experience == 0
    assert user.carrier_scout_subscribed is False

    login = client.post('/auth/login', json={'email': 'dispatch@example.com', 'password': 'hanoihue'})
    assert login.status_code == 200
    assert login.get_json()['access_token']


def test_register_rejects_duplicates_and_bad_roles(client):
    assert _register(client).status_code == 201
    assert _register(client, email='dispatch@example.com').status_code == 400
    assert _register(client, email='other@example.com', role='admin').status_code == 400
    assert _register(client, email='', password='').status_code == 400


def test_carrier_registration_stores_canonical_numbers(client):
    response = _register(client, email='carrier@example.com', role='carrier', mc_number='123456', dot_number='2233541')
    assert response.status_code == 201

    user = db.session.get(User, response.get_json()['id'])
    assert user.mc_number == 'MC123456'
    assert user.dot_number == 'DOT2233541'


def test_login_with_wrong_password(client):
    _register(client)
    response = client.post('/auth/login', json={'email': 'dispatch@example.com', 'password': 'nope'})
    assert response.status_code == 401


def test_protected_route_requires_token(client):
    assert client.get('/profile/view').status_code == 401


def test_carrier_registration_accepts_numeric_numbers(client):
    response = _register(client, email='carrier@example.com', role='carrier', mc_number=123456, dot_number=2233541)
    assert response.status_code == 201

    user = db.session.get(User, response.get_json()['id'])
    assert user.mc_number == 'MC123456'
    assert user.dot_number == 'DOT2233541'


def test_register_rejects_non_text_fields(client):
    assert _register(client, email=123).status_code == 400
    assert _register(client, first_name=['Dana']).status_code == 400
    assert _register(client, password=12345678).status_code == 400
    assert _register(client, role='carrier', mc_number={'mc': 1}).status_code == 400
    assert db.session.query(User).count() == 0


def test_login_rejects_non_text_credentials(client):
    _register(client)
    assert client.post('/auth/login', json={'email': 42, 'password': 'hanoihue'}).status_code == 401
    assert client.post('/auth/login', json={'email': 'dispatch@example.com', 'password': 42}).status_code == 401
