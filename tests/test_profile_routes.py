import pytest
from sqlalchemy.exc import IntegrityError

from dispatchlink import db
from dispatchlink.models import CarrierReference
from dispatchlink.verification import BEGINNER, CARRIERSCOUT_VERIFIED, EXPERIENCE_VERIFIED, UNVERIFIED


def test_new_dispatcher_profile_is_beginner(client, make_user, auth_headers):
    dispatcher = make_user('dispatcher')
    response = client.get('/profile/view', headers=auth_headers(dispatcher))

    assert response.status_code == 200
    data = response.get_json()
    assert data['verification_tier'] == BEGINNER
    assert data['verification_badge']['label'] == 'New Dispatcher'
    assert data['carriers_worked_with'] == []


def test_tier_follows_profile_edits(client, make_user, auth_headers):
    dispatcher = make_user('dispatcher', years_experience=0, carrier_scout_subscribed=False)
    headers = auth_headers(dispatcher)

    response = client.put('/profile/update', json={'years_experience': 4}, headers=headers)
    assert response.status_code == 200
    assert response.get_json()['verification_tier'] == UNVERIFIED

    response = client.post(
        '/profile/carriers', json={'carrier_name': 'Unknown Freight', 'mc_number': 'MC555555'}, headers=headers
    )
    assert response.status_code == 201
    assert response.get_json()['verified'] is False

    response = client.get('/profile/view', headers=headers)
    assert response.get_json()['verification_tier'] == EXPERIENCE_VERIFIED


def test_update_validates_years_experience(client, make_user, auth_headers):
    headers = auth_headers(make_user('dispatcher'))
    assert client.put('/profile/update', json={'years_experience': -1}, headers=headers).status_code == 400
    assert client.put('/profile/update', json={'years_experience': 'ten'}, headers=headers).status_code == 400
    assert client.put('/profile/update', json={'years_experience': True}, headers=headers).status_code == 400
    assert client.put('/profile/update', json={'years_experience': '3'}, headers=headers).status_code == 200


def test_update_requires_boolean_subscription(client, make_user, auth_headers):
    make_user('carrier', mc_number='MC987654')
    dispatcher = make_user('dispatcher', years_experience=0, carrier_scout_subscribed=True)
    headers = auth_headers(dispatcher)
    client.post('/profile/carriers', json={'carrier_name': 'Verified Carrier LLC', 'mc_number': 'MC987654'}, headers=headers)

    response = client.put('/profile/update', json={'carrier_scout_subscribed': 'false'}, headers=headers)
    assert response.status_code == 400
    response = client.get('/profile/view', headers=headers)
    assert response.get_json()['carrier_scout_subscribed'] is True
    assert response.get_json()['verification_tier'] == CARRIERSCOUT_VERIFIED

    response = client.put('/profile/update', json={'carrier_scout_subscribed': False}, headers=headers)
    assert response.status_code == 200
    assert response.get_json()['verification_tier'] == BEGINNER


def test_update_rejects_non_text_fields(client, make_user, auth_headers):
    headers = auth_headers(make_user('dispatcher', bio='Reefer loads'))
    response = client.put('/profile/update', json={'bio': {'text': 'x'}}, headers=headers)
    assert response.status_code == 400
    assert client.get('/profile/view', headers=headers).get_json()['bio'] == 'Reefer loads'


def test_specialties_are_deduplicated(client, make_user, auth_headers):
    headers = auth_headers(make_user('dispatcher'))
    response = client.put('/profile/update', json={'specialties': 'Reefer, Flatbed,Reefer'}, headers=headers)
    assert response.get_json()['specialties'] == ['Reefer', 'Flatbed']


def test_registered_carrier_verifies_reference(client, make_user, auth_headers):
    make_user('carrier', mc_number='MC987654', dot_number='DOT2233541')
    dispatcher = make_user('dispatcher', years_experience=0, carrier_scout_subscribed=True)
    headers = auth_headers(dispatcher)

    response = client.post(
        '/profile/carriers', json={'carrier_name': 'Verified Carrier LLC', 'mc_number': 'mc987654'}, headers=headers
    )
    assert response.status_code == 201
    assert response.get_json()['verified'] is True

    response = client.get('/profile/view', headers=headers)
    assert response.get_json()['verification_tier'] == CARRIERSCOUT_VERIFIED


def test_duplicate_carrier_is_rejected_by_normalized_number(client, make_user, auth_headers):
    headers = auth_headers(make_user('dispatcher'))
    payload = {'carrier_name': 'Heartland Express', 'mc_number': 'MC734219'}
    assert client.post('/profile/carriers', json=payload, headers=headers).status_code == 201

    response = client.post(
        '/profile/carriers', json={'carrier_name': 'Heartland', 'mc_number': 'MC-734219'}, headers=headers
    )
    assert response.status_code == 409
    assert response.get_json()['error'] == 'duplicate_carrier'


def test_only_dispatchers_list_carriers(client, make_user, auth_headers):
    headers = auth_headers(make_user('broker'))
    response = client.post('/profile/carriers', json={'carrier_name': 'X', 'mc_number': 'MC1'}, headers=headers)
    assert response.status_code == 403


def test_carrier_reference_requires_digits(client, make_user, auth_headers):
    headers = auth_headers(make_user('dispatcher'))
    response = client.post('/profile/carriers', json={'carrier_name': 'X', 'mc_number': 'MC'}, headers=headers)
    assert response.status_code == 400


def test_verify_rechecks_after_carrier_registers(client, make_user, auth_headers):
    dispatcher = make_user('dispatcher', years_experience=1)
    headers = auth_headers(dispatcher)
    client.post('/profile/carriers', json={'carrier_name': 'Late Joiner', 'mc_number': 'MC443322'}, headers=headers)

    make_user('carrier', mc_number='MC443322')
    response = client.post('/profile/carriers/verify', headers=headers)

    assert response.status_code == 200
    data = response.get_json()
    assert data['changed'] == 1
    assert data['carriers_worked_with'][0]['verified'] is True


def test_remove_carrier_reference(client, make_user, auth_headers):
    owner = make_user('dispatcher')
    other = make_user('dispatcher')
    headers = auth_headers(owner)
    reference_id = client.post(
        '/profile/carriers', json={'carrier_name': 'X', 'mc_number': 'MC1'}, headers=headers
    ).get_json()['id']

    assert client.delete(f'/profile/carriers/{reference_id}', headers=auth_headers(other)).status_code == 404
    assert client.delete(f'/profile/carriers/{reference_id}', headers=headers).status_code == 200
    assert client.get('/profile/carriers', headers=headers).get_json() == []


def test_public_profile_shows_connection_status(client, make_user, auth_headers):
    alice = make_user('dispatcher')
    bob = make_user('carrier', mc_number='MC1')
    alice_headers = auth_headers(alice)

    response = client.get(f'/profile/{bob.id}', headers=alice_headers)
    assert response.status_code == 200
    data = response.get_json()
    assert data['connection_status'] == 'none'
    assert data['mc_number'] == 'MC1'
    assert 'email' not in data

    client.post(f'/connections/request/{bob.id}', headers=alice_headers)
    response = client.get(f'/profile/{alice.id}', headers=auth_headers(bob))
    assert response.get_json()['connection_status'] == 'pending_received'

    assert client.get('/profile/9999', headers=alice_headers).status_code == 404


def test_carrier_reference_accepts_numeric_mc_number(client, make_user, auth_headers):
    headers = auth_headers(make_user('dispatcher'))
    response = client.post('/profile/carriers', json={'carrier_name': 'X', 'mc_number': 123456}, headers=headers)
    assert response.status_code == 201
    assert response.get_json()['mc_number'] == '123456'

    response = client.post('/profile/carriers', json={'carrier_name': 'Y', 'mc_number': 'MC123456'}, headers=headers)
    assert response.status_code == 409


def test_carrier_reference_rejects_non_text_values(client, make_user, auth_headers):
    headers = auth_headers(make_user('dispatcher'))
    for payload in (
        {'carrier_name': ['X'], 'mc_number': 'MC1'},
        {'carrier_name': 'X', 'mc_number': {'mc': 1}},
        {'carrier_name': 'X', 'mc_number': True},
        {'carrier_name': 'X', 'mc_number': 'MC1', 'agreement_file_name': 42.5},
    ):
        assert client.post('/profile/carriers', json=payload, headers=headers).status_code == 400
    assert client.get('/profile/carriers', headers=headers).get_json() == []


def test_carrier_number_is_unique_per_dispatcher_in_the_database(make_user):
    dispatcher = make_user('dispatcher')
    other = make_user('dispatcher')
    db.session.add(CarrierReference(dispatcher_id=dispatcher.id, carrier_name='A', mc_number='MC1', mc_number_digits='1'))
    db.session.add(CarrierReference(dispatcher_id=other.id, carrier_name='A', mc_number='MC1', mc_number_digits='1'))
    db.session.commit()

    db.session.add(CarrierReference(dispatcher_id=dispatcher.id, carrier_name='B', mc_number='1', mc_number_digits='1'))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()
