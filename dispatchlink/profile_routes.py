from datetime import datetime, timezone

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from dispatchlink import db
from dispatchlink.connections import ConnectionLifecycle, perspective_status
from dispatchlink.models import CarrierReference, User
from dispatchlink.utils import clean_text, current_user_id, isoformat, serialize_carrier_reference
from dispatchlink.verification import (
    CarrierRef,
    cross_reference_carriers,
    find_duplicate_carrier,
    get_verification_badge_info,
    normalize_carrier_number,
    tier_for_user,
)

profile_bp = Blueprint('profile', __name__)


def registered_carrier_identifiers():
    """MC and DOT numbers of every carrier account on the platform."""
    rows = db.session.execute(
        select(User.mc_number, User.dot_number).where(User.role == 'carrier')
    ).all()
    identifiers = set()
    for mc_number, dot_number in rows:
        if mc_number:
            identifiers.add(mc_number.upper())
        if dot_number:
            identifiers.add(dot_number.upper())
    return identifiers


def refresh_carrier_verification(user):
    """
    Recompute the verified flag on each of the user's carrier references
    against the live carrier registry. Does not commit.
    """
    references = list(user.carrier_references)
    checked = cross_reference_carriers(
        [CarrierRef.from_model(ref) for ref in references],
        registered_carrier_identifiers(),
    )
    changed = 0
    for reference, result in zip(references, checked):
        if reference.verified != result.verified:
            reference.verified = result.verified
            changed += 1
    return changed


def serialize_profile(user, include_private=False):
    user_data = {
        'id': user.id,
        'name': user.display_name,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'company_name': user.company_name,
        'role': user.role,
        'verified': user.verified,
        'bio': user.bio,
        'location': user.location,
        'created_at': isoformat(user.created_at),
    }
    if include_private:
        user_data['email'] = user.email

    if user.role == 'dispatcher':
        tier = tier_for_user(user)
        user_data.update({
            'years_experience': user.years_experience,
            'specialties': user.specialties or [],
            'carrier_scout_subscribed': bool(user.carrier_scout_subscribed),
            'carriers_worked_with': [serialize_carrier_reference(ref) for ref in user.carrier_references],
            'verification_tier': tier,
            'verification_badge': get_verification_badge_info(tier),
        })
    elif user.role in ('carrier', 'broker'):
        user_data.update({'mc_number': user.mc_number, 'dot_number': user.dot_number})

    return user_data


def _parse_years_experience(value):
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool):
        return None
    try:
        years = int(value)
    except (TypeError, ValueError):
        return None
    if years < 0 or str(years) != str(value).strip():
        return None
    return years


def _parse_specialties(value):
    if isinstance(value, str):
        items = value.split(',')
    elif isinstance(value, list):
        items = [str(item) for item in value]
    else:
        return None
    # A set of specialties, kept in the order the user entered them
    return list(dict.fromkeys(item.strip() for item in items if item.strip()))


@profile_bp.route('/view', methods=['GET'])
@jwt_required()
def view_profile():
    user_id = current_user_id()

    try:
        user = db.session.get(User, user_id)
        if not user:
            return jsonify({'message': 'User not found'}), 404

        return jsonify(serialize_profile(user, include_private=True)), 200
    except Exception as e:
        print(f"[ERROR] Failed to fetch profile for user ID {user_id}: {e}")
        return jsonify({'message': 'Failed to fetch profile'}), 500


@profile_bp.route('/update', methods=['PUT'])
@jwt_required()
def update_profile():
    user_id = current_user_id()
    print(f"[DEBUG] Received request to update profile for user_id: {user_id}")
    data = request.get_json(silent=True) or {}

    user = db.session.get(User, user_id)
    if not user:
        return jsonify({'message': 'User not found'}), 404

    for field in ('first_name', 'last_name', 'company_name', 'bio', 'location'):
        if field in data and data[field] is not None:
            value = clean_text(data[field])
            if value is None:
                db.session.rollback()
                return jsonify({'message': f'{field} must be text'}), 400
            setattr(user, field, value)

    if user.role == 'dispatcher':
        if 'years_experience' in data:
            years = _parse_years_experience(data['years_experience'])
            if years is None:
                db.session.rollback()
                return jsonify({'message': 'years_experience must be a non-negative integer'}), 400
            user.years_experience = years
        if 'specialties' in data:
            specialties = _parse_specialties(data['specialties'])
            if specialties is None:
                db.session.rollback()
                return jsonify({'message': 'specialties must be a list or comma separated string'}), 400
            user.specialties = specialties
        if 'carrier_scout_subscribed' in data:
            subscribed = data['carrier_scout_subscribed']
            if not isinstance(subscribed, bool):
                db.session.rollback()
                return jsonify({'message': 'carrier_scout_subscribed must be true or false'}), 400
            user.carrier_scout_subscribed = subscribed

    try:
        db.session.commit()
        return jsonify(serialize_profile(user, include_private=True)), 200
    except Exception as db_error:
        db.session.rollback()
        print(f"[ERROR] Failed to update profile for user ID {user_id}: {db_error}")
        return jsonify({'message': 'Failed to update profile'}), 500


@profile_bp.route('/<int:user_id>', methods=['GET'])
@jwt_required()
def get_user(user_id):
    """
    Fetch another user's public profile, including the verification tier and
    the connection status as seen by the current user.
    """
    viewer_id = current_user_id()

    try:
        user = db.session.get(User, user_id)
        if not user:
            print(f"[DEBUG] User with ID {user_id} not found.")
            return jsonify({'message': 'User not found'}), 404

        user_data = serialize_profile(user)
        if viewer_id != user_id:
            connection = ConnectionLifecycle().query(viewer_id, user_id)
            user_data['connection_status'] = perspective_status(connection, viewer_id)
            user_data['connection_id'] = connection.id if connection is not None else None

        return jsonify(user_data), 200
    except Exception as e:
        print(f"[ERROR] Failed to fetch user details for user ID {user_id}: {e}")
        return jsonify({'message': 'Failed to fetch user details'}), 500


@profile_bp.route('/carriers', methods=['GET'])
@jwt_required()
def list_carrier_references():
    user_id = current_user_id()
    references = db.session.execute(
        select(CarrierReference)
        .where(CarrierReference.dispatcher_id == user_id)
        .order_by(CarrierReference.id)
    ).scalars().all()
    return jsonify([serialize_carrier_reference(ref) for ref in references]), 200


@profile_bp.route('/carriers', methods=['POST'])
@jwt_required()
def add_carrier_reference():
    user_id = current_user_id()
    data = request.get_json(silent=True) or {}
    carrier_name = clean_text(data.get('carrier_name'))
    mc_number = clean_text(data.get('mc_number'))
    agreement_file_name = clean_text(data.get('agreement_file_name'))

    if carrier_name is None or mc_number is None or agreement_file_name is None:
        return jsonify({'message': 'carrier_name, mc_number and agreement_file_name must be text'}), 400
    if not carrier_name or not mc_number:
        return jsonify({'message': 'carrier_name and mc_number are required'}), 400
    if not normalize_carrier_number(mc_number):
        return jsonify({'message': 'mc_number must contain an MC or DOT number'}), 400

    user = db.session.get(User, user_id)
    if not user:
        return jsonify({'message': 'User not found'}), 404
    if user.role != 'dispatcher':
        return jsonify({'message': 'Only dispatchers can list carriers they worked with'}), 403

    duplicate = find_duplicate_carrier(user.carrier_references, mc_number)
    if duplicate is not None:
        return jsonify({
            'error': 'duplicate_carrier',
            'message': f'{duplicate.carrier_name} ({duplicate.mc_number}) is already on your profile',
        }), 409

    reference = CarrierReference(
        carrier_name=carrier_name,
        mc_number=mc_number,
        mc_number_digits=normalize_carrier_number(mc_number),
        verified=False,
        agreement_file_name=agreement_file_name or None,
        agreement_uploaded_at=datetime.now(timezone.utc) if agreement_file_name else None,
    )
    user.carrier_references.append(reference)

    try:
        refresh_carrier_verification(user)
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent add of the same carrier
        db.session.rollback()
        return jsonify({
            'error': 'duplicate_carrier',
            'message': f'{mc_number} is already on your profile',
        }), 409
    except Exception as e:
        db.session.rollback()
        print(f"[ERROR] Failed to add carrier reference for user ID {user_id}: {e}")
        return jsonify({'message': 'Failed to add carrier reference'}), 500

    print(f"[DEBUG] User {user_id} added carrier {reference.mc_number} (verified={reference.verified})")
    return jsonify(serialize_carrier_reference(reference)), 201


@profile_bp.route('/carriers/<int:reference_id>', methods=['DELETE'])
@jwt_required()
def remove_carrier_reference(reference_id):
    user_id = current_user_id()
    reference = db.session.get(CarrierReference, reference_id)
    if not reference or reference.dispatcher_id != user_id:
        return jsonify({'message': 'Carrier reference not found'}), 404

    try:
        db.session.delete(reference)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        print(f"[ERROR] Failed to remove carrier reference {reference_id}: {e}")
        return jsonify({'message': 'Failed to remove carrier reference'}), 500

    return jsonify({'message': 'Carrier reference removed'}), 200


@profile_bp.route('/carriers/verify', methods=['POST'])
@jwt_required()
def verify_carrier_references():
    """Re-check every carrier reference of the current user against registered carriers."""
    user_id = current_user_id()
    user = db.session.get(User, user_id)
    if not user:
        return jsonify({'message': 'User not found'}), 404

    try:
        changed = refresh_carrier_verification(user)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        print(f"[ERROR] Failed to verify carriers for user ID {user_id}: {e}")
        return jsonify({'message': 'Failed to verify carriers'}), 500

    print(f"[DEBUG] Re-verified carriers for user ID {user_id}, {changed} changed")
    tier = tier_for_user(user) if user.role == 'dispatcher' else None
    return jsonify({
        'carriers_worked_with': [serialize_carrier_reference(ref) for ref in user.carrier_references],
        'changed': changed,
        'verification_tier': tier,
    }), 200
