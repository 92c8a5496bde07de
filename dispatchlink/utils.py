from flask import jsonify
from flask_jwt_extended import get_jwt_identity

from dispatchlink.connections import ConnectionFailure

FAILURE_STATUS_CODES = {
    ConnectionFailure.SELF_CONNECTION: 400,
    ConnectionFailure.NOT_AUTHORIZED: 403,
    ConnectionFailure.NOT_FOUND: 404,
    ConnectionFailure.ALREADY_CONNECTED: 409,
    ConnectionFailure.ALREADY_PENDING: 409,
    ConnectionFailure.INVALID_STATE: 409,
}

FAILURE_MESSAGES = {
    ConnectionFailure.SELF_CONNECTION: 'You cannot connect with yourself.',
    ConnectionFailure.NOT_AUTHORIZED: 'You are not allowed to change this connection.',
    ConnectionFailure.NOT_FOUND: 'Connection not found.',
    ConnectionFailure.ALREADY_CONNECTED: 'You are already connected.',
    ConnectionFailure.ALREADY_PENDING: 'A connection request is already pending.',
    ConnectionFailure.INVALID_STATE: 'This connection request is no longer pending.',
}


def current_user_id():
    """JWT identity of the caller as an integer user id."""
    return int(get_jwt_identity())


def isoformat(value):
    return value.isoformat() if value else None


def failure_response(error):
    return jsonify({'error': error.value, 'message': FAILURE_MESSAGES[error]}), FAILURE_STATUS_CODES[error]


def serialize_connection(connection):
    return {
        'id': connection.id,
        'requester_id': connection.requester_id,
        'recipient_id': connection.recipient_id,
        'status': connection.status,
        'created_at': isoformat(connection.created_at),
        'updated_at': isoformat(connection.updated_at),
    }


def serialize_carrier_reference(reference):
    return {
        'id': reference.id,
        'carrier_name': reference.carrier_name,
        'mc_number': reference.mc_number,
        'verified': reference.verified,
        'agreement_file_name': reference.agreement_file_name,
        'agreement_uploaded_at': isoformat(reference.agreement_uploaded_at),
    }


def clean_text(value):
    """
    Trimmed string form of a JSON scalar. Missing values become ''.

    Integers are accepted since clients often send MC/DOT numbers as JSON
    numbers. Returns None for booleans, floats, objects and arrays.
    """
    if value is None:
        return ''
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return None
    return str(value).strip()
