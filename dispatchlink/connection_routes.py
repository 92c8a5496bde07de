from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy import select

from dispatchlink import db
from dispatchlink.connections import ConnectionLifecycle, perspective_status
from dispatchlink.models import User
from dispatchlink.utils import current_user_id, failure_response, serialize_connection

connection_bp = Blueprint('connection', __name__)


def _users_by_id(user_ids):
    if not user_ids:
        return {}
    users = db.session.execute(select(User).where(User.id.in_(set(user_ids)))).scalars()
    return {user.id: user for user in users}


def _summarize_user(user):
    if user is None:
        return None
    return {
        'id': user.id,
        'name': user.display_name,
        'company_name': user.company_name,
        'role': user.role,
        'verified': user.verified,
    }


def _with_parties(connections, viewer_id):
    users = _users_by_id([c.requester_id for c in connections] + [c.recipient_id for c in connections])
    data = []
    for connection in connections:
        item = serialize_connection(connection)
        item['requester'] = _summarize_user(users.get(connection.requester_id))
        item['recipient'] = _summarize_user(users.get(connection.recipient_id))
        item['other_user'] = _summarize_user(users.get(connection.other_party(viewer_id)))
        data.append(item)
    return data


# send a connection request to another user
@connection_bp.route('/request/<int:target_user_id>', methods=['POST'])
@jwt_required()
def request_connection(target_user_id):
    user_id = current_user_id()

    try:
        if db.session.get(User, target_user_id) is None:
            return jsonify({'message': 'Target user not found'}), 404

        result = ConnectionLifecycle().request(user_id, target_user_id)
        if not result.ok:
            print(f"[DEBUG] Connection request {user_id} -> {target_user_id} refused: {result.error.value}")
            return failure_response(result.error)

        return jsonify(serialize_connection(result.connection)), 201
    except Exception as e:
        db.session.rollback()
        print(f"[ERROR] Failed to request connection from user {user_id} to user {target_user_id}: {e}")
        return jsonify({'message': 'Failed to send connection request'}), 500


@connection_bp.route('/<int:connection_id>/accept', methods=['POST'])
@jwt_required()
def accept_connection(connection_id):
    user_id = current_user_id()

    try:
        result = ConnectionLifecycle().accept(connection_id, user_id)
        if not result.ok:
            return failure_response(result.error)
        return jsonify(serialize_connection(result.connection)), 200
    except Exception as e:
        db.session.rollback()
        print(f"[ERROR] Failed to accept connection {connection_id}: {e}")
        return jsonify({'message': 'Failed to accept connection'}), 500


@connection_bp.route('/<int:connection_id>/reject', methods=['POST'])
@jwt_required()
def reject_connection(connection_id):
    """
    Reject an incoming request, or cancel one the current user sent.
    """
    user_id = current_user_id()

    try:
        result = ConnectionLifecycle().reject(connection_id, user_id)
        if not result.ok:
            return failure_response(result.error)
        return jsonify(serialize_connection(result.connection)), 200
    except Exception as e:
        db.session.rollback()
        print(f"[ERROR] Failed to reject connection {connection_id}: {e}")
        return jsonify({'message': 'Failed to reject connection'}), 500


@connection_bp.route('/revoke/<int:target_user_id>', methods=['POST'])
@jwt_required()
def revoke_connection(target_user_id):
    """
    Disconnect from a user. Succeeds even when there is nothing to disconnect.
    """
    user_id = current_user_id()

    try:
        result = ConnectionLifecycle().revoke(user_id, target_user_id)
        if not result.ok:
            return failure_response(result.error)
        if result.connection is None:
            return jsonify({'message': 'Not connected', 'connection': None}), 200
        return jsonify({'message': 'Disconnected', 'connection': serialize_connection(result.connection)}), 200
    except Exception as e:
        db.session.rollback()
        print(f"[ERROR] Failed to revoke connection between user {user_id} and user {target_user_id}: {e}")
        return jsonify({'message': 'Failed to disconnect'}), 500


@connection_bp.route('/status/<int:target_user_id>', methods=['GET'])
@jwt_required()
def connection_status(target_user_id):
    user_id = current_user_id()

    try:
        connection = ConnectionLifecycle().query(user_id, target_user_id)
        return jsonify({
            'status': perspective_status(connection, user_id),
            'connection': serialize_connection(connection) if connection is not None else None,
        }), 200
    except Exception as e:
        print(f"[ERROR] Failed to fetch connection status for users {user_id} and {target_user_id}: {e}")
        return jsonify({'message': 'Failed to fetch connection status'}), 500


@connection_bp.route('', methods=['GET'])
@jwt_required()
def list_connections():
    """
    Fetch all accepted connections of the current user.
    """
    user_id = current_user_id()

    try:
        connections = ConnectionLifecycle().list_connections(user_id)
        print(f"[DEBUG] Retrieved {len(connections)} connections for user ID {user_id}.")
        return jsonify(_with_parties(connections, user_id)), 200
    except Exception as e:
        print(f"[ERROR] Failed to fetch connections for user ID {user_id}: {e}")
        return jsonify({'message': 'Failed to fetch connections'}), 500


@connection_bp.route('/pending', methods=['GET'])
@jwt_required()
def pending_requests():
    user_id = current_user_id()

    try:
        connections = ConnectionLifecycle().pending_requests(user_id)
        return jsonify(_with_parties(connections, user_id)), 200
    except Exception as e:
        print(f"[ERROR] Failed to fetch pending requests for user ID {user_id}: {e}")
        return jsonify({'message': 'Failed to fetch pending requests'}), 500


@connection_bp.route('/sent', methods=['GET'])
@jwt_required()
def sent_requests():
    user_id = current_user_id()

    try:
        connections = ConnectionLifecycle().sent_requests(user_id)
        return jsonify(_with_parties(connections, user_id)), 200
    except Exception as e:
        print(f"[ERROR] Failed to fetch sent requests for user ID {user_id}: {e}")
        return jsonify({'message': 'Failed to fetch sent requests'}), 500
