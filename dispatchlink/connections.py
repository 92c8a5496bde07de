"""
Connection lifecycle between two users.

    none --request--> pending --accept--> accepted
                         |                   |
                         +--reject----+      +--revoke--+
                                      v                 v
                                   rejected  <----------+

A rejected row is terminal but does not block a later request between the
same pair: the partial unique index only covers live rows.
Business outcomes come back as ``ConnectionResult`` values. Database errors
other than the uniqueness race propagate to the caller.
"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError

from dispatchlink import db
from dispatchlink.models import (
    CONNECTION_ACCEPTED,
    CONNECTION_PENDING,
    CONNECTION_REJECTED,
    LIVE_CONNECTION_STATUSES,
    Connection,
    utcnow,
)

STATUS_NONE = 'none'
STATUS_PENDING_SENT = 'pending_sent'
STATUS_PENDING_RECEIVED = 'pending_received'
STATUS_CONNECTED = 'connected'


class ConnectionFailure(str, Enum):
    ALREADY_CONNECTED = 'already_connected'
    ALREADY_PENDING = 'already_pending'
    NOT_AUTHORIZED = 'not_authorized'
    INVALID_STATE = 'invalid_state'
    SELF_CONNECTION = 'self_connection'
    NOT_FOUND = 'not_found'


@dataclass(frozen=True)
class ConnectionResult:
    connection: Optional[Connection] = None
    error: Optional[ConnectionFailure] = None

    @property
    def ok(self):
        return self.error is None

    @classmethod
    def success(cls, connection=None):
        return cls(connection=connection)

    @classmethod
    def failure(cls, error):
        return cls(error=error)


def canonical_pair(user_a, user_b):
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


def perspective_status(connection, viewer_id):
    """Status of ``connection`` as seen by ``viewer_id``."""
    if connection is None or connection.status == CONNECTION_REJECTED:
        return STATUS_NONE
    if connection.status == CONNECTION_ACCEPTED:
        return STATUS_CONNECTED
    if connection.requester_id == viewer_id:
        return STATUS_PENDING_SENT
    return STATUS_PENDING_RECEIVED


class ConnectionStore:
    """SQLAlchemy-backed persistence for connection rows."""

    def __init__(self, session=None):
        self._session = session if session is not None else db.session

    def get_connection(self, connection_id) -> Optional[Connection]:
        return self._session.get(Connection, connection_id)

    def find_connection(self, user_a, user_b) -> Optional[Connection]:
        """Most recent row for the unordered pair, live or not."""
        low, high = canonical_pair(user_a, user_b)
        query = (
            select(Connection)
            .where(Connection.user_low_id == low, Connection.user_high_id == high)
            .order_by(Connection.id.desc())
            .limit(1)
        )
        return self._session.execute(query).scalars().first()

    def find_live_connection(self, user_a, user_b) -> Optional[Connection]:
        low, high = canonical_pair(user_a, user_b)
        query = select(Connection).where(
            Connection.user_low_id == low,
            Connection.user_high_id == high,
            Connection.status.in_(LIVE_CONNECTION_STATUSES),
        )
        return self._session.execute(query).scalars().first()

    def insert_connection(self, requester_id, recipient_id) -> Connection:
        """Insert a pending row. Raises IntegrityError if a live row already exists."""
        low, high = canonical_pair(requester_id, recipient_id)
        now = utcnow()
        connection = Connection(
            requester_id=requester_id,
            recipient_id=recipient_id,
            user_low_id=low,
            user_high_id=high,
            status=CONNECTION_PENDING,
            created_at=now,
            updated_at=now,
        )
        self._session.add(connection)
        try:
            self._session.commit()
        except IntegrityError:
            self._session.rollback()
            raise
        return connection

    def update_connection_status(self, connection_id, status, expected_status) -> Optional[Connection]:
        """
        Compare-and-swap the status of a row.

        Returns the refreshed row, or None when the row was no longer in
        ``expected_status`` (another request got there first).
        """
        statuses = expected_status if isinstance(expected_status, (tuple, list)) else (expected_status,)
        result = self._session.execute(
            update(Connection)
            .where(Connection.id == connection_id, Connection.status.in_(statuses))
            .values(status=status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        self._session.commit()
        if result.rowcount != 1:
            return None
        connection = self.get_connection(connection_id)
        self._session.refresh(connection)
        return connection

    def list_by_status(self, user_id, status) -> List[Connection]:
        query = (
            select(Connection)
            .where(
                or_(Connection.requester_id == user_id, Connection.recipient_id == user_id),
                Connection.status == status,
            )
            .order_by(Connection.updated_at.desc(), Connection.id.desc())
        )
        return list(self._session.execute(query).scalars())

    def list_pending_for_recipient(self, user_id) -> List[Connection]:
        query = (
            select(Connection)
            .where(Connection.recipient_id == user_id, Connection.status == CONNECTION_PENDING)
            .order_by(Connection.created_at.desc(), Connection.id.desc())
        )
        return list(self._session.execute(query).scalars())

    def list_pending_for_requester(self, user_id) -> List[Connection]:
        query = (
            select(Connection)
            .where(Connection.requester_id == user_id, Connection.status == CONNECTION_PENDING)
            .order_by(Connection.created_at.desc(), Connection.id.desc())
        )
        return list(self._session.execute(query).scalars())


class ConnectionLifecycle:
    """Enforces who may move a connection between states."""

    def __init__(self, store=None):
        self.store = store if store is not None else ConnectionStore()

    def request(self, requester_id, recipient_id) -> ConnectionResult:
        if requester_id == recipient_id:
            return ConnectionResult.failure(ConnectionFailure.SELF_CONNECTION)

        existing = self.store.find_live_connection(requester_id, recipient_id)
        if existing is not None:
            return ConnectionResult.failure(self._live_conflict(existing))

        try:
            connection = self.store.insert_connection(requester_id, recipient_id)
        except IntegrityError:
            # Lost a race with a concurrent request for the same pair
            existing = self.store.find_live_connection(requester_id, recipient_id)
            if existing is None:
                raise
            print(f"[DEBUG] Concurrent connection request detected for users {requester_id} and {recipient_id}")
            return ConnectionResult.failure(self._live_conflict(existing))

        print(f"[DEBUG] Connection {connection.id} requested: {requester_id} -> {recipient_id}")
        return ConnectionResult.success(connection)

    def accept(self, connection_id, acting_user_id) -> ConnectionResult:
        connection = self.store.get_connection(connection_id)
        if connection is None:
            return ConnectionResult.failure(ConnectionFailure.NOT_FOUND)
        if acting_user_id != connection.recipient_id:
            return ConnectionResult.failure(ConnectionFailure.NOT_AUTHORIZED)
        if connection.status != CONNECTION_PENDING:
            return ConnectionResult.failure(ConnectionFailure.INVALID_STATE)

        updated = self.store.update_connection_status(connection_id, CONNECTION_ACCEPTED, CONNECTION_PENDING)
        if updated is None:
            return ConnectionResult.failure(ConnectionFailure.INVALID_STATE)

        print(f"[DEBUG] Connection {connection_id} accepted by user {acting_user_id}")
        return ConnectionResult.success(updated)

    def reject(self, connection_id, acting_user_id) -> ConnectionResult:
        connection = self.store.get_connection(connection_id)
        if connection is None:
            return ConnectionResult.failure(ConnectionFailure.NOT_FOUND)
        if not connection.involves(acting_user_id):
            return ConnectionResult.failure(ConnectionFailure.NOT_AUTHORIZED)
        if connection.status != CONNECTION_PENDING:
            return ConnectionResult.failure(ConnectionFailure.INVALID_STATE)

        updated = self.store.update_connection_status(connection_id, CONNECTION_REJECTED, CONNECTION_PENDING)
        if updated is None:
            return ConnectionResult.failure(ConnectionFailure.INVALID_STATE)

        print(f"[DEBUG] Connection {connection_id} rejected by user {acting_user_id}")
        return ConnectionResult.success(updated)

    def revoke(self, acting_user_id, other_user_id) -> ConnectionResult:
        """Disconnect from ``other_user_id``. A no-op when nothing is live."""
        if acting_user_id == other_user_id:
            return ConnectionResult.failure(ConnectionFailure.SELF_CONNECTION)

        connection = self.store.find_live_connection(acting_user_id, other_user_id)
        if connection is None:
            return ConnectionResult.success(None)

        updated = self.store.update_connection_status(
            connection.id, CONNECTION_REJECTED, LIVE_CONNECTION_STATUSES
        )
        if updated is None:
            # Someone else cleared it first; the pair is disconnected either way
            return ConnectionResult.success(None)

        print(f"[DEBUG] Connection {connection.id} revoked by user {acting_user_id}")
        return ConnectionResult.success(updated)

    def query(self, user_id, other_user_id) -> Optional[Connection]:
        return self.store.find_connection(user_id, other_user_id)

    def list_connections(self, user_id) -> List[Connection]:
        return self.store.list_by_status(user_id, CONNECTION_ACCEPTED)

    def pending_requests(self, user_id) -> List[Connection]:
        return self.store.list_pending_for_recipient(user_id)

    def sent_requests(self, user_id) -> List[Connection]:
        return self.store.list_pending_for_requester(user_id)

    @staticmethod
    def _live_conflict(connection):
        if connection.status == CONNECTION_ACCEPTED:
            return ConnectionFailure.ALREADY_CONNECTED
        return ConnectionFailure.ALREADY_PENDING
