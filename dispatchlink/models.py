from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Index, UniqueConstraint, text

from dispatchlink import db

USER_ROLES = ('dispatcher', 'carrier', 'broker', 'advertiser')

CONNECTION_PENDING = 'pending'
CONNECTION_ACCEPTED = 'accepted'
CONNECTION_REJECTED = 'rejected'
LIVE_CONNECTION_STATUSES = (CONNECTION_PENDING, CONNECTION_ACCEPTED)


def utcnow():
    return datetime.now(timezone.utc)


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    password_hash = db.Column(db.Text, nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False, default='')
    company_name = db.Column(db.String(255), nullable=False, default='')
    role = db.Column(db.String(20), nullable=False)
    verified = db.Column(db.Boolean, nullable=False, default=False)
    bio = db.Column(db.Text, nullable=True)
    location = db.Column(db.String(255), nullable=True)

    # Dispatcher-only
    years_experience = db.Column(db.Integer, nullable=True)
    specialties = db.Column(db.JSON, nullable=True)
    carrier_scout_subscribed = db.Column(db.Boolean, nullable=True)

    # Carrier / broker authority numbers, canonical MC<digits> / DOT<digits>
    mc_number = db.Column(db.String(32), nullable=True, index=True)
    dot_number = db.Column(db.String(32), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    carrier_references = db.relationship(
        'CarrierReference',
        backref='dispatcher',
        order_by='CarrierReference.id',
        cascade='all, delete-orphan',
    )

    @property
    def display_name(self):
        return f"{self.first_name} {self.last_name}".strip()


class CarrierReference(db.Model):
    __tablename__ = 'carrier_references'

    id = db.Column(db.Integer, primary_key=True)
    dispatcher_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    carrier_name = db.Column(db.String(255), nullable=False)
    mc_number = db.Column(db.String(32), nullable=False)
    # Digits of mc_number; one reference per carrier per dispatcher
    mc_number_digits = db.Column(db.String(32), nullable=False)
    verified = db.Column(db.Boolean, nullable=False, default=False)
    agreement_file_name = db.Column(db.String(255), nullable=True)
    agreement_uploaded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint('dispatcher_id', 'mc_number_digits', name='unique_dispatcher_carrier_number'),
    )


class Connection(db.Model):
    __tablename__ = 'connections'

    id = db.Column(db.Integer, primary_key=True)
    requester_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    recipient_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    # Canonical unordered pair, smaller id first
    user_low_id = db.Column(db.Integer, nullable=False)
    user_high_id = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=CONNECTION_PENDING)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        # At most one live (pending or accepted) connection per unordered pair
        Index(
            'unique_live_connection_pair',
            'user_low_id',
            'user_high_id',
            unique=True,
            sqlite_where=text("status IN ('pending', 'accepted')"),
            postgresql_where=text("status IN ('pending', 'accepted')"),
        ),
        CheckConstraint('requester_id != recipient_id', name='no_self_connection'),
    )

    def other_party(self, user_id):
        return self.recipient_id if self.requester_id == user_id else self.requester_id

    def involves(self, user_id):
        return user_id in (self.requester_id, self.recipient_id)
