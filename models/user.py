"""
User model (customers and admins)
"""
from extensions import db
from utils.clock import utcnow


ROLE_USER = 'user'
ROLE_ADMIN = 'admin'


class User(db.Model):
    """Phone-identified account.

    Accounts are created by the auth service (OTP login); this API reads them
    and lets admins change display name, role and active flag.
    """
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    phone = db.Column(db.String(20), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(100), nullable=True)
    first_name = db.Column(db.String(50), nullable=True)
    last_name = db.Column(db.String(50), nullable=True)

    # Role: 'user' or 'admin'
    role = db.Column(db.String(20), nullable=False, default=ROLE_USER)

    # Status
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    # Imported phones are unverified until the owner logs in via OTP.
    is_phone_verified = db.Column(db.Boolean, default=True, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    meals = db.relationship('Meal', backref='user', lazy='dynamic')
    rewards = db.relationship('Reward', backref='user', lazy='dynamic')
    notifications = db.relationship('Notification', backref='user', lazy='dynamic')

    @property
    def full_name(self):
        """Get full name"""
        parts = [p for p in (self.first_name, self.last_name) if p and p.strip()]
        return ' '.join(p.strip() for p in parts)

    @property
    def name(self):
        """Preferred display name for UI/messages"""
        if self.display_name and self.display_name.strip():
            return self.display_name.strip()
        return self.full_name or self.phone

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    def to_dict(self):
        """Convert to dictionary"""
        return {
            'id': self.id,
            'phone': self.phone,
            'display_name': self.display_name,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'name': self.name,
            'role': self.role,
            'is_active': self.is_active,
            'is_phone_verified': self.is_phone_verified,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<User {self.phone} ({self.role})>'


class ActivityLog(db.Model):
    """Activity log for audit trail"""
    __tablename__ = 'activity_logs'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    action = db.Column(db.String(100), nullable=False)
    entity_type = db.Column(db.String(50), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)
    details = db.Column(db.JSON, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow)

    # Relationships
    user = db.relationship('User', backref='activity_logs')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'action': self.action,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'details': self.details,
            'ip_address': self.ip_address,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<ActivityLog {self.action}>'
