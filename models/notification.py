"""
In-app notifications and SMS broadcast history
"""
from extensions import db
from utils.clock import utcnow


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    message = db.Column(db.String(500), nullable=False)
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'message': self.message,
            'is_read': self.is_read,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Notification {self.id} user={self.user_id}>'


class SmsBroadcast(db.Model):
    """One admin SMS blast; recipient_count is the number actually delivered."""
    __tablename__ = 'sms_broadcasts'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    admin_user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    message = db.Column(db.String(500), nullable=False)
    recipient_count = db.Column(db.Integer, default=0, nullable=False)
    sent_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    admin = db.relationship('User', backref='sms_broadcasts')

    def to_dict(self):
        return {
            'id': self.id,
            'admin_user_id': self.admin_user_id,
            'message': self.message,
            'recipient_count': self.recipient_count,
            'sent_at': self.sent_at.isoformat() if self.sent_at else None,
        }

    def __repr__(self):
        return f'<SmsBroadcast {self.id} ({self.recipient_count})>'
