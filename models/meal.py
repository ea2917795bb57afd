"""
Meal model - one submitted receipt
"""
from sqlalchemy import func

from extensions import db
from services.errors import InvalidMealTransition
from utils.clock import utcnow


class MealStatus:
    PENDING = 'Pending'
    VERIFIED = 'Verified'
    REJECTED = 'Rejected'

    ALL = (PENDING, VERIFIED, REJECTED)


class Meal(db.Model):
    """A receipt submission awaiting or having passed verification.

    Status moves Pending -> Verified or Pending -> Rejected, never back.
    """
    __tablename__ = 'meals'
    __table_args__ = (
        db.Index('ix_meals_user_status_created', 'user_id', 'status', 'created_at'),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)

    # Reference to the stored receipt image (kept by the upload service).
    receipt_ref = db.Column(db.String(500), nullable=True)

    # Values read off the receipt
    extracted_total = db.Column(db.Numeric(10, 2), nullable=True)
    extracted_date = db.Column(db.String(50), nullable=True)
    extracted_restaurant = db.Column(db.String(200), nullable=True)
    manual_total = db.Column(db.Numeric(10, 2), nullable=True)

    status = db.Column(db.String(20), nullable=False, default=MealStatus.PENDING)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    verified_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_pending(self):
        return self.status == MealStatus.PENDING

    def verify(self, manual_total=None, now=None):
        """Pending -> Verified."""
        if not self.is_pending:
            raise InvalidMealTransition(self.id, self.status, MealStatus.VERIFIED)
        if manual_total is not None:
            self.manual_total = manual_total
        self.status = MealStatus.VERIFIED
        self.verified_at = now or utcnow()
        if self.created_at is None:
            self.created_at = self.verified_at

    def reject(self):
        """Pending -> Rejected."""
        if not self.is_pending:
            raise InvalidMealTransition(self.id, self.status, MealStatus.REJECTED)
        self.status = MealStatus.REJECTED

    @classmethod
    def count_verified_since(cls, user_id, since):
        """Number of verified meals for `user_id` with created_at >= `since`."""
        count = (
            db.session.query(func.count(cls.id))
            .filter(
                cls.user_id == user_id,
                cls.status == MealStatus.VERIFIED,
                cls.created_at >= since,
            )
            .scalar()
        )
        return int(count or 0)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'receipt_ref': self.receipt_ref,
            'extracted_total': float(self.extracted_total) if self.extracted_total is not None else None,
            'extracted_date': self.extracted_date,
            'extracted_restaurant': self.extracted_restaurant,
            'manual_total': float(self.manual_total) if self.manual_total is not None else None,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'verified_at': self.verified_at.isoformat() if self.verified_at else None,
        }

    def __repr__(self):
        return f'<Meal {self.id} ({self.status})>'
