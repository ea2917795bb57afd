"""
Reward model - one earned free meal
"""
from sqlalchemy import func

from extensions import db
from services.errors import InvalidRewardTransition
from utils.clock import utcnow


class RewardStatus:
    EARNED = 'Earned'
    REDEEMED = 'Redeemed'
    EXPIRED = 'Expired'

    ALL = (EARNED, REDEEMED, EXPIRED)


REWARD_TYPE_FREE_MEAL = 'FreeMeal'


class Reward(db.Model):
    """A reward issued for one threshold crossing.

    period_start/period_end are the trailing window the reward was computed
    over; period_end is the evaluation time.
    """
    __tablename__ = 'rewards'
    __table_args__ = (
        db.Index('ix_rewards_user_period_end', 'user_id', 'period_end'),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    reward_type = db.Column(db.String(30), nullable=False, default=REWARD_TYPE_FREE_MEAL)
    status = db.Column(db.String(20), nullable=False, default=RewardStatus.EARNED)

    earned_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    redeemed_at = db.Column(db.DateTime, nullable=True)
    period_start = db.Column(db.DateTime, nullable=False)
    period_end = db.Column(db.DateTime, nullable=False)

    def redeem(self, now=None):
        """Earned -> Redeemed."""
        if self.status != RewardStatus.EARNED:
            raise InvalidRewardTransition(self.id, self.status, RewardStatus.REDEEMED)
        self.status = RewardStatus.REDEEMED
        self.redeemed_at = now or utcnow()

    @classmethod
    def count_issued_since(cls, user_id, window_end_after):
        """Rewards of any status whose stored period_end is >= `window_end_after`."""
        count = (
            db.session.query(func.count(cls.id))
            .filter(
                cls.user_id == user_id,
                cls.period_end >= window_end_after,
            )
            .scalar()
        )
        return int(count or 0)

    def to_dict(self, include_user=False):
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'reward_type': self.reward_type,
            'status': self.status,
            'earned_at': self.earned_at.isoformat() if self.earned_at else None,
            'redeemed_at': self.redeemed_at.isoformat() if self.redeemed_at else None,
            'period_start': self.period_start.isoformat() if self.period_start else None,
            'period_end': self.period_end.isoformat() if self.period_end else None,
        }
        if include_user and self.user:
            data['phone'] = self.user.phone
            data['display_name'] = self.user.name
        return data

    def __repr__(self):
        return f'<Reward {self.id} - {self.status}>'
