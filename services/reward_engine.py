"""Reward eligibility.

Every time a meal becomes Verified the owner's verified meals inside a
trailing window are counted. Each `meals_required` of them is worth one free
meal; if fewer rewards than that have been issued for windows ending inside
the current window, one new reward (plus its notification) is written and a
congratulatory SMS is queued.

At most one reward is issued per call. A caller that verifies several meals
at once must evaluate once per verified meal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.meal import Meal
from models.notification import Notification
from models.reward import REWARD_TYPE_FREE_MEAL, Reward, RewardStatus
from models.user import User
from services.errors import StoreUnavailable
from services.user_locks import UserLockRegistry, default_registry
from utils.clock import subtract_months, utcnow
from utils.sms import SmsDispatcher, SmsGateway

logger = logging.getLogger(__name__)

DEFAULT_MEALS_REQUIRED = 10
DEFAULT_WINDOW_MONTHS = 3
DEFAULT_NOTIFICATION_MESSAGE = (
    "🎉 Congratulations! You've completed {meals} meals and earned a FREE meal! "
    "Show this at the restaurant to redeem."
)
DEFAULT_SMS_MESSAGE = (
    "Congratulations! You've completed {meals} meals in {months} months and qualify "
    "for a FREE meal! Show this message at the restaurant to redeem."
)


@dataclass(frozen=True)
class RewardDecision:
    issued: bool
    reward_id: Optional[int]
    verified_count: int
    deserved: int
    issued_in_window: int
    window_start: datetime
    window_end: datetime

    def to_dict(self):
        return {
            'issued': self.issued,
            'reward_id': self.reward_id,
            'verified_count': self.verified_count,
            'deserved': self.deserved,
            'issued_in_window': self.issued_in_window,
            'window_start': self.window_start.isoformat(),
            'window_end': self.window_end.isoformat(),
        }


class RewardEligibilityEngine:
    def __init__(
        self,
        *,
        meals_required: int = DEFAULT_MEALS_REQUIRED,
        window_months: int = DEFAULT_WINDOW_MONTHS,
        clock: Callable[[], datetime] = utcnow,
        sms_gateway: Optional[SmsGateway] = None,
        sms_dispatcher: Optional[SmsDispatcher] = None,
        lock_registry: Optional[UserLockRegistry] = None,
        notification_message: str = DEFAULT_NOTIFICATION_MESSAGE,
        sms_message: str = DEFAULT_SMS_MESSAGE,
    ):
        if int(meals_required) < 1:
            raise ValueError('meals_required must be at least 1')
        if int(window_months) < 0:
            raise ValueError('window_months must not be negative')

        self.meals_required = int(meals_required)
        self.window_months = int(window_months)
        self.clock = clock
        self.sms_gateway = sms_gateway
        self.sms_dispatcher = sms_dispatcher or SmsDispatcher(mode='sync')
        self.locks = lock_registry or default_registry
        self.notification_message = notification_message
        self.sms_message = sms_message

    @classmethod
    def from_app(cls, app, **overrides) -> 'RewardEligibilityEngine':
        config = app.config
        options = {
            'meals_required': config.get('REWARD_MEALS_REQUIRED', DEFAULT_MEALS_REQUIRED),
            'window_months': config.get('REWARD_WINDOW_MONTHS', DEFAULT_WINDOW_MONTHS),
            'sms_gateway': SmsGateway.from_config(config),
            'sms_dispatcher': SmsDispatcher.from_config(config),
            'notification_message': config.get('REWARD_NOTIFICATION_MESSAGE', DEFAULT_NOTIFICATION_MESSAGE),
            'sms_message': config.get('REWARD_SMS_MESSAGE', DEFAULT_SMS_MESSAGE),
        }
        options.update(overrides)
        return cls(**options)

    def window_for(self, now: datetime) -> tuple[datetime, datetime]:
        return subtract_months(now, self.window_months), now

    def _render(self, template: str) -> str:
        return template.format(meals=self.meals_required, months=self.window_months)

    def evaluate(self, user_id: int, now: Optional[datetime] = None) -> RewardDecision:
        """Issue the next reward for `user_id` if one is due.

        The caller commits the meal's status change first. Any transaction
        still open on the session is committed before the lock is taken.
        Raises StoreUnavailable on any database failure, with nothing written.
        """
        now = now or self.clock()
        window_start, window_end = self.window_for(now)

        # The locked reads must open a fresh snapshot, or a reward committed
        # by the previous lock holder stays invisible under REPEATABLE READ.
        if db.session().in_transaction():
            try:
                db.session.commit()
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error("Could not end open transaction for user %s: %s", user_id, e)
                raise StoreUnavailable(f'Reward evaluation failed: {e}') from e

        with self.locks.hold(user_id):
            try:
                # Row lock serialises evaluations for this user across processes.
                user_row = (
                    db.session.query(User.phone)
                    .filter(User.id == user_id)
                    .with_for_update()
                    .first()
                )

                verified_count = Meal.count_verified_since(user_id, window_start)
                deserved = verified_count // self.meals_required
                issued_in_window = Reward.count_issued_since(user_id, window_start)

                if issued_in_window >= deserved:
                    db.session.commit()
                    return RewardDecision(
                        issued=False,
                        reward_id=None,
                        verified_count=verified_count,
                        deserved=deserved,
                        issued_in_window=issued_in_window,
                        window_start=window_start,
                        window_end=window_end,
                    )

                reward = Reward(
                    user_id=user_id,
                    reward_type=REWARD_TYPE_FREE_MEAL,
                    status=RewardStatus.EARNED,
                    earned_at=now,
                    period_start=window_start,
                    period_end=window_end,
                )
                notification = Notification(
                    user_id=user_id,
                    message=self._render(self.notification_message),
                    is_read=False,
                    created_at=now,
                )
                db.session.add(reward)
                db.session.add(notification)
                db.session.flush()
                reward_id = reward.id
                db.session.commit()
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error("Reward evaluation failed for user %s: %s", user_id, e)
                raise StoreUnavailable(f'Reward evaluation failed: {e}') from e

        logger.info(
            "Reward %s earned by user %s - %s meals in period",
            reward_id, user_id, verified_count,
        )

        phone = user_row.phone if user_row else None
        self._request_sms(user_id, phone)

        return RewardDecision(
            issued=True,
            reward_id=reward_id,
            verified_count=verified_count,
            deserved=deserved,
            issued_in_window=issued_in_window,
            window_start=window_start,
            window_end=window_end,
        )

    def _request_sms(self, user_id: int, phone: Optional[str]) -> None:
        if self.sms_gateway is None:
            return
        if not phone:
            logger.warning("No phone on file for user %s; reward SMS skipped", user_id)
            return
        try:
            self.sms_dispatcher.dispatch(self.sms_gateway.send, phone, self._render(self.sms_message))
        except Exception:
            # The reward is committed; a queueing failure must not undo that.
            logger.exception("Could not queue reward SMS for user %s", user_id)


def get_reward_engine() -> RewardEligibilityEngine:
    """The engine configured for the current Flask app."""
    engine = current_app.extensions.get('reward_engine')
    if engine is None:
        engine = RewardEligibilityEngine.from_app(current_app)
        current_app.extensions['reward_engine'] = engine
    return engine
