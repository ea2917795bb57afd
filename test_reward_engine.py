"""
Reward eligibility tests

Run with: pytest test_reward_engine.py -v
"""
import threading
from contextlib import contextmanager
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app import create_app
from conftest import FakeSmsGateway, build_engine, make_meals, make_user
from config.settings import TestingConfig
from extensions import db
from models.meal import MealStatus
from models.notification import Notification
from models.reward import Reward, RewardStatus
from services.errors import StoreUnavailable
from services.user_locks import UserLockRegistry
from utils.clock import subtract_months


@pytest.fixture
def user(app):
    return make_user('9545550123')


@pytest.fixture
def engine(sms, clock):
    return build_engine(sms, clock)


def _rewards(user_id):
    return Reward.query.filter_by(user_id=user_id).order_by(Reward.id).all()


def _notifications(user_id):
    return Notification.query.filter_by(user_id=user_id).all()


class TestThreshold:
    """Threshold crossings"""

    def test_nine_meals_issue_nothing(self, engine, user, clock, sms):
        make_meals(user.id, 9, clock() - timedelta(days=1))

        decision = engine.evaluate(user.id)

        assert decision.issued is False
        assert decision.reward_id is None
        assert decision.verified_count == 9
        assert decision.deserved == 0
        assert _rewards(user.id) == []
        assert _notifications(user.id) == []
        assert sms.sent == []

    def test_tenth_meal_issues_one_reward(self, engine, user, clock, sms):
        make_meals(user.id, 10, clock() - timedelta(days=1))

        decision = engine.evaluate(user.id)

        assert decision.issued is True
        rewards = _rewards(user.id)
        assert len(rewards) == 1
        reward = rewards[0]
        assert reward.id == decision.reward_id
        assert reward.status == RewardStatus.EARNED
        assert reward.earned_at == clock()
        assert reward.period_end == clock()
        assert reward.period_start == subtract_months(clock(), 3)
        assert reward.redeemed_at is None

        notifications = _notifications(user.id)
        assert len(notifications) == 1
        assert 'FREE meal' in notifications[0].message
        assert notifications[0].is_read is False

        assert len(sms.sent) == 1
        assert sms.sent[0][0] == '9545550123'
        assert '10 meals in 3 months' in sms.sent[0][1]

    def test_rejected_and_pending_meals_do_not_count(self, engine, user, clock):
        make_meals(user.id, 9, clock() - timedelta(days=2))
        make_meals(user.id, 3, clock() - timedelta(days=2), status=MealStatus.PENDING)
        make_meals(user.id, 3, clock() - timedelta(days=2), status=MealStatus.REJECTED)

        assert engine.evaluate(user.id).issued is False

    def test_other_users_meals_do_not_count(self, engine, user, clock):
        other = make_user('9545550124')
        make_meals(other.id, 10, clock() - timedelta(days=1))
        make_meals(user.id, 5, clock() - timedelta(days=1))

        assert engine.evaluate(user.id).issued is False
        assert engine.evaluate(other.id).issued is True

    def test_floor_division(self, engine, user, clock):
        make_meals(user.id, 23, clock() - timedelta(days=1))

        decision = engine.evaluate(user.id)

        assert decision.deserved == 2


class TestDeduplication:
    """At most one reward per crossing"""

    def test_second_call_is_a_no_op(self, engine, user, clock, sms):
        make_meals(user.id, 10, clock() - timedelta(days=1))

        first = engine.evaluate(user.id)
        second = engine.evaluate(user.id)

        assert first.issued is True
        assert second.issued is False
        assert second.issued_in_window == 1
        assert len(_rewards(user.id)) == 1
        assert len(_notifications(user.id)) == 1
        assert len(sms.sent) == 1

    def test_second_crossing_issues_one_more(self, engine, user, clock):
        make_meals(user.id, 10, clock() - timedelta(days=20))
        db.session.add(Reward(
            user_id=user.id,
            status=RewardStatus.EARNED,
            earned_at=clock() - timedelta(days=10),
            period_start=subtract_months(clock() - timedelta(days=10), 3),
            period_end=clock() - timedelta(days=10),
        ))
        db.session.commit()
        make_meals(user.id, 10, clock() - timedelta(days=1))

        decision = engine.evaluate(user.id)

        assert decision.issued is True
        assert decision.deserved == 2
        assert decision.issued_in_window == 1
        assert len(_rewards(user.id)) == 2

    def test_one_reward_per_call_even_when_more_are_due(self, engine, user, clock):
        make_meals(user.id, 23, clock() - timedelta(days=1))

        assert engine.evaluate(user.id).issued is True
        assert len(_rewards(user.id)) == 1
        assert engine.evaluate(user.id).issued is True
        assert len(_rewards(user.id)) == 2
        assert engine.evaluate(user.id).issued is False
        assert len(_rewards(user.id)) == 2

    def test_redeemed_rewards_still_count_as_issued(self, engine, user, clock):
        make_meals(user.id, 10, clock() - timedelta(days=1))
        engine.evaluate(user.id)

        reward = _rewards(user.id)[0]
        reward.redeem(now=clock())
        db.session.commit()

        assert engine.evaluate(user.id).issued is False

    def test_threshold_change_does_not_duplicate_issued_rewards(self, sms, clock, user):
        make_meals(user.id, 10, clock() - timedelta(days=1))
        assert build_engine(sms, clock, meals_required=10).evaluate(user.id).issued is True

        stricter = build_engine(sms, clock, meals_required=20)
        assert stricter.evaluate(user.id).issued is False
        assert len(_rewards(user.id)) == 1

        looser = build_engine(sms, clock, meals_required=5)
        assert looser.evaluate(user.id).issued is True
        assert looser.evaluate(user.id).issued is False
        assert len(_rewards(user.id)) == 2


class TestTrailingWindow:
    """Window bounds"""

    def test_meal_at_window_start_counts(self, engine, user, clock):
        window_start = subtract_months(clock(), 3)
        make_meals(user.id, 9, clock() - timedelta(days=1))
        make_meals(user.id, 1, window_start)

        decision = engine.evaluate(user.id)

        assert decision.window_start == window_start
        assert decision.verified_count == 10
        assert decision.issued is True

    def test_meal_just_before_window_start_does_not_count(self, engine, user, clock):
        window_start = subtract_months(clock(), 3)
        make_meals(user.id, 9, clock() - timedelta(days=1))
        make_meals(user.id, 1, window_start - timedelta(microseconds=1))

        decision = engine.evaluate(user.id)

        assert decision.verified_count == 9
        assert decision.issued is False

    def test_window_moves_with_now(self, engine, user, clock):
        make_meals(user.id, 10, clock() - timedelta(days=80))
        clock.advance(days=15)

        decision = engine.evaluate(user.id)

        assert decision.verified_count == 0
        assert decision.issued is False

    def test_rewards_from_an_expired_window_are_not_counted(self, engine, user, clock):
        make_meals(user.id, 10, clock() - timedelta(days=1))
        assert engine.evaluate(user.id).issued is True

        clock.advance(days=120)
        make_meals(user.id, 10, clock() - timedelta(days=1))

        decision = engine.evaluate(user.id)
        assert decision.issued_in_window == 0
        assert decision.issued is True
        assert len(_rewards(user.id)) == 2

    def test_open_read_transaction_is_ended_before_locking(self, sms, clock, user):
        seen = []

        class Locks(UserLockRegistry):
            @contextmanager
            def hold(self, user_id):
                seen.append(db.session().in_transaction())
                with super().hold(user_id):
                    yield

        engine = build_engine(sms, clock, lock_registry=Locks())
        make_meals(user.id, 10, clock() - timedelta(days=1))
        Reward.query.count()
        assert db.session().in_transaction() is True

        assert engine.evaluate(user.id).issued is True
        assert seen == [False]

    def test_explicit_now_overrides_clock(self, engine, user, clock):
        make_meals(user.id, 10, clock() - timedelta(days=1))
        later = clock() + timedelta(hours=1)

        decision = engine.evaluate(user.id, now=later)

        assert decision.window_end == later
        assert _rewards(user.id)[0].period_end == later


class TestFailures:
    """Store and SMS failures"""

    def test_sms_failure_keeps_reward(self, user, clock):
        failing = FakeSmsGateway(ok=False)
        engine = build_engine(failing, clock)
        make_meals(user.id, 10, clock() - timedelta(days=1))

        decision = engine.evaluate(user.id)

        assert decision.issued is True
        assert len(failing.sent) == 1
        assert len(_rewards(user.id)) == 1
        assert len(_notifications(user.id)) == 1

    def test_sms_exception_is_swallowed(self, user, clock):
        exploding = FakeSmsGateway(error=RuntimeError('gateway down'))
        engine = build_engine(exploding, clock)
        make_meals(user.id, 10, clock() - timedelta(days=1))

        decision = engine.evaluate(user.id)

        assert decision.issued is True
        assert len(_rewards(user.id)) == 1

    def test_unknown_user_is_a_no_op(self, app, engine, clock, sms):
        decision = engine.evaluate(424242)

        assert decision.issued is False
        assert sms.sent == []

    def test_store_failure_writes_nothing(self, engine, user, clock, sms, monkeypatch):
        make_meals(user.id, 10, clock() - timedelta(days=1))

        def broken_flush(*args, **kwargs):
            raise OperationalError('INSERT INTO rewards', {}, Exception('database unavailable'))

        monkeypatch.setattr(db.session, 'flush', broken_flush)

        with pytest.raises(StoreUnavailable):
            engine.evaluate(user.id)

        monkeypatch.undo()
        assert _rewards(user.id) == []
        assert _notifications(user.id) == []
        assert sms.sent == []

    def test_invalid_configuration(self, sms):
        with pytest.raises(ValueError):
            build_engine(sms, meals_required=0)
        with pytest.raises(ValueError):
            build_engine(sms, window_months=-1)


class TestConcurrency:
    """Simultaneous evaluations for one user"""

    @pytest.fixture
    def file_app(self, tmp_path):
        # One connection per thread, unlike the shared in-memory database.
        class Config(TestingConfig):
            SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'rewards.db'}"

        app = create_app(Config)
        with app.app_context():
            db.create_all()
        yield app
        with app.app_context():
            db.session.remove()
            db.drop_all()
            db.engine.dispose()

    def test_simultaneous_evaluations_issue_one_reward(self, file_app, clock):
        sms = FakeSmsGateway()
        engine = build_engine(sms, clock)

        with file_app.app_context():
            user_id = make_user('9545550150').id
            make_meals(user_id, 10, clock() - timedelta(days=1))

        workers = 8
        barrier = threading.Barrier(workers)
        decisions = []
        errors = []

        def evaluate():
            with file_app.app_context():
                barrier.wait()
                try:
                    decisions.append(engine.evaluate(user_id))
                except Exception as e:
                    errors.append(e)

        threads = [threading.Thread(target=evaluate) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert errors == []
        assert sum(1 for d in decisions if d.issued) == 1
        with file_app.app_context():
            assert Reward.query.filter_by(user_id=user_id).count() == 1
            assert Notification.query.filter_by(user_id=user_id).count() == 1
        assert len(sms.sent) == 1
