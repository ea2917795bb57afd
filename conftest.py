"""
Shared pytest fixtures.

Every test gets a fresh app bound to an in-memory SQLite database, a reward
engine wired to a recording SMS gateway, and helpers to mint JWT headers.
"""
import os

# The module-level app in app.py is created on import; keep it off MySQL.
os.environ.setdefault('DATABASE_URL', 'sqlite://')

from datetime import datetime, timedelta

import pytest
from flask_jwt_extended import create_access_token

from app import create_app
from config.settings import TestingConfig
from extensions import db as _db
from models.meal import Meal, MealStatus
from models.user import ROLE_ADMIN, ROLE_USER, User
from services.reward_engine import RewardEligibilityEngine
from services.user_locks import UserLockRegistry
from utils.sms import SmsDispatcher


class FakeSmsGateway:
    """Records every send; answers with `ok` or raises `error`."""

    def __init__(self, ok=True, error=None):
        self.ok = ok
        self.error = error
        self.sent = []

    def send(self, phone, message):
        self.sent.append((phone, message))
        if self.error is not None:
            raise self.error
        return self.ok


class FrozenClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def sms():
    return FakeSmsGateway()


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 6, 15, 12, 0, 0))


def build_engine(sms_gateway, clock=None, **overrides):
    options = {
        'meals_required': 10,
        'window_months': 3,
        'sms_gateway': sms_gateway,
        'sms_dispatcher': SmsDispatcher(mode='sync'),
        'lock_registry': UserLockRegistry(),
    }
    if clock is not None:
        options['clock'] = clock
    options.update(overrides)
    return RewardEligibilityEngine(**options)


@pytest.fixture
def app(sms):
    """Create a test app with fresh tables"""
    app = create_app(TestingConfig)
    app.extensions['reward_engine'] = build_engine(sms)

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Create a test client for the Flask application"""
    with app.test_client() as client:
        yield client


def make_user(phone, role=ROLE_USER, **kwargs):
    user = User(phone=phone, role=role, **kwargs)
    _db.session.add(user)
    _db.session.commit()
    return user


def make_meals(user_id, count, created_at, status=MealStatus.VERIFIED):
    meals = [
        Meal(user_id=user_id, status=status, created_at=created_at)
        for _ in range(count)
    ]
    _db.session.add_all(meals)
    _db.session.commit()
    return meals


def auth_headers_for(user):
    token = create_access_token(identity=str(user.id), additional_claims={'role': user.role})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def customer(app):
    return make_user('9545550101', display_name='Dana')


@pytest.fixture
def admin(app):
    return make_user('9545550199', role=ROLE_ADMIN, display_name='Admin')


@pytest.fixture
def auth_headers(customer):
    return auth_headers_for(customer)


@pytest.fixture
def admin_headers(admin):
    return auth_headers_for(admin)
