"""
Application settings and configuration
"""
import os
from datetime import timedelta
from dotenv import load_dotenv

_is_production = os.getenv('FLASK_ENV', 'development') == 'production'
load_dotenv(override=(not _is_production))


def _env_int(name, default):
    raw = (os.getenv(name) or '').strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


class Config:
    """Base configuration"""
    SECRET_KEY = os.getenv('SECRET_KEY', 'meal-rewards-secret-key')
    # Tokens are issued by the auth service; we only verify them.
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'meal-rewards-jwt-secret-key')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=7)

    # CORS Settings
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Reward program
    REWARD_MEALS_REQUIRED = _env_int('REWARD_MEALS_REQUIRED', 10)
    REWARD_WINDOW_MONTHS = _env_int('REWARD_WINDOW_MONTHS', 3)
    REWARD_NOTIFICATION_MESSAGE = os.getenv(
        'REWARD_NOTIFICATION_MESSAGE',
        "🎉 Congratulations! You've completed {meals} meals and earned a FREE meal! "
        "Show this at the restaurant to redeem.",
    )
    REWARD_SMS_MESSAGE = os.getenv(
        'REWARD_SMS_MESSAGE',
        "Congratulations! You've completed {meals} meals in {months} months and qualify "
        "for a FREE meal! Show this message at the restaurant to redeem.",
    )
    REWARD_REDEEMED_MESSAGE = os.getenv(
        'REWARD_REDEEMED_MESSAGE',
        'Your free meal reward has been redeemed! Enjoy your meal!',
    )

    # SMS gateway
    SMS_GATEWAY_URL = os.getenv('SMS_GATEWAY_URL', '')
    SMS_FROM_NUMBER = os.getenv('SMS_FROM_NUMBER', '')
    SMS_TIMEOUT_SECONDS = _env_int('SMS_TIMEOUT_SECONDS', 15)
    SMS_DISPATCH_MODE = os.getenv('SMS_DISPATCH_MODE', 'async')  # async | sync
    SMS_MAX_WORKERS = _env_int('SMS_MAX_WORKERS', 4)
    SMS_BROADCAST_MAX_LENGTH = 160

    # Application Settings
    APP_NAME = 'Meal Rewards API'
    APP_VERSION = '1.0.0'
    DEBUG = False
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_ECHO = True
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG')


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    SQLALCHEMY_ECHO = False


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    JWT_SECRET_KEY = 'meal-rewards-test-jwt-secret'
    SMS_GATEWAY_URL = 'http://sms.test/v2/sms/send'
    SMS_FROM_NUMBER = '5550000000'
    SMS_DISPATCH_MODE = 'sync'


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config():
    """Get configuration based on environment"""
    env = os.getenv('FLASK_ENV', 'development')
    return config.get(env, config['default'])
