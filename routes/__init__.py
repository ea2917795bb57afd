"""
API Routes package
"""
from .meals import meals_bp
from .rewards import rewards_bp
from .notifications import notifications_bp
from .admin import admin_bp

__all__ = [
    'meals_bp',
    'rewards_bp',
    'notifications_bp',
    'admin_bp',
]


def register_blueprints(app):
    """Register all API blueprints"""
    app.register_blueprint(meals_bp, url_prefix='/api/meals')
    app.register_blueprint(rewards_bp, url_prefix='/api/rewards')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

    return app
