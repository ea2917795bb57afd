"""
Meal Rewards - Flask Backend Application
Main entry point
"""
import logging
import os
from pathlib import Path

from flask import Flask, jsonify, request
from dotenv import load_dotenv

# Load environment variables
# Always load `.env` next to this file (if it exists) regardless of the current
# working directory. In production, real environment variables win.
_is_production = os.getenv('FLASK_ENV', 'development') == 'production'
_dotenv_path = Path(__file__).resolve().parent / '.env'
if _dotenv_path.exists():
    load_dotenv(dotenv_path=_dotenv_path, override=(not _is_production))

# Import extensions and routes
from extensions import init_extensions, db
from config.database import SQLALCHEMY_DATABASE_URI, SQLALCHEMY_TRACK_MODIFICATIONS
from config.settings import get_config
from routes import register_blueprints
from services.reward_engine import RewardEligibilityEngine

import models  # noqa: F401  (register tables with SQLAlchemy)


def _configure_logging(app):
    level_name = str(app.config.get('LOG_LEVEL') or 'INFO').upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    app.logger.setLevel(level)


def create_app(config_class=None):
    """Application factory pattern"""
    app = Flask(__name__)

    # Disable strict slashes to prevent 308 redirects
    app.url_map.strict_slashes = False

    # Load configuration
    if config_class is None:
        config_class = get_config()

    app.config.from_object(config_class)
    app.config.setdefault('SQLALCHEMY_DATABASE_URI', SQLALCHEMY_DATABASE_URI)
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = SQLALCHEMY_TRACK_MODIFICATIONS

    _configure_logging(app)

    # Initialize extensions
    init_extensions(app)

    app.extensions['reward_engine'] = RewardEligibilityEngine.from_app(app)

    # Register blueprints
    register_blueprints(app)

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables."""
        db.create_all()
        print("✅ Tables created")

    # Health check endpoint
    @app.route('/api/health', methods=['GET'])
    def health_check():
        return jsonify({
            'success': True,
            'message': f"{app.config['APP_NAME']} is running",
            'version': app.config['APP_VERSION']
        }), 200

    @app.route('/api', methods=['GET'])
    def api_index():
        return jsonify({
            'name': app.config['APP_NAME'],
            'version': app.config['APP_VERSION'],
            'description': 'Meal receipts, free-meal rewards and notifications',
            'endpoints': {
                'meals': '/api/meals',
                'rewards': '/api/rewards',
                'notifications': '/api/notifications',
                'admin': '/api/admin',
            }
        }), 200

    # Error handlers
    @app.errorhandler(400)
    def bad_request(error):
        return jsonify({
            'success': False,
            'message': getattr(error, 'description', None) or 'Bad request'
        }), 400

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'success': False, 'message': 'Resource not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        allowed = getattr(error, 'valid_methods', None)
        allowed_str = f" Allowed: {', '.join(sorted(set(allowed)))}" if allowed else ''
        msg = f"Method not allowed ({request.method} {request.path}).{allowed_str}".strip()
        return jsonify({'success': False, 'message': msg}), 405

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({
            'success': False,
            'message': 'Internal server error'
        }), 500

    return app


# Create application instance
app = create_app()


if __name__ == '__main__':
    # Development server
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('DEBUG', 'False').lower() == 'true'

    print(f"""
    ╔══════════════════════════════════════════════════════════╗
    ║              Meal Rewards - Backend Server               ║
    ╠══════════════════════════════════════════════════════════╣
    ║  Local: http://localhost:{port:<32}║
    ║  Debug mode: {debug!s:<44}║
    ║  API:  /api/*  (health: /api/health)                     ║
    ╚══════════════════════════════════════════════════════════╝
    """)

    app.run(host='0.0.0.0', port=port, debug=debug, use_reloader=False)
