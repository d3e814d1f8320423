"""
ChapterHub Rewards Engine
Flask application factory
"""
import os
import logging
from flask import Flask
from flask_cors import CORS

from .extensions import db, migrate
from .config import get_config, validate_config
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()
    validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Configure CORS - allow the admin frontend origins
    cors_origins = [
        origin.strip()
        for origin in os.getenv('CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173').split(',')
        if origin.strip()
    ]
    CORS(app, origins=cors_origins, supports_credentials=True, allow_headers=['Content-Type', 'Authorization', 'X-Staff-Email'])

    # Register blueprints
    register_blueprints(app)

    # Register CLI commands
    from .commands import init_app as init_commands
    init_commands(app)

    # Background scheduler for nightly recalculation
    from .utils.scheduler import init_scheduler
    init_scheduler(app)

    # Register error handlers
    register_error_handlers(app)

    # Health check endpoint
    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'chapterhub'}

    logger.info(f'ChapterHub app created ({config_name})')
    return app


def register_blueprints(app: Flask) -> None:
    """Register all API blueprints."""
    from .api.points import points_bp
    from .api.points_rules import points_rules_bp
    from .api.gamification import gamification_bp
    from .api.incentives import incentives_bp

    # Points ledger (balances, history, leaderboard)
    app.register_blueprint(points_bp, url_prefix='/api/points')

    # Points rules (admin, dry runs, execution)
    app.register_blueprint(points_rules_bp, url_prefix='/api/points-rules')

    # Gamification (awards, milestones, progress)
    app.register_blueprint(gamification_bp, url_prefix='/api/gamification')

    # Incentive programs (standards, submissions, stars)
    app.register_blueprint(incentives_bp, url_prefix='/api/incentives')


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""
    from .utils.errors import domain_error_response, error_response, ErrorCode
    from .utils.exceptions import ChapterHubError

    @app.errorhandler(ChapterHubError)
    def domain_error(error):
        db.session.rollback()
        return domain_error_response(error)

    @app.errorhandler(400)
    def bad_request(error):
        return error_response('Bad request', ErrorCode.INVALID_REQUEST, 400, log_error=False)

    @app.errorhandler(404)
    def not_found(error):
        return error_response('Not found', ErrorCode.NOT_FOUND, 404, log_error=False)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return error_response('Internal server error', ErrorCode.INTERNAL_ERROR, 500)
