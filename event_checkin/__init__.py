# __init__.py
"""
Event check-in service.

``create_app`` builds the Flask application: configuration, database,
frozen event settings, the check-in and credential blueprints, and the
``flask`` CLI commands used at the registration desk and the scanners.
"""

import os
import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler

from dotenv import load_dotenv
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from event_checkin.config import config_by_name
from event_checkin.extensions import init_extensions, db

LOG_FILE = 'checkin.log'
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

SERVICE_LOGGERS = (
    'check_in',
    'credentials',
    'attendance_service',
    'credential_service',
    'qr_code_service',
    'registration_service',
    'scan_service',
)


def setup_logging(app):
    """
    Send application and service logs to a rotating file and the console.

    Every scan outcome is logged by ``scan_service`` and every ledger write
    by ``attendance_service``, so the file doubles as the check-in audit trail.
    """
    log_dir = app.config.get('LOG_DIR') or os.path.join(app.root_path, 'logs')
    os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(
        '%(asctime)s %(levelname)s %(name)s %(threadName)s : %(message)s'
    )
    level = logging.DEBUG if app.debug else getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO)

    handlers = [
        RotatingFileHandler(
            os.path.join(log_dir, LOG_FILE),
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUPS
        ),
        logging.StreamHandler(),
    ]
    handlers[0].setLevel(logging.INFO)
    handlers[1].setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)

    for name in (app.logger.name,) + SERVICE_LOGGERS:
        target = logging.getLogger(name)
        target.setLevel(level)
        for handler in handlers:
            target.addHandler(handler)

    # Engine chatter drowns out scan outcomes
    engine_logger = logging.getLogger('sqlalchemy.engine')
    engine_logger.setLevel(logging.WARNING)
    engine_logger.propagate = False


def register_blueprints(app):
    from .controllers.check_in import check_in_bp
    from .controllers.credentials import credentials_bp

    app.register_blueprint(check_in_bp, url_prefix='/check-in')
    app.register_blueprint(credentials_bp, url_prefix='/credentials')


def register_error_handlers(app):
    """
    JSON error responses for scanner clients.

    Service failures are normally returned as results; these handlers catch
    whatever escapes a view.
    """
    from .exceptions import CheckInError

    @app.errorhandler(CheckInError)
    def handle_check_in_error(e):
        app.logger.warning(f"Check-in error escaped a view: {e}")
        return jsonify({
            'success': False,
            'message': e.message,
            'error_code': e.error_code
        }), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({
            'success': False,
            'error': e.name,
            'message': e.description
        }), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        app.logger.error(f"Unhandled exception: {str(e)}", exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Check-in service error',
            'message': str(e) if app.debug else 'Internal server error'
        }), 500


def register_shell_context(app):
    """Preload models and services into ``flask shell``."""

    @app.shell_context_processor
    def make_shell_context():
        from .models import Attendee, AttendanceRecord
        from .services import get_calendar, get_codec, get_ledger
        return {
            'db': db,
            'Attendee': Attendee,
            'AttendanceRecord': AttendanceRecord,
            'calendar': get_calendar(),
            'codec': get_codec(),
            'ledger': get_ledger()
        }


def register_health_checks(app):
    """
    ``/health`` for the load balancer, ``/health/database`` for the
    scanner dashboards.
    """

    @app.route('/health')
    def health_check():
        from .services import get_calendar, get_event_settings

        return jsonify({
            'status': 'ok',
            'event': get_calendar().status()['label'],
            'credential_mode': get_event_settings().credential_mode,
            'version': app.config.get('VERSION', '1.0.0'),
            'timestamp': datetime.now().isoformat()
        })

    @app.route('/health/database')
    def database_health_check():
        from .extensions import check_database_health, get_connection_stats

        healthy, message = check_database_health()

        return jsonify({
            'status': 'healthy' if healthy else 'unhealthy',
            'message': message,
            'stats': get_connection_stats(),
            'timestamp': datetime.now().isoformat()
        }), 200 if healthy else 503


def create_app(config_name=None, test_config=None, clock=None):
    """
    Application factory.

    Args:
        config_name (str): 'development', 'production' or 'testing';
            defaults to ``FLASK_ENV``
        test_config (dict): Settings applied over the configuration class
        clock (callable): Replaces ``datetime.now`` for the event calendar

    Returns:
        Flask: Configured application

    Raises:
        ValueError: If the configuration or event settings are invalid
    """
    load_dotenv()

    app = Flask(__name__)

    config_name = config_name or os.environ.get('FLASK_ENV', 'development')
    config_class = config_by_name[config_name]
    config_class.validate()
    app.config.from_object(config_class)
    if test_config:
        app.config.update(test_config)

    if not app.testing:
        setup_logging(app)

    init_extensions(app)

    from .services import init_services
    init_services(app, clock=clock)

    register_blueprints(app)
    register_error_handlers(app)
    register_shell_context(app)
    register_health_checks(app)

    from .cli import register_cli_commands
    register_cli_commands(app)

    app.logger.info(f"Check-in service ready ({config_name})")

    return app
