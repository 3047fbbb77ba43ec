"""
Database extensions.

``db`` and ``migrate`` are created unbound and attached in the application
factory so models and services can import them without a Flask app.
"""

import logging
import threading
import time

from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from event_checkin.config import build_engine_options

db = SQLAlchemy()
migrate = Migrate()

logger = logging.getLogger(__name__)

# Results of /health/database probes, shared across worker threads
connection_stats = {
    'total_checks': 0,
    'failed_checks': 0,
    'last_check': 0,
    'healthy': True
}
connection_lock = threading.Lock()


def _record_probe(healthy):
    with connection_lock:
        connection_stats['total_checks'] += 1
        if not healthy:
            connection_stats['failed_checks'] += 1
        connection_stats['healthy'] = healthy
        connection_stats['last_check'] = time.time()


def get_connection_stats():
    with connection_lock:
        return dict(connection_stats)


def check_database_health():
    """
    Run ``SELECT 1`` against the attendance database.

    Must be called inside an application context.

    Returns:
        tuple: (healthy, message)
    """
    try:
        with db.engine.connect() as connection:
            connection.execute(text("SELECT 1")).scalar()
    except SQLAlchemyError as e:
        logger.error(f"Database probe failed: {e}")
        _record_probe(False)
        return False, f"Database unreachable: {str(e)}"

    _record_probe(True)
    return True, "Database reachable"


def init_extensions(app):
    """
    Bind the database extensions to ``app``.

    Engine options are derived from the final database URI so a test
    override of ``SQLALCHEMY_DATABASE_URI`` still gets the right timeouts.
    """
    app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', build_engine_options(
        app.config['SQLALCHEMY_DATABASE_URI'],
        timeout=app.config.get('DB_TIMEOUT', 10),
        pool_timeout=app.config.get('DB_POOL_TIMEOUT', 30),
    ))

    db.init_app(app)
    migrate.init_app(app, db)

    app.logger.info(
        f"Attendance database: {app.config['SQLALCHEMY_DATABASE_URI'].split('://')[0]} "
        f"(timeout {app.config.get('DB_TIMEOUT', 10)}s)"
    )
