import os
from dataclasses import dataclass
from datetime import date, datetime
from urllib.parse import urlparse, urlunparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

load_dotenv()

CREDENTIAL_MODE_SIGNED = 'signed'
CREDENTIAL_MODE_LEGACY_JSON = 'legacy-json'
CREDENTIAL_MODES = (CREDENTIAL_MODE_SIGNED, CREDENTIAL_MODE_LEGACY_JSON)


def _env_flag(name, default='false'):
    return os.environ.get(name, default).lower() == 'true'


def build_database_uri(base_db_uri, timeout):
    """
    Append driver timeouts to a MySQL URI; other URIs are returned unchanged.

    Args:
        base_db_uri: Database URI from the environment
        timeout: Connect/read/write timeout in seconds

    Returns:
        str: Database URI
    """
    if not base_db_uri.startswith('mysql'):
        return base_db_uri

    parsed = urlparse(base_db_uri)
    query_params = {
        'charset': 'utf8mb4',
        'connect_timeout': str(timeout),
        'read_timeout': str(timeout),
        'write_timeout': str(timeout),
    }
    query_string = '&'.join([f"{k}={v}" for k, v in query_params.items()])
    new_query = f"{parsed.query}&{query_string}" if parsed.query else query_string

    return urlunparse((
        parsed.scheme,
        parsed.netloc,
        parsed.path,
        parsed.params,
        new_query,
        parsed.fragment
    ))


def build_engine_options(database_uri, timeout, pool_timeout):
    """
    SQLAlchemy engine options that bound every storage call.

    SQLite gets a busy timeout so concurrent writers wait for the lock instead
    of failing immediately; pooled servers get pool and driver timeouts.
    """
    if database_uri.startswith('sqlite'):
        return {
            "connect_args": {"timeout": timeout},
        }

    options = {
        "pool_recycle": 3600,
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": pool_timeout,
    }
    if database_uri.startswith('mysql'):
        options["connect_args"] = {
            "connect_timeout": timeout,
            "read_timeout": timeout,
            "write_timeout": timeout,
        }
    elif database_uri.startswith('postgresql'):
        options["connect_args"] = {
            "connect_timeout": timeout,
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    return options


class Config:
    """Base configuration class with all settings as static attributes."""

    # Core configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key'
    DEBUG = _env_flag('FLASK_DEBUG')
    VERSION = '1.0.0'

    # Database configuration
    DB_TIMEOUT = int(os.environ.get('DB_TIMEOUT', 10))
    DB_POOL_TIMEOUT = int(os.environ.get('DB_POOL_TIMEOUT', 30))

    base_db_uri = os.environ.get('DATABASE_URL') or 'sqlite:///checkin.db'
    SQLALCHEMY_DATABASE_URI = build_database_uri(base_db_uri, DB_TIMEOUT)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging
    LOG_DIR = os.environ.get('LOG_DIR')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Event
    EVENT_NAME = os.environ.get('EVENT_NAME', 'GHIQS 2025')
    EVENT_START_DATE = os.environ.get('EVENT_START_DATE', '2025-06-25')
    EVENT_DURATION_DAYS = int(os.environ.get('EVENT_DURATION_DAYS', 3))
    EVENT_TIMEZONE = os.environ.get('EVENT_TIMEZONE', 'UTC')

    # Credentials
    CREDENTIAL_SECRET = os.environ.get('CREDENTIAL_SECRET') or 'dev-credential-secret'
    CREDENTIAL_ALGORITHM = os.environ.get('CREDENTIAL_ALGORITHM', 'HS256')
    CREDENTIAL_TTL_DAYS = int(os.environ.get('CREDENTIAL_TTL_DAYS', 30))
    CREDENTIAL_MODE = os.environ.get('CREDENTIAL_MODE', CREDENTIAL_MODE_SIGNED)

    # QR rendering
    QR_BOX_SIZE = 10
    QR_BORDER = 1

    # Scanner
    SCAN_COOLDOWN_SECONDS = float(os.environ.get('SCAN_COOLDOWN_SECONDS', 2.0))

    @classmethod
    def validate(cls):
        """Hook for configurations that must refuse to start when misconfigured."""
        return None


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_ECHO = _env_flag('SQL_DEBUG')


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False

    @classmethod
    def validate(cls):
        missing = [
            name for name in ('SECRET_KEY', 'CREDENTIAL_SECRET', 'DATABASE_URL')
            if not os.environ.get(name)
        ]
        if missing:
            raise ValueError(
                f"{', '.join(missing)} environment variable(s) must be set in production"
            )


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    CREDENTIAL_SECRET = 'test-credential-secret'
    SCAN_COOLDOWN_SECONDS = 0


config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


@dataclass(frozen=True)
class EventSettings:
    """
    Process-wide event configuration.

    Built once when the application starts and handed to every component
    constructor; business logic never reads ``app.config`` directly.
    """

    event_name: str
    start_date: date
    duration_days: int
    timezone: ZoneInfo
    credential_secret: str
    credential_algorithm: str = 'HS256'
    credential_ttl_days: int = 30
    credential_mode: str = CREDENTIAL_MODE_SIGNED
    scan_cooldown_seconds: float = 2.0

    def __post_init__(self):
        if self.duration_days < 1:
            raise ValueError("EVENT_DURATION_DAYS must be at least 1")
        if self.credential_mode not in CREDENTIAL_MODES:
            raise ValueError(
                f"CREDENTIAL_MODE must be one of {', '.join(CREDENTIAL_MODES)}"
            )
        if self.credential_mode == CREDENTIAL_MODE_SIGNED and not self.credential_secret:
            raise ValueError("CREDENTIAL_SECRET is required for signed credentials")
        if self.credential_ttl_days < self.duration_days:
            raise ValueError("CREDENTIAL_TTL_DAYS must cover the whole event")

    @property
    def insecure_credentials(self):
        return self.credential_mode == CREDENTIAL_MODE_LEGACY_JSON

    @classmethod
    def from_config(cls, config):
        """
        Build settings from a Flask config mapping.

        Args:
            config: ``app.config`` or any mapping with the event keys

        Returns:
            EventSettings
        """
        start_date = config['EVENT_START_DATE']
        if isinstance(start_date, str):
            try:
                start_date = datetime.strptime(start_date, '%Y-%m-%d').date()
            except ValueError:
                raise ValueError("EVENT_START_DATE must use the YYYY-MM-DD format")
        elif isinstance(start_date, datetime):
            start_date = start_date.date()

        try:
            timezone = ZoneInfo(config.get('EVENT_TIMEZONE') or 'UTC')
        except ZoneInfoNotFoundError:
            raise ValueError(f"Unknown EVENT_TIMEZONE: {config.get('EVENT_TIMEZONE')}")

        return cls(
            event_name=config['EVENT_NAME'],
            start_date=start_date,
            duration_days=int(config['EVENT_DURATION_DAYS']),
            timezone=timezone,
            credential_secret=config.get('CREDENTIAL_SECRET') or '',
            credential_algorithm=config.get('CREDENTIAL_ALGORITHM', 'HS256'),
            credential_ttl_days=int(config.get('CREDENTIAL_TTL_DAYS', 30)),
            credential_mode=config.get('CREDENTIAL_MODE', CREDENTIAL_MODE_SIGNED),
            scan_cooldown_seconds=float(config.get('SCAN_COOLDOWN_SECONDS', 2.0)),
        )
