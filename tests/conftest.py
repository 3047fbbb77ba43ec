from datetime import datetime

import pytest

from event_checkin import create_app
from event_checkin.extensions import db
from event_checkin.services import get_codec, get_event_settings
from event_checkin.services.credential_service import create_snapshot
from event_checkin.services.registration_service import RegistrationService


class FrozenClock:
    """Settable stand-in for ``datetime.now`` used by the event calendar."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def set(self, now):
        self.now = now


@pytest.fixture
def clock():
    # Day 1 of the default 2025-06-25 event
    return FrozenClock(datetime(2025, 6, 25, 10, 0))


@pytest.fixture
def app_config(tmp_path):
    return {
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'checkin.db'}",
        'DB_TIMEOUT': 30,
        'EVENT_NAME': 'GHIQS 2025',
        'EVENT_START_DATE': '2025-06-25',
        'EVENT_DURATION_DAYS': 3,
        'EVENT_TIMEZONE': 'UTC',
        'CREDENTIAL_MODE': 'signed',
    }


@pytest.fixture
def app(app_config, clock):
    app = create_app('testing', test_config=app_config, clock=clock)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def settings(app):
    return get_event_settings()


@pytest.fixture
def codec(app):
    return get_codec()


def _register(email, full_name, organization='Ministry of Health'):
    result = RegistrationService.register_attendee(email, full_name, organization=organization)
    assert result['success'], result
    return RegistrationService.find_attendee_by_id(result['attendee']['id'])


@pytest.fixture
def attendee(app):
    return _register('ada@example.com', 'Ada Lovelace')


@pytest.fixture
def other_attendee(app):
    return _register('grace@example.com', 'Grace Hopper', organization='Navy')


@pytest.fixture
def token(attendee, codec, settings):
    return codec.issue(create_snapshot(attendee, settings.event_name))
