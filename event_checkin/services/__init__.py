# services/__init__.py
"""
Service wiring.

``init_services`` freezes the event settings once at startup; the getters
build request-scoped service objects from them.
"""

from flask import current_app

from event_checkin.config import EventSettings
from event_checkin.services.attendance_service import CheckInLedger
from event_checkin.services.credential_service import CredentialCodec
from event_checkin.services.event_calendar import EventCalendar, event_end_date
from event_checkin.services.qr_code_service import QRCodeService
from event_checkin.services.registration_service import RegistrationService
from event_checkin.services.scan_service import ScanOrchestrator


def init_services(app, clock=None):
    """
    Freeze event settings for the process lifetime.

    Args:
        app: Flask application instance
        clock: Optional callable returning the current datetime
    """
    settings = EventSettings.from_config(app.config)
    app.extensions['event_settings'] = settings
    app.extensions['event_clock'] = clock
    app.extensions['credential_codec'] = CredentialCodec(settings)

    end_date = event_end_date(settings.start_date, settings.duration_days)
    app.logger.info(
        f"Event '{settings.event_name}' {settings.start_date} - {end_date} "
        f"({settings.duration_days} days, {settings.timezone.key}), "
        f"credential mode {settings.credential_mode}"
    )
    return settings


def get_event_settings():
    return current_app.extensions['event_settings']


def get_calendar():
    return EventCalendar(get_event_settings(), clock=current_app.extensions.get('event_clock'))


def get_codec():
    return current_app.extensions['credential_codec']


def get_ledger():
    return CheckInLedger(get_calendar())


def get_qr_code_service():
    return QRCodeService(
        get_event_settings(),
        get_codec(),
        box_size=current_app.config.get('QR_BOX_SIZE', 10),
        border=current_app.config.get('QR_BORDER', 1),
    )


def get_scan_orchestrator(device=None, on_outcome=None):
    calendar = get_calendar()
    return ScanOrchestrator(
        codec=get_codec(),
        directory=RegistrationService,
        ledger=CheckInLedger(calendar),
        calendar=calendar,
        device=device,
        cooldown_seconds=get_event_settings().scan_cooldown_seconds,
        on_outcome=on_outcome,
    )
