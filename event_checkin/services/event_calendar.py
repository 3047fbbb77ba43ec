# services/event_calendar.py
"""
Event day calculation.

Maps wall-clock time onto the 1-based day index of the configured event.
Everything here is pure apart from ``EventCalendar``, which binds the
configuration to a clock so callers can ask "which day is it now?".
"""

from datetime import datetime, time, timedelta

ONE_DAY = timedelta(days=1)
INACTIVE_LABEL = 'Event Inactive'


class _Inactive:
    """Sentinel for "no event day is active". Falsy and never equal to a day."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return 'INACTIVE'

    def __reduce__(self):
        return (_Inactive, ())


INACTIVE = _Inactive()


def to_event_local(now, tz=None):
    """
    Express ``now`` as a naive datetime in event-local time.

    Aware datetimes are converted into ``tz`` first; naive ones are assumed to
    be event-local already.
    """
    if now.tzinfo is not None and tz is not None:
        now = now.astimezone(tz)
    return now.replace(tzinfo=None)


def current_day(now, event_start_date, duration_days, tz=None):
    """
    Return the event day for ``now``, or ``INACTIVE``.

    The elapsed time since midnight of the start date is divided by 24h and
    rounded up, so any moment inside day N maps to N.

    Args:
        now: Current time, naive (event-local) or aware
        event_start_date: First day of the event
        duration_days: Number of event days
        tz: Event timezone used to convert aware ``now`` values

    Returns:
        int or INACTIVE
    """
    start = datetime.combine(event_start_date, time.min)
    elapsed = to_event_local(now, tz) - start

    # ceil(elapsed / 1 day) without floating point
    day = -(-elapsed // ONE_DAY)

    if day < 1 or day > duration_days:
        return INACTIVE
    return day


def event_end_date(event_start_date, duration_days):
    """Calendar date of the last event day."""
    return event_start_date + ONE_DAY * (duration_days - 1)


def is_event_day(day, duration_days):
    return day is not INACTIVE and isinstance(day, int) and 1 <= day <= duration_days


def day_label(day):
    """'Day 2' for an active day, 'Event Inactive' otherwise."""
    if day is INACTIVE:
        return INACTIVE_LABEL
    return f'Day {day}'


class EventCalendar:
    """Event calendar bound to the event settings and a clock."""

    def __init__(self, settings, clock=None):
        self.settings = settings
        self._clock = clock or (lambda: datetime.now(settings.timezone))

    def now(self):
        """Current event-local time as a naive datetime."""
        return to_event_local(self._clock(), self.settings.timezone)

    def today(self):
        """Current event day. Evaluated on every call, never cached."""
        return current_day(
            self._clock(),
            self.settings.start_date,
            self.settings.duration_days,
            tz=self.settings.timezone,
        )

    def status(self):
        """Event status summary for scanners and dashboards."""
        day = self.today()
        return {
            'event_name': self.settings.event_name,
            'start_date': self.settings.start_date.isoformat(),
            'end_date': event_end_date(self.settings.start_date, self.settings.duration_days).isoformat(),
            'duration_days': self.settings.duration_days,
            'current_day': day if day is not INACTIVE else None,
            'is_active': day is not INACTIVE,
            'label': day_label(day),
            'now': self.now().isoformat(timespec='seconds'),
        }
