# services/attendance_service.py
"""
Check-in ledger.

Records at most one attendance per attendee per event day. Duplicates are
never detected by reading first: every check-in is a plain INSERT, and the
``uq_attendance_attendee_day`` constraint makes the database reject the
loser of a concurrent race. That rejection is reported as
``already_recorded`` together with the winning record.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from event_checkin.extensions import db
from event_checkin.models import Attendee, AttendanceRecord
from event_checkin.services.event_calendar import INACTIVE, day_label

logger = logging.getLogger('attendance_service')


class CheckInStatus:
    """Check-in ledger result codes."""
    ACCEPTED = 'accepted'
    ALREADY_RECORDED = 'already_recorded'
    EVENT_INACTIVE = 'event_inactive'
    STORAGE_ERROR = 'storage_error'


@dataclass(frozen=True)
class AttendanceEntry:
    """Detached copy of an attendance row, safe to pass between threads."""

    id: str
    attendee_id: str
    day: int
    scanner_id: str
    scanned_at: datetime

    @classmethod
    def from_record(cls, record):
        return cls(
            id=record.id,
            attendee_id=record.attendee_id,
            day=record.day,
            scanner_id=record.scanner_id,
            scanned_at=record.scanned_at,
        )

    def to_dict(self):
        return {
            'id': self.id,
            'attendee_id': self.attendee_id,
            'day': self.day,
            'scanner_id': self.scanner_id,
            'scanned_at': self.scanned_at.isoformat(),
        }


@dataclass(frozen=True)
class CheckInResult:
    status: str
    message: str
    day: object = None
    record: AttendanceEntry = None
    retryable: bool = False

    @property
    def success(self):
        return self.status in (CheckInStatus.ACCEPTED, CheckInStatus.ALREADY_RECORDED)


class CheckInLedger:
    """Authority for attendance records."""

    def __init__(self, calendar):
        self.calendar = calendar

    def check_in(self, attendee_id, day, scanner_id):
        """
        Record that an attendee is present on ``day``.

        Args:
            attendee_id: Attendee ID (UUID)
            day: Event day the caller computed; must still be the current day
            scanner_id: Identity of the scanning device or staff member

        Returns:
            CheckInResult: accepted, already_recorded, event_inactive or
            storage_error
        """
        current = self.calendar.today()
        if current is INACTIVE or day != current:
            logger.info(
                f"Check-in refused for {attendee_id}: requested {day_label(day)}, "
                f"current {day_label(current)}"
            )
            return CheckInResult(
                status=CheckInStatus.EVENT_INACTIVE,
                message='Event is not currently active. Please check the event dates.',
                day=day,
            )

        record = AttendanceRecord(
            attendee_id=attendee_id,
            day=day,
            scanner_id=scanner_id,
            scanned_at=self.calendar.now(),
        )

        try:
            db.session.add(record)
            db.session.flush()
            entry = AttendanceEntry.from_record(record)
            db.session.commit()

        except IntegrityError as e:
            db.session.rollback()
            return self._resolve_conflict(attendee_id, day, e)

        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Storage error recording {attendee_id} for day {day}: {str(e)}")
            return self._storage_error(day)

        logger.info(f"Check-in accepted: {attendee_id} day {day} via {scanner_id}")
        return CheckInResult(
            status=CheckInStatus.ACCEPTED,
            message=f'Attendance marked successfully for Day {day}!',
            day=day,
            record=entry,
        )

    def _resolve_conflict(self, attendee_id, day, error):
        try:
            existing = self._find_record(attendee_id, day)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Storage error loading existing record for {attendee_id}: {str(e)}")
            return self._storage_error(day)

        if existing is None:
            # Integrity failure other than the per-day constraint (unknown attendee)
            logger.error(f"Integrity error recording {attendee_id} for day {day}: {str(error)}")
            return CheckInResult(
                status=CheckInStatus.STORAGE_ERROR,
                message='Attendance record could not be created due to data conflict',
                day=day,
            )

        logger.info(
            f"Duplicate check-in: {attendee_id} already recorded for day {day} "
            f"at {existing.scanned_at:%H:%M:%S} by {existing.scanner_id}"
        )
        return CheckInResult(
            status=CheckInStatus.ALREADY_RECORDED,
            message=(
                f'Attendance already marked for Day {day} '
                f'at {existing.scanned_at:%H:%M}.'
            ),
            day=day,
            record=AttendanceEntry.from_record(existing),
        )

    @staticmethod
    def _storage_error(day):
        return CheckInResult(
            status=CheckInStatus.STORAGE_ERROR,
            message='Attendance storage is temporarily unavailable. Please scan again.',
            day=day,
            retryable=True,
        )

    @staticmethod
    def _find_record(attendee_id, day):
        return (
            db.session.query(AttendanceRecord)
            .filter_by(attendee_id=attendee_id, day=day)
            .first()
        )

    # Reporting

    @staticmethod
    def history(attendee_id):
        """
        All check-ins for an attendee, newest first.

        Returns:
            list[AttendanceEntry]
        """
        records = (
            db.session.query(AttendanceRecord)
            .filter_by(attendee_id=attendee_id)
            .order_by(AttendanceRecord.scanned_at.desc())
            .all()
        )
        return [AttendanceEntry.from_record(record) for record in records]

    @staticmethod
    def records_for_day(day):
        """
        Everyone checked in on ``day``, newest first.

        Returns:
            dict: ``attendees`` list and ``total``
        """
        rows = (
            db.session.query(AttendanceRecord, Attendee)
            .outerjoin(Attendee, AttendanceRecord.attendee_id == Attendee.id)
            .filter(AttendanceRecord.day == day)
            .order_by(AttendanceRecord.scanned_at.desc())
            .all()
        )

        attendees = [
            {
                'attendee_id': record.attendee_id,
                'full_name': attendee.full_name if attendee else 'Unknown',
                'email': attendee.email if attendee else 'Unknown',
                'scanner_id': record.scanner_id,
                'scanned_at': record.scanned_at.isoformat(),
            }
            for record, attendee in rows
        ]

        return {
            'day': day,
            'attendees': attendees,
            'total': len(attendees)
        }

    def summary(self):
        """Per-day check-in counts and registration total."""
        counts = dict(
            db.session.query(AttendanceRecord.day, func.count(AttendanceRecord.id))
            .group_by(AttendanceRecord.day)
            .all()
        )
        duration = self.calendar.settings.duration_days

        return {
            'total_registrations': db.session.query(Attendee).count(),
            'current_day': self.calendar.status()['current_day'],
            'days': [
                {'day': day, 'label': day_label(day), 'checked_in': counts.get(day, 0)}
                for day in range(1, duration + 1)
            ],
            'total_check_ins': sum(counts.values())
        }
