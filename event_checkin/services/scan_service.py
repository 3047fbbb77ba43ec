# services/scan_service.py
"""
Scan orchestration.

Turns a raw QR payload into a check-in: verify the credential, resolve the
live attendee, ask the ledger for the current day's record. Every failure is
converted into a ``ScanOutcome``; nothing escapes as an exception.

The orchestrator also owns the capture device's pause/resume cycle:

    IDLE --scan--> PROCESSING --outcome surfaced--> COOLDOWN --elapsed--> IDLE

The device is paused for the whole cycle so the frame being processed cannot
be submitted a second time. Correctness does not depend on it; the ledger
rejects duplicates on its own.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError

from event_checkin.exceptions import InvalidCredential
from event_checkin.services.attendance_service import CheckInStatus
from event_checkin.services.event_calendar import INACTIVE
from event_checkin.utils.data_processing import emails_match

logger = logging.getLogger('scan_service')

MIN_RESUME_DELAY = 0.01


class ScanStatus(CheckInStatus):
    """Scan outcome codes. Ledger codes are passed through unchanged."""
    REJECTED_INVALID_CREDENTIAL = 'rejected_invalid_credential'
    REJECTED_IDENTITY_MISMATCH = 'rejected_identity_mismatch'
    IGNORED = 'ignored'


class ScannerState(Enum):
    IDLE = 'idle'
    PROCESSING = 'processing'
    COOLDOWN = 'cooldown'


@dataclass(frozen=True)
class ScanOutcome:
    status: str
    message: str
    scanner_id: str = None
    day: object = None
    attendee: dict = None
    record: object = None
    retryable: bool = False

    @property
    def success(self):
        return self.status in (ScanStatus.ACCEPTED, ScanStatus.ALREADY_RECORDED)

    @property
    def already_recorded_at(self):
        if self.status == ScanStatus.ALREADY_RECORDED and self.record is not None:
            return self.record.scanned_at
        return None

    def to_dict(self):
        result = {
            'success': self.success,
            'status': self.status,
            'message': self.message,
            'attendance_recorded': self.status == ScanStatus.ACCEPTED,
            'day': self.day if self.day is not INACTIVE else None,
            'retryable': self.retryable,
        }
        if not self.success:
            result['error_code'] = self.status
        if self.attendee:
            result['attendee'] = self.attendee
        if self.record is not None:
            key = 'existing_attendance' if self.status == ScanStatus.ALREADY_RECORDED else 'attendance'
            result[key] = self.record.to_dict()
        return result


class ScanOrchestrator:
    """Drives decode → resolve → check-in for one scanner."""

    def __init__(self, codec, directory, ledger, calendar, device=None,
                 cooldown_seconds=0.0, on_outcome=None, monotonic=time.monotonic):
        self.codec = codec
        self.directory = directory
        self.ledger = ledger
        self.calendar = calendar
        self.device = device
        self.cooldown_seconds = cooldown_seconds
        self.on_outcome = on_outcome
        self._monotonic = monotonic

        self._lock = threading.Lock()
        self._state = ScannerState.IDLE
        self._cooldown_until = 0.0

    @property
    def state(self):
        with self._lock:
            return self._state

    def process(self, payload, scanner_id):
        """
        Run one payload through the check-in pipeline.

        Stateless; the HTTP endpoint calls this directly because the browser
        does its own debouncing.

        Args:
            payload: Raw string decoded from the QR code
            scanner_id: Identity of the scanner

        Returns:
            ScanOutcome
        """
        try:
            snapshot = self.codec.decode(payload)
        except InvalidCredential as e:
            logger.warning(f"Scanner {scanner_id} read an invalid credential: {e.reason}")
            return ScanOutcome(
                status=ScanStatus.REJECTED_INVALID_CREDENTIAL,
                message='Invalid QR code. Please ensure you are scanning a valid event QR code.',
                scanner_id=scanner_id,
            )

        try:
            attendee = self.directory.find_attendee_by_id(snapshot.attendee_id)
        except SQLAlchemyError as e:
            logger.error(f"Storage error resolving attendee {snapshot.attendee_id}: {str(e)}")
            return ScanOutcome(
                status=ScanStatus.STORAGE_ERROR,
                message='Attendance storage is temporarily unavailable. Please scan again.',
                scanner_id=scanner_id,
                retryable=True,
            )

        if attendee is None:
            logger.warning(f"Credential for unknown attendee {snapshot.attendee_id}")
            return ScanOutcome(
                status=ScanStatus.REJECTED_IDENTITY_MISMATCH,
                message='Registration not found. Please contact event organizers.',
                scanner_id=scanner_id,
            )

        if not emails_match(attendee.email, snapshot.email):
            logger.warning(
                f"Credential email mismatch for attendee {attendee.id}: "
                f"credential {snapshot.email}, registered {attendee.email}"
            )
            return ScanOutcome(
                status=ScanStatus.REJECTED_IDENTITY_MISMATCH,
                message='QR code validation failed. Email mismatch detected.',
                scanner_id=scanner_id,
            )

        day = self.calendar.today()
        result = self.ledger.check_in(attendee.id, day, scanner_id)

        return ScanOutcome(
            status=result.status,
            message=result.message,
            scanner_id=scanner_id,
            day=result.day,
            attendee=attendee.to_identity(),
            record=result.record,
            retryable=result.retryable,
        )

    def on_raw_scan(self, payload, scanner_id):
        """
        Handle a payload delivered by the capture device.

        Payloads arriving while a previous scan is still processing or
        cooling down are ignored.

        Returns:
            ScanOutcome
        """
        with self._lock:
            self._expire_cooldown()
            if self._state is not ScannerState.IDLE:
                logger.debug(f"Scanner {scanner_id} busy ({self._state.value}), payload ignored")
                return ScanOutcome(
                    status=ScanStatus.IGNORED,
                    message='Scanner is busy; payload ignored.',
                    scanner_id=scanner_id,
                )
            self._state = ScannerState.PROCESSING

        if self.device is not None:
            self.device.pause()

        try:
            outcome = self.process(payload, scanner_id)
            self._surface(outcome)
        finally:
            with self._lock:
                self._state = ScannerState.COOLDOWN
                self._cooldown_until = self._monotonic() + self.cooldown_seconds
            self._schedule_resume()

        return outcome

    def _surface(self, outcome):
        if self.on_outcome is None:
            return
        try:
            self.on_outcome(outcome)
        except Exception:
            logger.exception(f"Outcome listener failed for {outcome.status} on {outcome.scanner_id}")

    def resume_if_ready(self):
        """
        Leave COOLDOWN once the cooldown has elapsed and resume the device.

        Returns:
            bool: True if the scanner is idle afterwards
        """
        with self._lock:
            resumed = self._expire_cooldown()
            idle = self._state is ScannerState.IDLE

        if resumed and self.device is not None:
            self.device.resume()
        return idle

    def run(self, scanner_id):
        """Consume payloads from the capture device until it is exhausted."""
        if self.device is None:
            raise RuntimeError("No capture device attached")

        self.device.start()
        logger.info(f"Scanner {scanner_id} started")
        try:
            for payload in self.device.payloads():
                self.on_raw_scan(payload, scanner_id)
        finally:
            self.device.stop()
            logger.info(f"Scanner {scanner_id} stopped")

    def _expire_cooldown(self):
        # Caller holds self._lock
        if self._state is ScannerState.COOLDOWN and self._monotonic() >= self._cooldown_until:
            self._state = ScannerState.IDLE
            return True
        return False

    def _schedule_resume(self):
        if self.cooldown_seconds <= 0:
            self.resume_if_ready()
            return

        self._arm_timer(self.cooldown_seconds)

    def _arm_timer(self, delay):
        timer = threading.Timer(delay, self._resume_when_due)
        timer.daemon = True
        timer.start()

    def _resume_when_due(self):
        if self.resume_if_ready():
            return

        # Timer fired early relative to the monotonic clock; wait out the rest
        with self._lock:
            if self._state is not ScannerState.COOLDOWN:
                return
            remaining = self._cooldown_until - self._monotonic()
        self._arm_timer(max(remaining, MIN_RESUME_DELAY))
