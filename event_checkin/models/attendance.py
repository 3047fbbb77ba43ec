# models/attendance.py
from sqlalchemy import CheckConstraint, Index, UniqueConstraint

from event_checkin.extensions import db
from .base import BaseModel

SCANNER_ID_MAX_LENGTH = 100


class AttendanceRecord(BaseModel):
    __tablename__ = 'attendance_record'

    attendee_id = db.Column(db.String(36), db.ForeignKey('attendee.id'), nullable=False, index=True)
    day = db.Column(db.Integer, nullable=False)
    scanner_id = db.Column(db.String(SCANNER_ID_MAX_LENGTH), nullable=False)
    scanned_at = db.Column(db.DateTime, nullable=False)

    attendee = db.relationship('Attendee', back_populates='attendance_records')

    __table_args__ = (
        # One check-in per attendee per event day. The check-in ledger relies
        # on this constraint rejecting the losing concurrent insert.
        UniqueConstraint('attendee_id', 'day', name='uq_attendance_attendee_day'),
        CheckConstraint('day >= 1', name='ck_attendance_day_positive'),

        # Day listings ordered by scan time
        Index('idx_attendance_day_scanned', 'day', 'scanned_at'),
        Index('idx_attendance_scanner', 'scanner_id'),
    )

    def __repr__(self):
        return f'<AttendanceRecord {self.attendee_id} day {self.day}>'
