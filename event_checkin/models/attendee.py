# models/attendee.py
from sqlalchemy import Index

from event_checkin.extensions import db
from .base import BaseModel


class Attendee(BaseModel):
    """Registered attendee. Written by registration, read by check-in."""

    __tablename__ = 'attendee'

    email = db.Column(db.String(255), unique=True, nullable=False)
    full_name = db.Column(db.String(200), nullable=False)
    organization = db.Column(db.String(200), nullable=True)
    position = db.Column(db.String(120), nullable=True)

    attendance_records = db.relationship(
        'AttendanceRecord',
        back_populates='attendee',
        lazy='dynamic',
        passive_deletes='all',
    )

    __table_args__ = (
        Index('idx_attendee_organization', 'organization'),
    )

    def to_identity(self):
        """Fields the credential snapshot is built from."""
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'organization': self.organization,
            'position': self.position,
        }

    def __repr__(self):
        return f'<Attendee {self.full_name} ({self.email})>'
