# models/__init__.py
from .base import BaseModel
from .attendee import Attendee
from .attendance import AttendanceRecord

__all__ = [
    'BaseModel',
    'Attendee',
    'AttendanceRecord'
]
