# models/base.py
from datetime import datetime
import uuid

from event_checkin.extensions import db


def new_id():
    return str(uuid.uuid4())


class BaseModel(db.Model):
    """UUID primary key and audit timestamps shared by attendees and attendance rows."""

    __abstract__ = True

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    def save(self):
        """Insert or update this row and commit."""
        db.session.add(self)
        db.session.commit()
        return self
