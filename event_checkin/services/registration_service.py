# services/registration_service.py
"""
Read access to registered attendees.

Registration intake lives elsewhere; check-in only needs lookups, plus a
plain insert for seeding attendees from the CLI.
"""

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from event_checkin.extensions import db
from event_checkin.models import Attendee
from event_checkin.utils.data_processing import clean_email, clean_text_field

logger = logging.getLogger('registration_service')


class RegistrationService:
    """Attendee directory used by the scan orchestrator."""

    @staticmethod
    def find_attendee_by_id(attendee_id):
        if not attendee_id:
            return None
        return db.session.get(Attendee, attendee_id)

    @staticmethod
    def find_attendee_by_email(email):
        email = clean_email(email)
        if not email:
            return None
        return db.session.query(Attendee).filter_by(email=email).first()

    @staticmethod
    def count_attendees():
        return db.session.query(Attendee).count()

    @staticmethod
    def register_attendee(email, full_name, organization=None, position=None):
        """
        Store a new attendee.

        Args:
            email: Attendee email, normalized to lower case
            full_name: Display name
            organization: Optional organization
            position: Optional job title

        Returns:
            dict: Result with the attendee info or an error code
        """
        email = clean_email(email)
        full_name = clean_text_field(full_name)

        if not email or not full_name:
            return {
                'success': False,
                'message': 'Email and full name are required fields',
                'error_code': 'missing_required_fields'
            }

        if RegistrationService.find_attendee_by_email(email):
            return {
                'success': False,
                'message': f'An attendee with email {email} already exists',
                'error_code': 'duplicate_email'
            }

        attendee = Attendee(
            email=email,
            full_name=full_name,
            organization=clean_text_field(organization) or None,
            position=clean_text_field(position) or None,
        )

        try:
            attendee.save()
        except IntegrityError:
            # Lost a race with a concurrent registration for the same email
            db.session.rollback()
            return {
                'success': False,
                'message': f'An attendee with email {email} already exists',
                'error_code': 'duplicate_email'
            }
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Database error registering {email}: {str(e)}")
            return {
                'success': False,
                'message': 'Database error during registration',
                'error_code': 'database_error'
            }

        logger.info(f"Registered attendee {attendee.id} ({email})")

        return {
            'success': True,
            'message': 'Attendee registered successfully',
            'attendee': attendee.to_identity()
        }
