# services/qr_code_service.py
"""
QR code rendering for attendee credentials.
Looks up the attendee, issues a fresh credential and renders it as a PNG
image, either inline as a data URL or saved to disk.
"""

import base64
import io
import logging
import os

import qrcode
from sqlalchemy.exc import SQLAlchemyError

from event_checkin.services.credential_service import create_snapshot
from event_checkin.services.registration_service import RegistrationService

logger = logging.getLogger('qr_code_service')


class QRCodeError:
    """QR code service error codes."""
    ATTENDEE_NOT_FOUND = 'attendee_not_found'
    GENERATION_FAILED = 'generation_failed'
    DATABASE_ERROR = 'database_error'


def render_qr_png(data, box_size=10, border=1):
    """
    Render ``data`` as a PNG QR code.

    Args:
        data: Text to encode (a credential token)
        box_size: Pixel size of each module
        border: Quiet-zone width in modules

    Returns:
        bytes: PNG image
    """
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)

    qr_image = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    qr_image.save(buffer, format='PNG')
    return buffer.getvalue()


def to_data_url(png_bytes):
    return 'data:image/png;base64,' + base64.b64encode(png_bytes).decode('ascii')


class QRCodeService:
    """Issues credentials for registered attendees and renders them."""

    def __init__(self, settings, codec, box_size=10, border=1):
        self.settings = settings
        self.codec = codec
        self.box_size = box_size
        self.border = border

    def generate_for_attendee(self, attendee_id):
        """
        Issue a credential for an attendee and render it.

        Args:
            attendee_id: Attendee ID (UUID)

        Returns:
            dict: Result with the token, a PNG data URL and attendee info
        """
        try:
            attendee = RegistrationService.find_attendee_by_id(attendee_id)
        except SQLAlchemyError as e:
            logger.error(f"Database error loading attendee {attendee_id}: {str(e)}")
            return {
                'success': False,
                'message': 'Database error during QR generation',
                'error_code': QRCodeError.DATABASE_ERROR
            }

        if not attendee:
            return {
                'success': False,
                'message': 'Attendee not found',
                'error_code': QRCodeError.ATTENDEE_NOT_FOUND
            }

        snapshot = create_snapshot(attendee, self.settings.event_name)
        token = self.codec.issue(snapshot)

        try:
            png = render_qr_png(token, box_size=self.box_size, border=self.border)
        except (ValueError, OSError) as e:
            logger.error(f"Error rendering QR code for attendee {attendee_id}: {str(e)}")
            return {
                'success': False,
                'message': 'Failed to generate QR code',
                'error_code': QRCodeError.GENERATION_FAILED
            }

        logger.info(f"Generated credential QR code for attendee {attendee_id}")

        return {
            'success': True,
            'message': 'QR code generated successfully',
            'token': token,
            'qr_code': to_data_url(png),
            'signed': not self.codec.insecure,
            'attendee': {
                'id': attendee.id,
                'full_name': attendee.full_name,
                'email': attendee.email
            }
        }

    def save_for_attendee(self, attendee_id, file_path):
        """
        Render an attendee's credential into a PNG file.

        Returns:
            dict: Generation result; ``qr_path`` is set on success
        """
        result = self.generate_for_attendee(attendee_id)
        if not result['success']:
            return result

        png = base64.b64decode(result['qr_code'].split(',', 1)[1])

        directory = os.path.dirname(os.path.abspath(file_path))
        os.makedirs(directory, exist_ok=True)
        with open(file_path, 'wb') as f:
            f.write(png)

        result['qr_path'] = file_path
        return result
