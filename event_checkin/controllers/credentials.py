# controllers/credentials.py
"""Credential issuance: a fresh signed QR code for a registered attendee."""

import logging

from flask import Blueprint, jsonify

from event_checkin.services import get_qr_code_service
from event_checkin.services.qr_code_service import QRCodeError

credentials_bp = Blueprint('credentials', __name__)

logger = logging.getLogger('credentials')

STATUS_BY_ERROR = {
    QRCodeError.ATTENDEE_NOT_FOUND: 404,
    QRCodeError.DATABASE_ERROR: 503,
    QRCodeError.GENERATION_FAILED: 500,
}


@credentials_bp.route('/<attendee_id>', methods=['POST'])
def issue(attendee_id):
    result = get_qr_code_service().generate_for_attendee(attendee_id)

    if not result['success']:
        logger.warning(f"Credential issue failed for {attendee_id}: {result['error_code']}")
        return jsonify(result), STATUS_BY_ERROR.get(result['error_code'], 500)

    return jsonify(result)
