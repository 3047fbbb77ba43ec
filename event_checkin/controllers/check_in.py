# controllers/check_in.py
"""
Check-in routes for QR code scanning and attendance lookups.
The browser scanner posts each decoded QR payload to ``/verify``; the other
routes feed the scanner status bar and the attendance dashboard.
"""

import logging

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from event_checkin.models.attendance import SCANNER_ID_MAX_LENGTH
from event_checkin.services import get_calendar, get_event_settings, get_ledger, get_scan_orchestrator
from event_checkin.services.event_calendar import is_event_day
from event_checkin.services.registration_service import RegistrationService
from event_checkin.services.scan_service import ScanStatus

check_in_bp = Blueprint('check_in', __name__)

logger = logging.getLogger('check_in')


def _storage_unavailable():
    return jsonify({
        'success': False,
        'message': 'Attendance storage is temporarily unavailable. Please try again.',
        'error_code': ScanStatus.STORAGE_ERROR,
        'retryable': True
    }), 503


@check_in_bp.route('/verify', methods=['POST'])
def verify():
    """
    Verify a scanned credential and record attendance for the current day.

    Expects ``{"qr_data": "<token>", "scanner_id": "<scanner>"}``; the scanner
    id may also be sent in the ``X-Scanner-Id`` header.
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({
            'success': False,
            'message': 'No data provided',
            'error_code': 'missing_data'
        }), 400

    qr_data = data.get('qr_data')
    scanner_id = data.get('scanner_id') or request.headers.get('X-Scanner-Id')

    if not qr_data or not isinstance(qr_data, str):
        return jsonify({
            'success': False,
            'message': 'QR code data is required',
            'error_code': 'missing_qr_data'
        }), 400

    if not scanner_id or not isinstance(scanner_id, str) or not scanner_id.strip():
        return jsonify({
            'success': False,
            'message': 'Scanner identity is required',
            'error_code': 'missing_scanner_id'
        }), 400

    scanner_id = scanner_id.strip()
    if len(scanner_id) > SCANNER_ID_MAX_LENGTH:
        return jsonify({
            'success': False,
            'message': f'Scanner identity must be at most {SCANNER_ID_MAX_LENGTH} characters',
            'error_code': 'invalid_scanner_id'
        }), 400

    outcome = get_scan_orchestrator().process(qr_data, scanner_id)

    logger.info(f"Scan via {scanner_id}: {outcome.status}")

    result = outcome.to_dict()
    result['ui_status'] = 'success' if outcome.success else 'error'

    if outcome.status == ScanStatus.STORAGE_ERROR:
        return jsonify(result), 503
    return jsonify(result)


@check_in_bp.route('/status')
def status():
    """Current event day for the scanner status bar."""
    return jsonify({'success': True, **get_calendar().status()})


@check_in_bp.route('/attendees/<attendee_id>/history')
def attendee_history(attendee_id):
    """All check-ins recorded for one attendee."""
    try:
        attendee = RegistrationService.find_attendee_by_id(attendee_id)
        if not attendee:
            return jsonify({
                'success': False,
                'message': 'Attendee not found',
                'error_code': 'attendee_not_found'
            }), 404

        records = get_ledger().history(attendee_id)

    except SQLAlchemyError as e:
        logger.error(f"Error loading history for {attendee_id}: {str(e)}")
        return _storage_unavailable()

    return jsonify({
        'success': True,
        'attendee': attendee.to_identity(),
        'records': [record.to_dict() for record in records],
        'total': len(records)
    })


@check_in_bp.route('/days/<int:day>')
def day_attendance(day):
    """Everyone checked in on an event day."""
    if not is_event_day(day, get_event_settings().duration_days):
        return jsonify({
            'success': False,
            'message': f'Day must be between 1 and {get_event_settings().duration_days}',
            'error_code': 'invalid_day'
        }), 400

    try:
        report = get_ledger().records_for_day(day)
    except SQLAlchemyError as e:
        logger.error(f"Error loading attendance for day {day}: {str(e)}")
        return _storage_unavailable()

    return jsonify({'success': True, **report})


@check_in_bp.route('/summary')
def summary():
    """Registration total and check-ins per day."""
    try:
        report = get_ledger().summary()
    except SQLAlchemyError as e:
        logger.error(f"Error building attendance summary: {str(e)}")
        return _storage_unavailable()

    return jsonify({'success': True, **report})
