from datetime import datetime

from sqlalchemy.exc import OperationalError

from event_checkin.extensions import db
from event_checkin.services.registration_service import RegistrationService


def verify(client, qr_data, scanner_id='gate-1'):
    return client.post('/check-in/verify', json={'qr_data': qr_data, 'scanner_id': scanner_id})


def test_health(client):
    response = client.get('/health')

    assert response.status_code == 200
    assert response.get_json()['status'] == 'ok'
    assert response.get_json()['event'] == 'Day 1'
    assert response.get_json()['credential_mode'] == 'signed'


def test_database_health(client):
    response = client.get('/health/database')

    assert response.status_code == 200
    assert response.get_json()['status'] == 'healthy'


def test_verify_accepts_then_reports_duplicate(client, token, clock):
    first = verify(client, token, 'S1')

    assert first.status_code == 200
    body = first.get_json()
    assert body['status'] == 'accepted'
    assert body['attendance_recorded'] is True
    assert body['ui_status'] == 'success'
    assert body['day'] == 1
    assert body['attendee']['email'] == 'ada@example.com'

    clock.set(datetime(2025, 6, 25, 10, 0, 1))
    second = verify(client, token, 'S2')

    assert second.status_code == 200
    body = second.get_json()
    assert body['status'] == 'already_recorded'
    assert body['attendance_recorded'] is False
    assert body['message'] == 'Attendance already marked for Day 1 at 10:00.'
    assert body['existing_attendance']['scanner_id'] == 'S1'


def test_verify_scanner_id_from_header(client, token):
    response = client.post(
        '/check-in/verify',
        json={'qr_data': token},
        headers={'X-Scanner-Id': 'kiosk-3'},
    )

    assert response.status_code == 200
    assert response.get_json()['attendance']['scanner_id'] == 'kiosk-3'


def test_verify_rejects_bad_requests(client, token):
    assert client.post('/check-in/verify', data='nope').get_json()['error_code'] == 'missing_data'

    missing_qr = client.post('/check-in/verify', json={'scanner_id': 'gate-1'})
    assert missing_qr.status_code == 400
    assert missing_qr.get_json()['error_code'] == 'missing_qr_data'

    missing_scanner = client.post('/check-in/verify', json={'qr_data': token})
    assert missing_scanner.status_code == 400
    assert missing_scanner.get_json()['error_code'] == 'missing_scanner_id'


def test_verify_invalid_credential(client, app):
    response = verify(client, '{"attendee_id": "x", "email": "x@example.com", "full_name": "X"}')

    assert response.status_code == 200
    body = response.get_json()
    assert body['success'] is False
    assert body['error_code'] == 'rejected_invalid_credential'
    assert body['ui_status'] == 'error'


def test_verify_after_attendee_deleted(client, token, attendee):
    db.session.delete(attendee)
    db.session.commit()

    body = verify(client, token).get_json()

    assert body['error_code'] == 'rejected_identity_mismatch'
    assert body['message'] == 'Registration not found. Please contact event organizers.'


def test_verify_outside_event(client, token, clock):
    clock.set(datetime(2025, 7, 1, 9, 0))

    body = verify(client, token).get_json()

    assert body['status'] == 'event_inactive'
    assert body['day'] is None


def test_verify_storage_failure_returns_503(client, token, monkeypatch):
    def failing_commit():
        raise OperationalError('INSERT INTO attendance_record', {}, Exception('database is locked'))

    monkeypatch.setattr(db.session, 'commit', failing_commit)

    response = verify(client, token)

    assert response.status_code == 503
    body = response.get_json()
    assert body['status'] == 'storage_error'
    assert body['retryable'] is True


def test_status(client, clock):
    clock.set(datetime(2025, 6, 27, 15, 0))

    body = client.get('/check-in/status').get_json()

    assert body['current_day'] == 3
    assert body['label'] == 'Day 3'
    assert body['start_date'] == '2025-06-25'
    assert body['end_date'] == '2025-06-27'


def test_history_and_day_listing(client, token, attendee):
    verify(client, token)

    history = client.get(f'/check-in/attendees/{attendee.id}/history').get_json()
    assert history['total'] == 1
    assert history['records'][0]['day'] == 1

    day = client.get('/check-in/days/1').get_json()
    assert day['total'] == 1
    assert day['attendees'][0]['full_name'] == 'Ada Lovelace'

    assert client.get('/check-in/attendees/unknown/history').status_code == 404
    assert client.get('/check-in/days/4').status_code == 400
    assert client.get('/check-in/days/0').status_code == 400


def test_summary(client, token, other_attendee):
    verify(client, token)

    body = client.get('/check-in/summary').get_json()

    assert body['total_registrations'] == 2
    assert body['total_check_ins'] == 1
    assert body['days'][0]['checked_in'] == 1


def test_issue_credential_endpoint(client, attendee, codec):
    response = client.post(f'/credentials/{attendee.id}')

    assert response.status_code == 200
    body = response.get_json()
    assert codec.decode(body['token']).attendee_id == attendee.id

    assert verify(client, body['token']).get_json()['status'] == 'accepted'


def test_issue_credential_unknown_attendee(client, app):
    response = client.post('/credentials/missing')

    assert response.status_code == 404
    assert response.get_json()['error_code'] == 'attendee_not_found'


def test_unknown_route_returns_json(client):
    response = client.get('/nowhere')

    assert response.status_code == 404
    assert response.get_json()['success'] is False


def test_register_rejects_duplicate_email(app, attendee):
    result = RegistrationService.register_attendee(' ADA@example.com ', 'Someone Else')

    assert result['success'] is False
    assert result['error_code'] == 'duplicate_email'
    assert RegistrationService.count_attendees() == 1


def test_verify_rejects_overlong_scanner_id(client, token, attendee):
    response = verify(client, token, 'g' * 101)

    assert response.status_code == 400
    assert response.get_json()['error_code'] == 'invalid_scanner_id'

    accepted = verify(client, token, 'g' * 100)
    assert accepted.get_json()['status'] == 'accepted'
    assert accepted.get_json()['attendance']['scanner_id'] == 'g' * 100
