import base64
import json
import logging
import time
from datetime import date
from zoneinfo import ZoneInfo

import jwt
import pytest

from event_checkin.config import EventSettings
from event_checkin.exceptions import InvalidCredential
from event_checkin.services import get_qr_code_service
from event_checkin.services.credential_service import CredentialCodec, IdentitySnapshot
from event_checkin.services.qr_code_service import QRCodeError, render_qr_png

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'


def make_settings(**overrides):
    values = dict(
        event_name='GHIQS 2025',
        start_date=date(2025, 6, 25),
        duration_days=3,
        timezone=ZoneInfo('UTC'),
        credential_secret='unit-test-secret',
    )
    values.update(overrides)
    return EventSettings(**values)


@pytest.fixture
def snapshot():
    return IdentitySnapshot(
        attendee_id='0b6c1a52-4c8e-4f4e-9f43-8f0d3c1f2a11',
        email='ada@example.com',
        full_name='Ada Lovelace',
        event_id='GHIQS 2025',
        issued_at=1750838400,
    )


@pytest.fixture
def signed_codec():
    return CredentialCodec(make_settings())


def _b64(data):
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b'=').decode()


def test_issue_then_decode_returns_snapshot(signed_codec, snapshot):
    token = signed_codec.issue(snapshot)

    assert token.count('.') == 2
    assert signed_codec.decode(token) == snapshot
    assert signed_codec.decode(token.encode('utf-8')) == snapshot
    assert signed_codec.decode(f'  {token}\n') == snapshot

    claims = jwt.decode(token, options={'verify_signature': False})
    assert claims['exp'] - claims['iat'] == 30 * 24 * 3600


def test_altered_signature_is_rejected(signed_codec, snapshot):
    token = signed_codec.issue(snapshot)
    head, signature = token.rsplit('.', 1)

    # The final character can carry only padding bits, so leave it alone
    for index in range(len(signature) - 1):
        replacement = 'A' if signature[index] != 'A' else 'B'
        forged = f"{head}.{signature[:index]}{replacement}{signature[index + 1:]}"
        with pytest.raises(InvalidCredential):
            signed_codec.decode(forged)


def test_altered_payload_is_rejected(signed_codec, snapshot):
    token = signed_codec.issue(snapshot)
    header, payload, signature = token.split('.')

    claims = json.loads(base64.urlsafe_b64decode(payload + '=' * (-len(payload) % 4)))
    claims['attendee_id'] = 'someone-else'
    forged = f"{header}.{_b64(claims)}.{signature}"

    with pytest.raises(InvalidCredential):
        signed_codec.decode(forged)


def test_token_from_another_secret_is_rejected(snapshot):
    foreign = CredentialCodec(make_settings(credential_secret='another-secret'))

    with pytest.raises(InvalidCredential) as excinfo:
        CredentialCodec(make_settings()).decode(foreign.issue(snapshot))

    assert excinfo.value.reason == 'signature verification failed'


def test_unsigned_token_is_rejected(signed_codec, snapshot):
    claims = dict(snapshot.to_claims(), exp=int(time.time()) + 3600)
    unsigned = f"{_b64({'alg': 'none', 'typ': 'JWT'})}.{_b64(claims)}."

    with pytest.raises(InvalidCredential):
        signed_codec.decode(unsigned)


def test_expired_token_is_rejected(snapshot):
    settings = make_settings()
    issued_long_ago = CredentialCodec(settings, clock=lambda: time.time() - 31 * 24 * 3600)
    token = issued_long_ago.issue(snapshot)

    with pytest.raises(InvalidCredential) as excinfo:
        CredentialCodec(settings).decode(token)

    assert excinfo.value.reason == 'credential has expired'


@pytest.mark.parametrize("payload", [
    '',
    '   ',
    'not-a-token',
    '{"attendee_id": "x"}',
    b'\xff\xfe',
])
def test_malformed_payloads_are_rejected(signed_codec, payload):
    with pytest.raises(InvalidCredential):
        signed_codec.decode(payload)


@pytest.mark.parametrize("missing", ['attendee_id', 'email', 'full_name'])
def test_signed_token_missing_identity_field_is_rejected(signed_codec, snapshot, missing):
    claims = snapshot.to_claims()
    claims[missing] = ''

    token = signed_codec.issue(IdentitySnapshot(**claims))

    with pytest.raises(InvalidCredential) as excinfo:
        signed_codec.decode(token)
    assert missing in excinfo.value.reason


def test_from_claims_type_checks():
    base = {'attendee_id': 'a', 'email': 'a@example.com', 'full_name': 'A'}

    assert IdentitySnapshot.from_claims(base).issued_at == 0

    with pytest.raises(InvalidCredential):
        IdentitySnapshot.from_claims(dict(base, issued_at='yesterday'))
    with pytest.raises(InvalidCredential):
        IdentitySnapshot.from_claims(dict(base, event_id=42))
    with pytest.raises(InvalidCredential):
        IdentitySnapshot.from_claims(['not', 'a', 'dict'])


def test_legacy_json_mode(snapshot, caplog):
    with caplog.at_level(logging.WARNING, logger='credential_service'):
        codec = CredentialCodec(make_settings(credential_mode='legacy-json'))

    assert codec.insecure
    assert 'unsigned' in caplog.text

    token = codec.issue(snapshot)
    assert json.loads(token)['email'] == 'ada@example.com'
    assert codec.decode(token) == snapshot

    # Anyone can mint a legacy credential
    forged = codec.decode('{"attendee_id": "x", "email": "x@example.com", "full_name": "X"}')
    assert forged.attendee_id == 'x'

    with pytest.raises(InvalidCredential):
        codec.decode('{"attendee_id": "x", "full_name": "X"}')
    with pytest.raises(InvalidCredential):
        codec.decode('<html>')
    with pytest.raises(InvalidCredential) as excinfo:
        codec.decode('[' * 2000)
    assert excinfo.value.reason == 'payload is not JSON'


def test_render_qr_png():
    png = render_qr_png('hello', box_size=4, border=1)

    assert png.startswith(PNG_SIGNATURE)


def test_qr_code_service_issues_verifiable_credential(attendee, codec):
    result = get_qr_code_service().generate_for_attendee(attendee.id)

    assert result['success'] is True
    assert result['signed'] is True
    assert result['qr_code'].startswith('data:image/png;base64,')
    assert base64.b64decode(result['qr_code'].split(',', 1)[1]).startswith(PNG_SIGNATURE)

    decoded = codec.decode(result['token'])
    assert decoded.attendee_id == attendee.id
    assert decoded.email == attendee.email
    assert decoded.event_id == 'GHIQS 2025'


def test_qr_code_service_unknown_attendee(app):
    result = get_qr_code_service().generate_for_attendee('does-not-exist')

    assert result['success'] is False
    assert result['error_code'] == QRCodeError.ATTENDEE_NOT_FOUND


def test_qr_code_service_saves_png(attendee, tmp_path):
    target = tmp_path / 'badges' / 'ada.png'

    result = get_qr_code_service().save_for_attendee(attendee.id, str(target))

    assert result['success'] is True
    assert result['qr_path'] == str(target)
    assert target.read_bytes().startswith(PNG_SIGNATURE)
