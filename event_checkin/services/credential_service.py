# services/credential_service.py
"""
Credential codec for attendee check-in codes.

A credential is a snapshot of the attendee's identity, signed as a JWT so a
scanner can verify it without touching the database. The legacy JSON mode
reproduces the unsigned payload older badges carried; it has no
authenticity at all and is kept only so those badges still scan.
"""

import json
import logging
import time
from dataclasses import asdict, dataclass

import jwt

from event_checkin.config import CREDENTIAL_MODE_LEGACY_JSON
from event_checkin.exceptions import InvalidCredential

logger = logging.getLogger('credential_service')

REQUIRED_FIELDS = ('attendee_id', 'email', 'full_name')
SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class IdentitySnapshot:
    """Identity fields embedded in a credential."""

    attendee_id: str
    email: str
    full_name: str
    event_id: str = ''
    issued_at: int = 0

    def to_claims(self):
        return asdict(self)

    @classmethod
    def from_claims(cls, claims):
        """
        Build a snapshot from decoded claims.

        Raises:
            InvalidCredential: If a required field is missing or not a string
        """
        if not isinstance(claims, dict):
            raise InvalidCredential('payload is not an object')

        for field in REQUIRED_FIELDS:
            value = claims.get(field)
            if not isinstance(value, str) or not value.strip():
                raise InvalidCredential(f'missing required field {field}')

        event_id = claims.get('event_id') or ''
        issued_at = claims.get('issued_at') or 0
        if not isinstance(event_id, str):
            raise InvalidCredential('event_id must be a string')
        if isinstance(issued_at, bool) or not isinstance(issued_at, int):
            raise InvalidCredential('issued_at must be an integer')

        return cls(
            attendee_id=claims['attendee_id'],
            email=claims['email'],
            full_name=claims['full_name'],
            event_id=event_id,
            issued_at=issued_at,
        )


def create_snapshot(attendee, event_id, issued_at=None):
    """
    Snapshot a stored attendee for a new credential.

    Args:
        attendee: Attendee model instance
        event_id: Event name embedded as advisory metadata
        issued_at: Epoch seconds, defaults to now

    Returns:
        IdentitySnapshot
    """
    return IdentitySnapshot(
        attendee_id=attendee.id,
        email=attendee.email,
        full_name=attendee.full_name,
        event_id=event_id,
        issued_at=int(time.time()) if issued_at is None else int(issued_at),
    )


class CredentialCodec:
    """Issues and verifies attendee credentials."""

    def __init__(self, settings, clock=time.time):
        self.settings = settings
        self._clock = clock

        if settings.credential_mode == CREDENTIAL_MODE_LEGACY_JSON:
            logger.warning(
                "Credential mode is legacy-json: credentials are unsigned and "
                "anyone can forge one for any attendee"
            )

    @property
    def insecure(self):
        return self.settings.credential_mode == CREDENTIAL_MODE_LEGACY_JSON

    def issue(self, snapshot):
        """
        Encode a snapshot into a credential token.

        Args:
            snapshot: IdentitySnapshot to embed

        Returns:
            str: Token to render into the attendee's QR code
        """
        claims = snapshot.to_claims()

        if self.insecure:
            return json.dumps(claims, separators=(',', ':'))

        now = int(self._clock())
        claims['iat'] = now
        claims['exp'] = now + self.settings.credential_ttl_days * SECONDS_PER_DAY
        token = jwt.encode(
            claims,
            self.settings.credential_secret,
            algorithm=self.settings.credential_algorithm,
        )
        logger.debug(f"Issued credential for attendee {snapshot.attendee_id}")
        return token

    def decode(self, token):
        """
        Verify a scanned token and return the embedded snapshot.

        Never consults the database; the caller resolves the live attendee
        separately.

        Args:
            token: Raw payload read from the QR code

        Returns:
            IdentitySnapshot

        Raises:
            InvalidCredential: For any malformed, forged, expired or
                incomplete token
        """
        if isinstance(token, bytes):
            try:
                token = token.decode('utf-8')
            except UnicodeDecodeError:
                raise InvalidCredential('payload is not valid UTF-8')

        if not isinstance(token, str) or not token.strip():
            raise InvalidCredential('empty payload')

        token = token.strip()

        if self.insecure:
            try:
                claims = json.loads(token)
            except (ValueError, RecursionError):
                # JSONDecodeError, or nesting deeper than the decoder can follow
                raise InvalidCredential('payload is not JSON')
            return IdentitySnapshot.from_claims(claims)

        try:
            claims = jwt.decode(
                token,
                self.settings.credential_secret,
                algorithms=[self.settings.credential_algorithm],
                options={'require': ['exp']},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidCredential('credential has expired')
        except jwt.PyJWTError as e:
            logger.info(f"Credential verification failed: {e}")
            raise InvalidCredential('signature verification failed')

        claims.pop('exp', None)
        claims.pop('iat', None)
        return IdentitySnapshot.from_claims(claims)
