"""
Custom exceptions for the check-in service.

Services raise these at their own boundaries; the scan orchestrator and the
HTTP layer turn them into operator-facing outcomes.
"""


class CheckInError(Exception):
    """
    Base exception for the check-in service.

    Carries a human-readable message and a stable error code that is
    returned to clients unchanged.
    """

    error_code = 'check_in_error'

    def __init__(self, message, error_code=None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code

    def __str__(self):
        return f"[{self.error_code}] {self.message}"


class InvalidCredential(CheckInError):
    """
    Raised when a scanned credential cannot be trusted.

    Covers malformed payloads, failed signature or expiry checks, and missing
    identity fields. The operator has to scan a different code.
    """

    error_code = 'invalid_credential'

    def __init__(self, reason):
        super().__init__(f"Invalid credential: {reason}")
        self.reason = reason
