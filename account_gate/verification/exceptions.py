"""
Domain errors for the verification lifecycle.

Routers translate these into HTTP responses; the Telegram handlers translate
them into alerts sent back to the admin.
"""


class VerificationError(Exception):
    """Base class for verification errors."""


class ValidationError(VerificationError):
    """Malformed input (missing/oversized external id, bad status value)."""


class InvalidStatusError(ValidationError):
    def __init__(self, status: object):
        self.status = status
        super().__init__(
            f"Invalid status '{status}'. Must be one of: pending, approved, rejected"
        )


class VerificationNotFoundError(VerificationError):
    def __init__(self, verification_id: int):
        self.verification_id = verification_id
        super().__init__(f"Verification #{verification_id} not found")


class UnauthorizedActionError(VerificationError):
    """Sender of an admin action is not a configured admin."""
