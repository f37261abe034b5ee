"""
Dead Drop — Error taxonomy.

Every failure a caller can act on is a DeadDropError carrying a stable
``reason`` string and the HTTP status the web layer answers with.
They subclass ValueError so existing ``except ValueError`` handlers keep
working.

Author: Ava Shakil
Date: 2026-10-17
"""

from typing import Optional


class DeadDropError(ValueError):
    """Base class for all user-facing dead drop failures."""

    reason = 'Error'
    status = 400
    message = 'Dead drop operation failed'

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)


class NotFound(DeadDropError):
    reason = 'NotFound'
    status = 404
    message = 'Dead drop not found'


class Expired(DeadDropError):
    reason = 'Expired'
    status = 403
    message = 'Dead drop has expired'


class Burned(DeadDropError):
    reason = 'Burned'
    status = 403
    message = 'Dead drop has been burned'


class RetrievalLimitExceeded(DeadDropError):
    reason = 'RetrievalLimitExceeded'
    status = 403
    message = 'Dead drop has reached maximum retrievals'


class InvalidPassword(DeadDropError):
    # Also covers tampered or corrupted payloads; callers must not be able
    # to tell the two apart.
    reason = 'InvalidPassword'
    status = 401
    message = 'Invalid password'


class AuthenticationFailed(DeadDropError):
    reason = 'AuthenticationFailed'
    status = 401
    message = 'Decryption failed'


class CapacityExceeded(DeadDropError):
    reason = 'CapacityExceeded'
    status = 400
    message = 'Payload too large for cover image'

    def __init__(self, capacity: int, required: int, message: Optional[str] = None):
        self.capacity = capacity
        self.required = required
        super().__init__(
            message or f"Payload too large ({required} bytes) for cover image "
                       f"(capacity: {capacity} bytes)"
        )


class UnsupportedCarrierFormat(DeadDropError):
    reason = 'UnsupportedCarrierFormat'
    status = 400
    message = 'Cover image must be a lossless format (PNG, BMP, TIFF)'


class CorruptCarrier(DeadDropError):
    reason = 'CorruptCarrier'
    status = 400
    message = 'Image does not contain a dead drop payload'


class InvalidCodename(DeadDropError):
    reason = 'InvalidCodename'
    status = 400
    message = 'Codename must look like ADJECTIVE-NOUN-1234'


_BY_REASON = {
    cls.reason: cls
    for cls in (NotFound, Expired, Burned, RetrievalLimitExceeded, InvalidPassword)
}


def error_for_reason(reason: str) -> DeadDropError:
    """Build the exception matching a lifecycle reason string."""
    cls = _BY_REASON.get(reason, DeadDropError)
    return cls()
