"""
Dead Drop — Core logic.

Create, inspect and retrieve password-gated dead drops.

A dead drop is:
1. A file encrypted under a password (AES-256-GCM, PBKDF2 key)
2. The encrypted envelope hidden in an innocent-looking PNG via LSB steganography
3. A record held by a DropLifecycleStore under a memorable codename
4. Bounded availability: TTL, optional retrieval limit, optional burn after reading

Only someone holding the codename and the password can get the file back,
and only while the drop is still live.

Author: Ava Shakil
Date: 2026-10-17
"""

import re
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from . import capacity
from . import crypto
from . import stego
from .errors import CapacityExceeded, InvalidCodename, error_for_reason


CODENAME_RE = re.compile(r'^[A-Z]+-[A-Z]+-[0-9]{4}$')


class DropStatus:
    ACTIVE = 'active'
    RETRIEVED = 'retrieved'
    EXPIRED = 'expired'
    BURNED = 'burned'


class EventType:
    UPLOAD = 'upload'
    RETRIEVAL = 'retrieval'
    FAILED_PASSWORD = 'failed_password'
    EXPIRED = 'expired'
    BURNED = 'burned'


COVER_GENERATED = 'generated'
COVER_UPLOADED = 'uploaded'


def is_codename(identifier: str) -> bool:
    return bool(CODENAME_RE.match(identifier.strip().upper()))


def normalize_codename(identifier: str) -> str:
    """Canonicalize a codename to uppercase, rejecting anything malformed."""
    codename = identifier.strip().upper()
    if not CODENAME_RE.match(codename):
        raise InvalidCodename()
    return codename


@dataclass
class DropEvent:
    timestamp: datetime
    ip_address: str
    event_type: str
    user_agent: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'timestamp': self.timestamp.isoformat(),
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'event_type': self.event_type,
        }


@dataclass
class DeadDrop:
    """Represents a single dead drop instance."""

    drop_id: str
    codename: str
    created_at: datetime
    ttl: int
    expires_at: datetime
    password: str
    cover_image: bytes
    payload_size: int
    bits_per_channel: int = 1
    cover_image_type: str = COVER_GENERATED
    password_hint: Optional[str] = None
    max_retrievals: int = 0
    retrieval_count: int = 0
    burn_after_reading: bool = False
    status: str = DropStatus.ACTIVE
    first_retrieved_at: Optional[datetime] = None
    last_retrieved_at: Optional[datetime] = None
    encrypted: bool = True
    original_filename: Optional[str] = None
    mime_type: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    uploads: List[DropEvent] = field(default_factory=list)
    retrievals: List[DropEvent] = field(default_factory=list)

    def remaining_retrievals(self) -> Optional[int]:
        if self.max_retrievals <= 0:
            return None
        return max(0, self.max_retrievals - self.retrieval_count)

    def to_dict(self) -> dict:
        """Audit view. Never includes the password or the carrier bytes."""
        return {
            'version': 'dead_drop_v2',
            'drop_id': self.drop_id,
            'codename': self.codename,
            'status': self.status,
            'created_at': self.created_at.isoformat(),
            'expires_at': self.expires_at.isoformat(),
            'ttl': self.ttl,
            'max_retrievals': self.max_retrievals,
            'retrieval_count': self.retrieval_count,
            'burn_after_reading': self.burn_after_reading,
            'payload_size': self.payload_size,
            'cover_image_size': len(self.cover_image),
            'cover_image_type': self.cover_image_type,
            'bits_per_channel': self.bits_per_channel,
            'original_filename': self.original_filename,
            'mime_type': self.mime_type,
            'tags': list(self.tags),
            'uploads': [e.to_dict() for e in self.uploads],
            'retrievals': [e.to_dict() for e in self.retrievals],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


def create(store, payload: bytes, password: str,
           cover_image: bytes = None,
           bits_per_channel: int = 1,
           ttl: int = 86400,
           max_retrievals: int = 0,
           burn_after_reading: bool = False,
           password_hint: str = None,
           filename: str = None,
           mime_type: str = None,
           tags: list = None,
           ip_address: str = 'unknown',
           user_agent: str = None,
           iterations: int = crypto.DEFAULT_ITERATIONS) -> tuple:
    """
    Create a dead drop.

    Args:
        store: DropLifecycleStore that will own the record
        payload: File bytes to hide
        password: Retrieval password (also the encryption key material)
        cover_image: Optional lossless carrier; a decoy is generated if omitted
        bits_per_channel: LSB density 1-4
        ttl, max_retrievals, burn_after_reading: availability policy
        password_hint, filename, mime_type, tags: public metadata

    Returns:
        (DeadDrop, report) where report is the creation summary shown to the sender

    Raises:
        UnsupportedCarrierFormat: cover image is lossy or unreadable
        CapacityExceeded: payload does not fit the cover image
    """
    if not password:
        raise ValueError("Password is required")

    # Envelope size is known up front, so the carrier is checked before
    # the slow key derivation runs.
    envelope_size = len(payload) + crypto.ENVELOPE_OVERHEAD

    if cover_image is not None:
        width, height, _ = stego.inspect(cover_image)
        cover_type = COVER_UPLOADED
    else:
        width, height = capacity.choose_dimensions(envelope_size, bits_per_channel)
        cover_image = stego.generate_cover_image(width, height)
        cover_type = COVER_GENERATED

    check = capacity.validate(width, height, envelope_size, bits_per_channel)
    if not check['valid']:
        raise CapacityExceeded(
            capacity=max(0, check['capacity'] - crypto.ENVELOPE_OVERHEAD),
            required=len(payload),
        )

    envelope = crypto.encrypt(payload, password, iterations=iterations)
    stego_image = stego.embed(cover_image, envelope.to_bytes(), bits_per_channel)

    drop = store.create_drop(
        stego_image,
        password=password,
        payload_size=len(payload),
        bits_per_channel=bits_per_channel,
        cover_image_type=cover_type,
        ttl=ttl,
        max_retrievals=max_retrievals,
        burn_after_reading=burn_after_reading,
        password_hint=password_hint,
        original_filename=filename,
        mime_type=mime_type or 'application/octet-stream',
        tags=tags,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    payload_capacity = check['capacity'] - crypto.ENVELOPE_OVERHEAD
    hours = ttl // 3600
    report = {
        'drop_id': drop.drop_id,
        'codename': drop.codename,
        'expires_at': drop.expires_at.isoformat(),
        'ttl': {
            'seconds': ttl,
            'hours': hours,
            'formatted': f"{hours}h",
        },
        'max_retrievals': drop.max_retrievals,
        'burn_after_reading': drop.burn_after_reading,
        'steganography': {
            'image_size': f"{width}x{height}",
            'payload_size': len(payload),
            'capacity': payload_capacity,
            'utilization': capacity.utilization(len(payload), payload_capacity),
            'bits_per_channel': bits_per_channel,
        },
    }
    return drop, report


def warnings_for(drop: DeadDrop, now: datetime) -> list:
    """Human-readable warnings for the pickup page."""
    warnings = []

    hours_remaining = (drop.expires_at - now).total_seconds() / 3600
    if hours_remaining < 1:
        warnings.append('URGENT: Dead drop expires in less than 1 hour')
    elif hours_remaining < 6:
        warnings.append('WARNING: Dead drop expires soon')

    remaining = drop.remaining_retrievals()
    if remaining is not None:
        if remaining == 1:
            warnings.append('LAST CHANCE: Only 1 retrieval remaining before burn')
        elif remaining <= 3:
            warnings.append(f'LIMITED: Only {remaining} retrievals remaining')

    if drop.burn_after_reading:
        warnings.append('BURN AFTER READING: This dead drop will self-destruct after retrieval')

    warnings.append('OPSEC: Download from a secure, anonymous location')
    return warnings


def describe(store, identifier: str) -> dict:
    """
    Public metadata for a drop. No password needed, no carrier or ciphertext returned.

    Raises:
        NotFound, Expired, Burned, RetrievalLimitExceeded
    """
    check = store.is_accessible(identifier)
    if not check.accessible:
        raise error_for_reason(check.reason)

    drop = check.drop
    now = store.now()
    remaining_seconds = max(0, int((drop.expires_at - now).total_seconds()))
    hours, rem = divmod(remaining_seconds, 3600)
    minutes = rem // 60
    remaining = drop.remaining_retrievals()

    return {
        'codename': drop.codename,
        'status': drop.status,
        'created_at': drop.created_at.isoformat(),
        'expires_at': drop.expires_at.isoformat(),
        'time_remaining': {
            'seconds': remaining_seconds,
            'hours': hours,
            'minutes': minutes,
            'formatted': f"{hours}h {minutes}m",
        },
        'max_retrievals': drop.max_retrievals,
        'retrieval_count': drop.retrieval_count,
        'remaining': 'unlimited' if remaining is None else remaining,
        'burn_after_reading': drop.burn_after_reading,
        'password_hint': drop.password_hint,
        'payload_size': drop.payload_size,
        'original_filename': drop.original_filename,
        'mime_type': drop.mime_type,
        'tags': list(drop.tags),
        'steganography': {
            'technique': 'LSB (Least Significant Bit)',
            'encrypted': drop.encrypted,
            'cover_image_type': drop.cover_image_type,
            'bits_per_channel': drop.bits_per_channel,
        },
        'warnings': warnings_for(drop, now),
    }


def retrieve(store, identifier: str, password: str,
             ip_address: str = 'unknown', user_agent: str = None) -> tuple:
    """
    Retrieve and decrypt a drop.

    Returns:
        (payload_bytes, DeadDrop)

    Raises:
        NotFound, Expired, Burned, RetrievalLimitExceeded, InvalidPassword
    """
    result = store.retrieve(identifier, password, ip_address=ip_address, user_agent=user_agent)
    if not result.success:
        raise error_for_reason(result.reason)
    return result.payload, result.drop
