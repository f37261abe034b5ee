"""Dead Drop — Password-gated files hidden in images. AES-256-GCM + LSB steganography."""

from .dead_drop import create, describe, retrieve, normalize_codename
from .dead_drop import DeadDrop, DropEvent, DropStatus, EventType
from .crypto import encrypt, decrypt, derive_key, Envelope
from .stego import embed, extract, inspect, generate_cover_image
from .capacity import compute_capacity, choose_dimensions, validate
from .store import DropLifecycleStore, DropRepository, InMemoryDropRepository, BurnScheduler
from .sweeper import RetentionSweeper
from .config import Settings, configure_logging
from .errors import (
    DeadDropError, NotFound, Expired, Burned, RetrievalLimitExceeded,
    InvalidPassword, AuthenticationFailed, CapacityExceeded,
    UnsupportedCarrierFormat, CorruptCarrier, InvalidCodename,
)

__all__ = [
    'create', 'describe', 'retrieve', 'normalize_codename',
    'DeadDrop', 'DropEvent', 'DropStatus', 'EventType',
    'encrypt', 'decrypt', 'derive_key', 'Envelope',
    'embed', 'extract', 'inspect', 'generate_cover_image',
    'compute_capacity', 'choose_dimensions', 'validate',
    'DropLifecycleStore', 'DropRepository', 'InMemoryDropRepository', 'BurnScheduler',
    'RetentionSweeper', 'Settings', 'configure_logging',
    'DeadDropError', 'NotFound', 'Expired', 'Burned', 'RetrievalLimitExceeded',
    'InvalidPassword', 'AuthenticationFailed', 'CapacityExceeded',
    'UnsupportedCarrierFormat', 'CorruptCarrier', 'InvalidCodename',
]
