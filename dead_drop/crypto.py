"""
Dead Drop Encryption Layer — password-derived AES-256-GCM envelopes.

Handles: password → PBKDF2-HMAC-SHA256 key → AES-256-GCM → framed envelope.
And reverse: envelope → key re-derivation → authenticated decryption.

The password is the key material. Drops keep it as supplied because the
same bytes are needed to re-derive the key at retrieval time.

Author: Ava Shakil
Date: 2026-10-17
"""

import os
import struct
import logging
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .errors import AuthenticationFailed


logger = logging.getLogger(__name__)

VERSION = 1
DEFAULT_ITERATIONS = 100_000
MIN_ITERATIONS = 1000
MAX_ITERATIONS = 5_000_000
SALT_SIZE = 16
IV_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32

_PREFIX = struct.Struct('>BI')  # version, iterations

# version(1) + iterations(4) + salt(16) + iv(12) + tag(16)
ENVELOPE_OVERHEAD = _PREFIX.size + SALT_SIZE + IV_SIZE + TAG_SIZE


@dataclass(frozen=True)
class Envelope:
    """An encrypted payload and everything needed to open it except the password."""

    ciphertext: bytes
    iv: bytes
    auth_tag: bytes
    salt: bytes
    iterations: int = DEFAULT_ITERATIONS

    def to_bytes(self) -> bytes:
        """
        Frame the envelope for embedding.

        Layout: version(1) | iterations(4) | salt(16) | iv(12) | tag(16) | ciphertext
        """
        return (_PREFIX.pack(VERSION, self.iterations)
                + self.salt + self.iv + self.auth_tag + self.ciphertext)

    @classmethod
    def from_bytes(cls, blob: bytes) -> 'Envelope':
        if len(blob) < ENVELOPE_OVERHEAD:
            raise AuthenticationFailed()
        version, iterations = _PREFIX.unpack_from(blob, 0)
        if version != VERSION or not MIN_ITERATIONS <= iterations <= MAX_ITERATIONS:
            raise AuthenticationFailed()
        offset = _PREFIX.size
        salt = blob[offset:offset + SALT_SIZE]
        offset += SALT_SIZE
        iv = blob[offset:offset + IV_SIZE]
        offset += IV_SIZE
        tag = blob[offset:offset + TAG_SIZE]
        offset += TAG_SIZE
        return cls(ciphertext=blob[offset:], iv=iv, auth_tag=tag,
                   salt=salt, iterations=iterations)

    def __len__(self) -> int:
        return ENVELOPE_OVERHEAD + len(self.ciphertext)


def derive_key(password: str, salt: bytes, iterations: int = DEFAULT_ITERATIONS) -> bytes:
    """Derive a 256-bit key from a password with PBKDF2-HMAC-SHA256."""
    if not MIN_ITERATIONS <= iterations <= MAX_ITERATIONS:
        raise ValueError(
            f"KDF iterations must be {MIN_ITERATIONS}-{MAX_ITERATIONS}, got {iterations}")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode('utf-8'))


def encrypt(payload: bytes, password: str, iterations: int = DEFAULT_ITERATIONS) -> Envelope:
    """
    Encrypt payload under a password.

    Args:
        payload: Raw file bytes
        password: Recipient password (also the key material)
        iterations: PBKDF2 iteration count, recorded in the envelope

    Returns:
        Envelope with a fresh 128-bit salt and 96-bit IV
    """
    if not password:
        raise ValueError("Password must not be empty")

    salt = os.urandom(SALT_SIZE)
    iv = os.urandom(IV_SIZE)
    key = derive_key(password, salt, iterations)

    # AESGCM appends the 16-byte tag to the ciphertext
    ct_with_tag = AESGCM(key).encrypt(iv, payload, None)
    logger.debug("Encrypted payload: plaintext_len=%d, ciphertext_len=%d",
                 len(payload), len(ct_with_tag) - TAG_SIZE)

    return Envelope(
        ciphertext=ct_with_tag[:-TAG_SIZE],
        iv=iv,
        auth_tag=ct_with_tag[-TAG_SIZE:],
        salt=salt,
        iterations=iterations,
    )


def decrypt(envelope, password: str) -> bytes:
    """
    Open an envelope (or its framed bytes) with a password.

    Raises:
        AuthenticationFailed: wrong password, tampered or truncated data.
            The same exception and message is used for every case.
    """
    if isinstance(envelope, (bytes, bytearray, memoryview)):
        envelope = Envelope.from_bytes(bytes(envelope))

    if not password:
        raise AuthenticationFailed()

    key = derive_key(password, envelope.salt, envelope.iterations)
    try:
        plaintext = AESGCM(key).decrypt(envelope.iv, envelope.ciphertext + envelope.auth_tag, None)
    except InvalidTag:
        raise AuthenticationFailed() from None

    logger.debug("Decrypted payload: plaintext_len=%d", len(plaintext))
    return plaintext
