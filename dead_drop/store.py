"""
Dead Drop — Lifecycle store.

Owns every drop record and enforces the availability policy:

    active --(retrieval, no burn)--> retrieved
    active/retrieved --(retrieval + burn condition)--> burned --(grace)--> deleted
    active/retrieved --(TTL elapsed, sweeper)--> expired --> deleted

Failed password attempts are logged as events and never change state or
counters. Retrieval runs under a per-drop lock so the check-then-increment
on retrieval_count cannot race.

Author: Ava Shakil
Date: 2026-10-17
"""

import abc
import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from . import crypto
from . import stego
from .dead_drop import (
    DeadDrop, DropEvent, DropStatus, EventType, COVER_GENERATED,
    is_codename, normalize_codename,
)
from .errors import (
    AuthenticationFailed, Burned, CorruptCarrier, Expired, InvalidPassword,
    NotFound, RetrievalLimitExceeded, UnsupportedCarrierFormat,
)


logger = logging.getLogger(__name__)

ADJECTIVES = [
    'DARK', 'SILENT', 'SHADOW', 'GHOST', 'PHANTOM', 'STEEL', 'IRON',
    'SILVER', 'GOLD', 'BLACK', 'WHITE', 'RED', 'BLUE', 'GREEN',
    'SWIFT', 'QUICK', 'COLD', 'HOT', 'DEEP', 'HIGH',
]

NOUNS = [
    'WATER', 'FIRE', 'WIND', 'STONE', 'WOLF', 'EAGLE', 'TIGER',
    'DRAGON', 'SWORD', 'SHIELD', 'ARROW', 'THUNDER', 'LIGHTNING',
    'MOUNTAIN', 'OCEAN', 'RIVER', 'FOREST', 'DESERT', 'STORM',
]

MAX_CODENAME_ATTEMPTS = 1000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AccessCheck:
    accessible: bool
    reason: Optional[str] = None
    drop: Optional[DeadDrop] = None


@dataclass
class RetrievalResult:
    success: bool
    drop: Optional[DeadDrop] = None
    reason: Optional[str] = None
    payload: Optional[bytes] = None
    burned: bool = False


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

class DropRepository(abc.ABC):
    """Storage seam for drop records, keyed by drop_id with a codename index."""

    @abc.abstractmethod
    def add(self, drop: DeadDrop) -> None:
        ...

    @abc.abstractmethod
    def update(self, drop: DeadDrop) -> None:
        ...

    @abc.abstractmethod
    def get(self, drop_id: str) -> Optional[DeadDrop]:
        ...

    @abc.abstractmethod
    def get_by_codename(self, codename: str) -> Optional[DeadDrop]:
        ...

    @abc.abstractmethod
    def remove(self, drop_id: str) -> Optional[DeadDrop]:
        ...

    @abc.abstractmethod
    def all(self) -> List[DeadDrop]:
        ...


class InMemoryDropRepository(DropRepository):
    """
    One table of records by drop_id plus a codename index.

    Both maps change together under a single lock.
    """

    def __init__(self):
        self._records: Dict[str, DeadDrop] = {}
        self._codenames: Dict[str, str] = {}
        self._lock = threading.RLock()

    def add(self, drop: DeadDrop) -> None:
        with self._lock:
            if drop.drop_id in self._records:
                raise ValueError(f"Duplicate drop id {drop.drop_id}")
            if drop.codename in self._codenames:
                raise ValueError(f"Duplicate codename {drop.codename}")
            self._records[drop.drop_id] = drop
            self._codenames[drop.codename] = drop.drop_id

    def update(self, drop: DeadDrop) -> None:
        with self._lock:
            if drop.drop_id in self._records:
                self._records[drop.drop_id] = drop

    def get(self, drop_id: str) -> Optional[DeadDrop]:
        with self._lock:
            return self._records.get(drop_id)

    def get_by_codename(self, codename: str) -> Optional[DeadDrop]:
        with self._lock:
            drop_id = self._codenames.get(codename)
            return self._records.get(drop_id) if drop_id else None

    def remove(self, drop_id: str) -> Optional[DeadDrop]:
        with self._lock:
            drop = self._records.pop(drop_id, None)
            if drop is not None:
                self._codenames.pop(drop.codename, None)
            return drop

    def all(self) -> List[DeadDrop]:
        with self._lock:
            return list(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


# ---------------------------------------------------------------------------
# Deferred deletion
# ---------------------------------------------------------------------------

class BurnScheduler:
    """Cancellable one-shot timers keyed by drop_id."""

    def __init__(self):
        self._timers: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    def schedule(self, drop_id: str, delay: float, callback: Callable[[str], object]) -> None:
        def fire():
            with self._lock:
                if self._timers.get(drop_id) is timer:
                    del self._timers[drop_id]
            try:
                callback(drop_id)
            except Exception:
                logger.exception("Scheduled deletion failed for drop %s", drop_id)

        timer = threading.Timer(delay, fire)
        timer.daemon = True
        with self._lock:
            previous = self._timers.pop(drop_id, None)
            self._timers[drop_id] = timer
        if previous is not None:
            previous.cancel()
        timer.start()

    def cancel(self, drop_id: str) -> bool:
        with self._lock:
            timer = self._timers.pop(drop_id, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def pending(self, drop_id: str) -> bool:
        with self._lock:
            return drop_id in self._timers

    def shutdown(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class DropLifecycleStore:
    """Creates drops, gates retrieval, and tears drops down when they die."""

    def __init__(self, repository: DropRepository = None, scheduler=None,
                 clock: Callable[[], datetime] = None, burn_grace_seconds: float = 60.0):
        self.repository = repository if repository is not None else InMemoryDropRepository()
        self.scheduler = scheduler if scheduler is not None else BurnScheduler()
        self._clock = clock or utcnow
        self.burn_grace_seconds = burn_grace_seconds

        self._issued_codenames = set()
        self._codename_lock = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def now(self) -> datetime:
        return self._clock()

    def _lock_for(self, drop_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(drop_id)
            if lock is None:
                lock = self._locks[drop_id] = threading.Lock()
            return lock

    def _forget_lock(self, drop_id: str) -> None:
        with self._locks_guard:
            self._locks.pop(drop_id, None)

    # -- identity ----------------------------------------------------------

    def generate_codename(self) -> str:
        """
        Allocate a codename (ADJECTIVE-NOUN-NNNN) never issued before by this store.

        Raises:
            RuntimeError: the codename space is exhausted
        """
        with self._codename_lock:
            for _ in range(MAX_CODENAME_ATTEMPTS):
                codename = '{}-{}-{:04d}'.format(
                    secrets.choice(ADJECTIVES),
                    secrets.choice(NOUNS),
                    secrets.randbelow(10000),
                )
                if codename in self._issued_codenames:
                    continue
                if self.repository.get_by_codename(codename) is not None:
                    continue
                self._issued_codenames.add(codename)
                return codename
        raise RuntimeError(f"No unique codename after {MAX_CODENAME_ATTEMPTS} attempts")

    @staticmethod
    def generate_drop_id() -> str:
        return secrets.token_urlsafe(24)

    # -- lifecycle ---------------------------------------------------------

    def create_drop(self, cover_image: bytes, password: str, payload_size: int,
                    bits_per_channel: int = 1,
                    cover_image_type: str = COVER_GENERATED,
                    ttl: int = 86400,
                    max_retrievals: int = 0,
                    burn_after_reading: bool = False,
                    password_hint: str = None,
                    original_filename: str = None,
                    mime_type: str = None,
                    tags: list = None,
                    ip_address: str = 'unknown',
                    user_agent: str = None) -> DeadDrop:
        """
        Persist a new drop around an already-encoded carrier image.

        The carrier must already hold the encrypted envelope at
        ``bits_per_channel``; the store only records it.
        """
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        if max_retrievals < 0:
            raise ValueError(f"max_retrievals must be >= 0, got {max_retrievals}")

        now = self.now()
        drop = DeadDrop(
            drop_id=self.generate_drop_id(),
            codename=self.generate_codename(),
            created_at=now,
            ttl=ttl,
            expires_at=now + timedelta(seconds=ttl),
            password=password,
            password_hint=password_hint,
            max_retrievals=max_retrievals,
            burn_after_reading=burn_after_reading,
            cover_image=cover_image,
            cover_image_type=cover_image_type,
            bits_per_channel=bits_per_channel,
            payload_size=payload_size,
            original_filename=original_filename,
            mime_type=mime_type,
            tags=list(tags or []),
        )
        drop.uploads.append(DropEvent(now, ip_address, EventType.UPLOAD, user_agent))
        self.repository.add(drop)

        logger.info("Dead drop created: %s - %d bytes, expires in %dh",
                    drop.codename, payload_size, ttl // 3600)
        return drop

    def get_drop(self, identifier: str) -> Optional[DeadDrop]:
        """Look a drop up by drop_id or by codename (any case)."""
        if not identifier:
            return None
        drop = self.repository.get(identifier)
        if drop is None and is_codename(identifier):
            drop = self.repository.get_by_codename(normalize_codename(identifier))
        return drop

    def _check(self, drop: DeadDrop) -> AccessCheck:
        if self.now() > drop.expires_at or drop.status == DropStatus.EXPIRED:
            return AccessCheck(False, Expired.reason, drop)
        if drop.status == DropStatus.BURNED:
            return AccessCheck(False, Burned.reason, drop)
        if drop.max_retrievals > 0 and drop.retrieval_count >= drop.max_retrievals:
            return AccessCheck(False, RetrievalLimitExceeded.reason, drop)
        return AccessCheck(True, None, drop)

    def is_accessible(self, identifier: str) -> AccessCheck:
        """
        Report whether a drop can be retrieved right now.

        Read-only: an elapsed TTL is reported as Expired but the record is
        left for the sweeper to transition.
        """
        drop = self.get_drop(identifier)
        if drop is None:
            return AccessCheck(False, NotFound.reason)
        return self._check(drop)

    def retrieve(self, identifier: str, password: str,
                 ip_address: str = 'unknown', user_agent: str = None) -> RetrievalResult:
        """
        Verify the password by decrypting, then count the retrieval.

        The accessibility check, decryption and counter update form one
        critical section per drop, and run on the record as the repository
        holds it once the lock is taken.
        """
        found = self.get_drop(identifier)
        if found is None:
            return RetrievalResult(False, reason=NotFound.reason)
        drop_id = found.drop_id

        with self._lock_for(drop_id):
            drop = self.repository.get(drop_id)
            if drop is None:
                self._forget_lock(drop_id)
                return RetrievalResult(False, reason=NotFound.reason)

            check = self._check(drop)
            if not check.accessible:
                return RetrievalResult(False, reason=check.reason)

            try:
                envelope = stego.extract(drop.cover_image, drop.bits_per_channel)
                payload = crypto.decrypt(envelope, password)
            except AuthenticationFailed:
                payload = None
            except (CorruptCarrier, UnsupportedCarrierFormat):
                logger.error("Stored carrier for %s could not be decoded", drop.codename)
                payload = None

            now = self.now()
            if payload is None:
                drop.retrievals.append(
                    DropEvent(now, ip_address, EventType.FAILED_PASSWORD, user_agent))
                self.repository.update(drop)
                logger.warning("Failed password attempt on %s from %s", drop.codename, ip_address)
                return RetrievalResult(False, reason=InvalidPassword.reason)

            drop.retrievals.append(DropEvent(now, ip_address, EventType.RETRIEVAL, user_agent))
            drop.retrieval_count += 1
            drop.last_retrieved_at = now
            if drop.first_retrieved_at is None:
                drop.first_retrieved_at = now

            burn = drop.burn_after_reading or (
                drop.max_retrievals > 0 and drop.retrieval_count >= drop.max_retrievals)

            if burn:
                drop.status = DropStatus.BURNED
                drop.retrievals.append(DropEvent(now, ip_address, EventType.BURNED, user_agent))
            else:
                drop.status = DropStatus.RETRIEVED
            self.repository.update(drop)

        if burn:
            self.scheduler.schedule(drop.drop_id, self.burn_grace_seconds, self.delete_drop)
            logger.info("Dead drop burned: %s (%d retrievals)", drop.codename, drop.retrieval_count)

        logger.info("Dead drop retrieved: %s by %s (%d/%s)%s",
                    drop.codename, ip_address, drop.retrieval_count,
                    drop.max_retrievals or 'unlimited', ' - BURNED' if burn else '')
        return RetrievalResult(True, drop=drop, payload=payload, burned=burn)

    def expire(self, drop_id: str) -> bool:
        """Transition a drop whose TTL has elapsed to expired and delete it."""
        if self.repository.get(drop_id) is None:
            return False

        with self._lock_for(drop_id):
            drop = self.repository.get(drop_id)
            if drop is None:
                self._forget_lock(drop_id)
                return False
            if drop.status == DropStatus.BURNED or self.now() <= drop.expires_at:
                return False
            drop.status = DropStatus.EXPIRED
            drop.retrievals.append(DropEvent(self.now(), 'system', EventType.EXPIRED))
            self.repository.update(drop)

        return self.delete_drop(drop_id)

    def delete_drop(self, drop_id: str) -> bool:
        """Remove a drop and its codename entry. Safe to call twice."""
        self.scheduler.cancel(drop_id)
        drop = self.repository.remove(drop_id)
        self._forget_lock(drop_id)
        if drop is None:
            return False
        logger.info("Dead drop deleted: %s", drop.codename)
        return True

    # -- monitoring --------------------------------------------------------

    def all_drops(self) -> List[DeadDrop]:
        return self.repository.all()

    def active_drops(self) -> List[DeadDrop]:
        return [d for d in self.repository.all() if d.status == DropStatus.ACTIVE]

    def stats(self) -> dict:
        drops = self.repository.all()
        counts = {s: 0 for s in (DropStatus.ACTIVE, DropStatus.RETRIEVED,
                                 DropStatus.EXPIRED, DropStatus.BURNED)}
        for d in drops:
            counts[d.status] = counts.get(d.status, 0) + 1
        return {
            'total': len(drops),
            **counts,
            'total_retrievals': sum(d.retrieval_count for d in drops),
            'total_payload_size': sum(d.payload_size for d in drops),
        }

    def close(self) -> None:
        self.scheduler.shutdown()
