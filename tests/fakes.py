"""
Test doubles shared by the dead drop test modules.

Author: Ava Shakil
Date: 2026-10-17
"""

import copy
from datetime import datetime, timedelta, timezone

from dead_drop.store import InMemoryDropRepository


# Lowest count the envelope accepts; keeps key derivation fast in tests.
FAST_ITERATIONS = 1000


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = None):
        self.current = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class ManualScheduler:
    """BurnScheduler stand-in whose timers only fire on run_pending()."""

    def __init__(self):
        self.jobs = {}

    def schedule(self, drop_id, delay, callback):
        self.jobs[drop_id] = (delay, callback)

    def cancel(self, drop_id):
        return self.jobs.pop(drop_id, None) is not None

    def pending(self, drop_id):
        return drop_id in self.jobs

    def run_pending(self):
        jobs, self.jobs = self.jobs, {}
        for drop_id, (_, callback) in jobs.items():
            callback(drop_id)
        return len(jobs)

    def shutdown(self):
        self.jobs.clear()


class DetachedRepository(InMemoryDropRepository):
    """
    Repository that stores and hands out copies, like a database would.

    Callers never share a record object with the repository, so a change
    only sticks once it goes through update().
    """

    def add(self, drop):
        super().add(copy.deepcopy(drop))

    def update(self, drop):
        super().update(copy.deepcopy(drop))

    def get(self, drop_id):
        return copy.deepcopy(super().get(drop_id))

    def get_by_codename(self, codename):
        return copy.deepcopy(super().get_by_codename(codename))

    def remove(self, drop_id):
        return copy.deepcopy(super().remove(drop_id))

    def all(self):
        return copy.deepcopy(super().all())
