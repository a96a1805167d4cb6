"""In-memory slideshow positions, one entry per display configuration."""

from __future__ import annotations

import random
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, Iterator, List, Optional


@dataclass
class SequenceState:
    """Where a configuration's slideshow currently stands.

    ``order`` holds positions into the candidate list the state was built
    against; ``generated_for_count`` is that list's length. ``rng`` is the
    configuration's own generator, so shuffling one configuration never
    waits on another.
    """

    order: List[int] = field(default_factory=list)
    cursor: int = -1
    last_shown_id: Optional[int] = None
    generated_for_count: int = 0
    rng: Optional[random.Random] = field(default=None, compare=False, repr=False)

    def copy(self) -> SequenceState:
        rng = None
        if self.rng is not None:
            rng = random.Random()
            rng.setstate(self.rng.getstate())
        return SequenceState(
            order=list(self.order),
            cursor=self.cursor,
            last_shown_id=self.last_shown_id,
            generated_for_count=self.generated_for_count,
            rng=rng
        )

    def is_consistent(self, candidate_count: int) -> bool:
        if candidate_count <= 0 or self.generated_for_count != candidate_count:
            return False
        if len(self.order) != candidate_count:
            return False
        return -1 <= self.cursor < len(self.order)


class SequenceStateStore:
    """Keyed store of :class:`SequenceState` guarded by one lock per key.

    The registry lock only protects the lock table itself and is released
    before any sequencing work starts, so configurations never wait on each
    other.
    """

    def __init__(self) -> None:
        self._states: Dict[int, SequenceState] = {}
        self._locks: Dict[int, Lock] = {}
        self._registry_lock = Lock()

    def _key_lock(self, key: int) -> Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def lock(self, key: int) -> Iterator[None]:
        key_lock = self._key_lock(key)
        with key_lock:
            yield

    def get(self, key: int) -> Optional[SequenceState]:
        with self._registry_lock:
            return self._states.get(key)

    def replace(self, key: int, state: SequenceState) -> None:
        with self._registry_lock:
            self._states[key] = state

    def delete(self, key: int) -> bool:
        with self._registry_lock:
            return self._states.pop(key, None) is not None

    def forget(self, key: int) -> bool:
        """Drop both the state and the lock of a key that will not come back."""
        with self._registry_lock:
            self._locks.pop(key, None)
            return self._states.pop(key, None) is not None

    def keys(self) -> List[int]:
        with self._registry_lock:
            return sorted(self._states.keys())

    def clear(self) -> None:
        with self._registry_lock:
            self._states.clear()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._states)
