"""Slideshow sequencing: which photo a display configuration shows next.

Sequential configurations walk the candidate list in resolver order and wrap.
Shuffled configurations use a shuffle bag: every candidate is shown once per
cycle, and a new permutation is drawn at each wrap. The first photo of a fresh
permutation never equals the photo shown just before it when there is more
than one candidate.
"""

from __future__ import annotations

import random
from threading import Event, Lock
from typing import Any, Callable, Dict, List, Optional, Sequence

from .. import config
from .candidates import CandidateSource, PhotoDescriptor
from .display_settings import SettingsNotFoundError
from .sequence_store import SequenceState, SequenceStateStore

logger = config.logger

SettingsLookup = Callable[[Optional[int]], Optional[Dict[str, Any]]]
CandidateResolver = Callable[[CandidateSource, Optional[Event]], List[PhotoDescriptor]]
CandidateCounter = Callable[[CandidateSource, Optional[Event]], int]


class Sequencer:
    """Answers next/current/preload/count for display configurations.

    ``settings_lookup(None)`` must return the active configuration and
    ``settings_lookup(id)`` the configuration with that id, raising the
    manager's not-found error for unknown ids.
    """

    def __init__(
        self,
        store: SequenceStateStore,
        settings_lookup: SettingsLookup,
        resolver: CandidateResolver,
        counter: Optional[CandidateCounter] = None,
        rng: Optional[random.Random] = None
    ) -> None:
        self.store = store
        self._settings_lookup = settings_lookup
        self._resolver = resolver
        self._counter = counter
        self._rng = rng if rng is not None else random.Random()
        self._rng_lock = Lock()

    # Order construction

    def _spawn_rng(self, preview: bool = False) -> random.Random:
        """Derive a configuration's own generator from the shared one.

        With ``preview`` the shared generator is replayed instead of consumed,
        so the generator the next real call derives is the same one.
        """
        with self._rng_lock:
            source = self._rng
            if preview:
                try:
                    snapshot = self._rng.getstate()
                except NotImplementedError:
                    # Stateless generators (SystemRandom) cannot be replayed.
                    snapshot = None
                if snapshot is not None:
                    source = random.Random()
                    source.setstate(snapshot)
            seed = source.getrandbits(64)
        return random.Random(seed)

    def _permutation(self, size: int, last_shown_id: Optional[int],
                     candidates: Sequence[PhotoDescriptor], rng: random.Random) -> List[int]:
        order = list(range(size))
        rng.shuffle(order)
        if size > 1 and last_shown_id is not None and candidates[order[0]].id == last_shown_id:
            swap_with = rng.randrange(1, size)
            order[0], order[swap_with] = order[swap_with], order[0]
        return order

    def _build_state(self, candidates: Sequence[PhotoDescriptor], shuffle: bool,
                     last_shown_id: Optional[int], rng: random.Random) -> SequenceState:
        size = len(candidates)
        if shuffle:
            order = self._permutation(size, last_shown_id, candidates, rng)
        else:
            order = list(range(size))
        return SequenceState(
            order=order,
            cursor=-1,
            last_shown_id=last_shown_id,
            generated_for_count=size,
            rng=rng
        )

    def _advance(self, state: SequenceState, candidates: Sequence[PhotoDescriptor],
                 shuffle: bool) -> PhotoDescriptor:
        next_cursor = state.cursor + 1
        if next_cursor >= len(state.order):
            next_cursor = 0
            if shuffle:
                state.order = self._permutation(len(candidates), state.last_shown_id, candidates, state.rng)
        state.cursor = next_cursor
        photo = candidates[state.order[next_cursor]]
        state.last_shown_id = photo.id
        return photo

    def _prepared_state(self, key: int, candidates: Sequence[PhotoDescriptor],
                        shuffle: bool, preview: bool = False) -> SequenceState:
        """Return a working copy of the key's state, rebuilt if it went stale.

        Callers hold the key lock; the stored state is never mutated here.
        """
        existing = self.store.get(key)
        working = existing.copy() if existing is not None else None
        if working is not None and working.rng is not None and working.is_consistent(len(candidates)):
            return working
        if working is not None:
            logger.debug(
                '[Sequencer] rebuilding order for settings %s: %s -> %s candidates',
                key,
                working.generated_for_count,
                len(candidates)
            )
        last_shown_id = working.last_shown_id if working is not None else None
        rng = working.rng if working is not None and working.rng is not None else self._spawn_rng(preview)
        return self._build_state(candidates, shuffle, last_shown_id, rng)

    # Public operations

    def _next_locked(self, key: int, settings: Dict[str, Any],
                     candidates: List[PhotoDescriptor]) -> PhotoDescriptor:
        shuffle = bool(settings.get('shuffle'))
        working = self._prepared_state(key, candidates, shuffle)
        photo = self._advance(working, candidates, shuffle)
        self.store.replace(key, working)
        return photo

    def get_next(self, settings_id: Optional[int] = None,
                 cancel_event: Optional[Event] = None) -> Optional[PhotoDescriptor]:
        settings = self._settings_lookup(settings_id)
        if settings is None:
            return None
        key = settings['id']
        with self.store.lock(key):
            settings = self._settings_lookup(key)
            if settings is None:
                self.store.delete(key)
                return None
            candidates = self._resolver(CandidateSource.for_settings(settings), cancel_event)
            if not candidates:
                if self.store.delete(key):
                    logger.debug('[Sequencer] no candidates left for settings %s; dropped state', key)
                return None
            photo = self._next_locked(key, settings, candidates)
        logger.debug('[Sequencer] settings %s -> photo %s', key, photo.id)
        return photo

    def get_current(self, settings_id: Optional[int] = None,
                    cancel_event: Optional[Event] = None) -> Optional[PhotoDescriptor]:
        settings = self._settings_lookup(settings_id)
        if settings is None:
            return None
        key = settings['id']
        with self.store.lock(key):
            settings = self._settings_lookup(key)
            if settings is None:
                self.store.delete(key)
                return None
            candidates = self._resolver(CandidateSource.for_settings(settings), cancel_event)
            if not candidates:
                self.store.delete(key)
                return None
            state = self.store.get(key)
            if state is None or state.cursor < 0 or not state.is_consistent(len(candidates)):
                return self._next_locked(key, settings, candidates)
            return candidates[state.order[state.cursor]]

    def get_preload(self, count: int, settings_id: Optional[int] = None,
                    cancel_event: Optional[Event] = None) -> List[PhotoDescriptor]:
        """Return the next ``count`` photos ``get_next`` would produce, without committing."""
        if count <= 0:
            return []
        settings = self._settings_lookup(settings_id)
        if settings is None:
            return []
        key = settings['id']
        with self.store.lock(key):
            settings = self._settings_lookup(key)
            if settings is None:
                return []
            candidates = self._resolver(CandidateSource.for_settings(settings), cancel_event)
            if not candidates:
                return []
            shuffle = bool(settings.get('shuffle'))
            simulated = self._prepared_state(key, candidates, shuffle, preview=True)
            return [self._advance(simulated, candidates, shuffle) for _ in range(count)]

    def get_count(self, settings_id: Optional[int] = None, cancel_event: Optional[Event] = None) -> int:
        settings = self._settings_lookup(settings_id)
        if settings is None:
            return 0
        source = CandidateSource.for_settings(settings)
        if self._counter is not None:
            return self._counter(source, cancel_event)
        return len(self._resolver(source, cancel_event))

    def reset_sequence(self, settings_id: Optional[int] = None) -> None:
        """Forget the position of a configuration, or of the active one when no id is given."""
        try:
            settings = self._settings_lookup(settings_id)
        except SettingsNotFoundError:
            # Unknown ids never get a lock entry.
            return
        if settings is None:
            return
        key = settings['id']
        with self.store.lock(key):
            discarded = self.store.delete(key)
        logger.info('[Sequencer] reset sequence for settings %s (had state: %s)', key, discarded)

    def forget_sequence(self, settings_id: int) -> None:
        """Drop the state and the lock of a configuration that no longer exists."""
        discarded = self.store.forget(settings_id)
        logger.info('[Sequencer] forgot settings %s (had state: %s)', settings_id, discarded)
