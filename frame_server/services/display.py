"""Process-wide display services shared by the routes and the CLI."""

from __future__ import annotations

from time import time

from . import candidates
from .display_settings import DisplaySettingsManager
from .sequence_store import SequenceStateStore
from .sequencer import Sequencer

store = SequenceStateStore()
settings_manager = DisplaySettingsManager()
sequencer = Sequencer(
    store,
    settings_manager.resolve,
    candidates.resolve_candidates,
    counter=candidates.count_candidates
)
settings_manager.add_invalidation_listener(sequencer.reset_sequence)
settings_manager.add_removal_listener(sequencer.forget_sequence)

start_time = time()


def reset_runtime_state() -> None:
    """Drop every slideshow position, e.g. after the database was swapped."""
    store.clear()
