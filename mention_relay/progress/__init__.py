"""Streaming progress: classification, debounced commits, cancellation."""

from mention_relay.progress.cancel import CancelRegistry
from mention_relay.progress.classifier import ClassifiedUpdate, classify
from mention_relay.progress.debounce import DebouncedMutator, MutatorState
from mention_relay.progress.typing import TypingIndicator

__all__ = [
    "CancelRegistry",
    "ClassifiedUpdate",
    "DebouncedMutator",
    "MutatorState",
    "TypingIndicator",
    "classify",
]
