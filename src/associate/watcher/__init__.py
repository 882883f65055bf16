"""Filesystem watching: classification, debouncing and the observer."""

from .classifier import classify, classify_change
from .debounce import Debouncer, merge_kinds
from .observer import DebouncedWatcher, WatchError, WatchRoot, watch_roots

__all__ = [
    "DebouncedWatcher",
    "Debouncer",
    "WatchError",
    "WatchRoot",
    "classify",
    "classify_change",
    "merge_kinds",
    "watch_roots",
]
