"""Transcript parsing and incremental reading."""

from .models import ItemKind, TranscriptEnvelope, TranscriptItem, parse_envelope
from .reader import IncrementalLogReader, LogCursor, ReadResult

__all__ = [
    "IncrementalLogReader",
    "ItemKind",
    "LogCursor",
    "ReadResult",
    "TranscriptEnvelope",
    "TranscriptItem",
    "parse_envelope",
]
