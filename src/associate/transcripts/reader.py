"""Incremental reader for append-only ``.jsonl`` transcripts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from ..lines import split_complete_lines
from .models import TranscriptEnvelope, TranscriptItem, parse_envelope

logger = logging.getLogger(__name__)

BLOCK_SIZE = 8192


@dataclass(frozen=True, slots=True)
class LogCursor:
    """Byte bookmark into one transcript file.

    ``byte_offset`` always sits on a line boundary: bytes of an unterminated
    trailing line are never consumed.
    """

    session_id: str
    file_path: Path
    byte_offset: int

    @property
    def last_complete_line_end(self) -> int:
        return self.byte_offset


@dataclass(frozen=True, slots=True)
class ReadResult:
    session_id: str
    cursor: LogCursor
    envelopes: tuple[TranscriptEnvelope, ...] = ()
    skipped: int = 0
    base_offset: int | None = None
    reset: bool = False

    def items(self) -> list[TranscriptItem]:
        return [item for envelope in self.envelopes for item in envelope.items()]


def _parse_lines(lines: list[bytes]) -> tuple[list[TranscriptEnvelope], int]:
    envelopes: list[TranscriptEnvelope] = []
    skipped = 0
    for raw in lines:
        if not raw.strip():
            continue
        envelope = parse_envelope(raw)
        if envelope is None:
            skipped += 1
            continue
        envelopes.append(envelope)
    return envelopes, skipped


def _read_tail(fh: BinaryIO, size: int, tail_lines: int) -> tuple[int, bytes]:
    """Return ``(offset, data)`` holding at most ``tail_lines`` complete lines.

    Blocks are read backwards from the end until enough terminators are seen
    or the start of the file is reached. ``data`` ends on a terminator.
    """

    pos = size
    chunks: list[bytes] = []
    newlines = 0
    while pos > 0 and newlines <= tail_lines:
        step = min(BLOCK_SIZE, pos)
        pos -= step
        fh.seek(pos)
        chunk = fh.read(step)
        chunks.append(chunk)
        newlines += chunk.count(b"\n")

    data = b"".join(reversed(chunks))
    complete_end = data.rfind(b"\n") + 1
    start = complete_end
    for _ in range(max(tail_lines, 0)):
        if start == 0:
            break
        start = data.rfind(b"\n", 0, start - 1) + 1
    return pos + start, data[start:complete_end]


class IncrementalLogReader:
    """Owns one :class:`LogCursor` per open transcript.

    :meth:`open` and :meth:`continue_from` only perform I/O and return a
    :class:`ReadResult`; they are safe to run on a worker thread. The cursor
    table changes only through :meth:`commit` and :meth:`evict`, which the
    event-loop consumer calls.
    """

    def __init__(self, tail_lines: int = 200) -> None:
        self._tail_lines = tail_lines
        self._cursors: dict[str, LogCursor] = {}

    @property
    def tail_lines(self) -> int:
        return self._tail_lines

    def open(self, session_id: str, path: Path, tail_lines: int | None = None) -> ReadResult:
        """Load the last ``tail_lines`` complete lines and a cursor at their end."""

        path = Path(path)
        limit = self._tail_lines if tail_lines is None else tail_lines
        with path.open("rb") as fh:
            fh.seek(0, 2)
            size = fh.tell()
            offset, data = _read_tail(fh, size, limit)

        lines, consumed = split_complete_lines(data)
        envelopes, skipped = _parse_lines(lines)
        cursor = LogCursor(session_id=session_id, file_path=path, byte_offset=offset + consumed)
        return ReadResult(session_id=session_id, cursor=cursor, envelopes=tuple(envelopes), skipped=skipped)

    def continue_from(self, cursor: LogCursor) -> ReadResult:
        """Read complete lines appended since ``cursor``.

        A file shorter than the cursor was truncated or replaced; it is read
        again as a fresh open and the result is flagged ``reset``.
        """

        size = cursor.file_path.stat().st_size
        if size < cursor.byte_offset:
            logger.info(
                "Transcript shrank below cursor; reloading",
                extra={"session_id": cursor.session_id, "offset": cursor.byte_offset, "size": size},
            )
            fresh = self.open(cursor.session_id, cursor.file_path)
            return ReadResult(
                session_id=cursor.session_id,
                cursor=fresh.cursor,
                envelopes=fresh.envelopes,
                skipped=fresh.skipped,
                base_offset=cursor.byte_offset,
                reset=True,
            )

        with cursor.file_path.open("rb") as fh:
            fh.seek(cursor.byte_offset)
            data = fh.read(size - cursor.byte_offset)

        lines, consumed = split_complete_lines(data)
        envelopes, skipped = _parse_lines(lines)
        new_cursor = LogCursor(
            session_id=cursor.session_id,
            file_path=cursor.file_path,
            byte_offset=cursor.byte_offset + consumed,
        )
        return ReadResult(
            session_id=cursor.session_id,
            cursor=new_cursor,
            envelopes=tuple(envelopes),
            skipped=skipped,
            base_offset=cursor.byte_offset,
        )

    def commit(self, result: ReadResult) -> bool:
        """Install the cursor of ``result``; False if the result is stale."""

        if result.base_offset is not None:
            current = self._cursors.get(result.session_id)
            if (
                current is None
                or current.byte_offset != result.base_offset
                or current.file_path != result.cursor.file_path
            ):
                return False
        self._cursors[result.session_id] = result.cursor
        return True

    def cursor(self, session_id: str) -> LogCursor | None:
        return self._cursors.get(session_id)

    def evict(self, session_id: str) -> None:
        self._cursors.pop(session_id, None)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._cursors

    def __len__(self) -> int:
        return len(self._cursors)


__all__ = ["BLOCK_SIZE", "IncrementalLogReader", "LogCursor", "ReadResult"]
