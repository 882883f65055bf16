"""Complete-line splitting for append-only byte streams.

Both transcript files and worker stdout are consumed with the same rule: a
line exists only once its ``\\n`` terminator has been seen.
"""

from __future__ import annotations


def split_complete_lines(data: bytes) -> tuple[list[bytes], int]:
    """Split ``data`` into terminated lines.

    Returns the lines (terminator and trailing ``\\r`` removed) and the number
    of bytes they consumed. Bytes after the last terminator are not consumed.
    """

    end = data.rfind(b"\n")
    if end < 0:
        return [], 0
    lines = [line.rstrip(b"\r") for line in data[:end].split(b"\n")]
    return lines, end + 1


class LineBuffer:
    """Accumulates chunks from a pipe and releases only complete lines."""

    def __init__(self) -> None:
        self._pending = bytearray()

    def feed(self, chunk: bytes) -> list[bytes]:
        self._pending.extend(chunk)
        lines, consumed = split_complete_lines(bytes(self._pending))
        if consumed:
            del self._pending[:consumed]
        return lines

    def flush(self) -> bytes | None:
        """Return the unterminated remainder once the stream has ended."""

        if not self._pending:
            return None
        rest = bytes(self._pending).rstrip(b"\r")
        self._pending.clear()
        return rest

    @property
    def pending_bytes(self) -> int:
        return len(self._pending)


__all__ = ["LineBuffer", "split_complete_lines"]
