"""Keyboard producer: cbreak-mode stdin decoded into key names."""

from __future__ import annotations

import logging
import os
import sys
import termios
import tty
from typing import Any

from .events import EventBus, KeyPressed

logger = logging.getLogger(__name__)

_SEQUENCES = {
    "\x1b[A": "up",
    "\x1bOA": "up",
    "\x1b[B": "down",
    "\x1bOB": "down",
    "\x1b[C": "right",
    "\x1bOC": "right",
    "\x1b[D": "left",
    "\x1bOD": "left",
    "\x1b[Z": "backtab",
    "\x1b[3~": "delete",
    "\x1b[H": "home",
    "\x1b[F": "end",
}
_SINGLE = {
    "\t": "tab",
    "\r": "enter",
    "\n": "enter",
    "\x7f": "backspace",
    "\x08": "backspace",
}


def decode_keys(text: str) -> list[str]:
    """Split a chunk of terminal input into key names."""

    keys: list[str] = []
    index = 0
    while index < len(text):
        char = text[index]
        if char == "\x1b":
            for sequence, name in _SEQUENCES.items():
                if text.startswith(sequence, index):
                    keys.append(name)
                    index += len(sequence)
                    break
            else:
                keys.append("esc")
                index += 1
                # Drop the rest of an unknown CSI sequence.
                if text.startswith("[", index):
                    index += 1
                    while index < len(text) and not text[index].isalpha() and text[index] != "~":
                        index += 1
                    index += 1
            continue
        keys.append(_SINGLE.get(char, char))
        index += 1
    return keys


class KeyboardReader:
    """Puts the terminal in cbreak mode and posts :class:`KeyPressed` events."""

    def __init__(self, bus: EventBus, stream: Any = None) -> None:
        self._bus = bus
        self._stream = stream or sys.stdin
        self._fd: int | None = None
        self._saved: list[Any] | None = None

    @property
    def active(self) -> bool:
        return self._fd is not None

    def start(self) -> bool:
        """Start reading; False when stdin is not a terminal."""

        try:
            fd = self._stream.fileno()
            self._saved = termios.tcgetattr(fd)
        except (termios.error, ValueError, OSError, AttributeError):
            logger.info("stdin is not a terminal; keyboard input disabled")
            return False
        tty.setcbreak(fd)
        self._bus.bind().add_reader(fd, self._on_readable)
        self._fd = fd
        return True

    def stop(self) -> None:
        if self._fd is None:
            return
        assert self._bus.loop is not None
        self._bus.loop.remove_reader(self._fd)
        if self._saved is not None:
            try:
                termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved)
            except termios.error as exc:
                logger.warning("Failed to restore terminal", extra={"error": str(exc)})
        self._fd = None

    def _on_readable(self) -> None:
        assert self._fd is not None
        try:
            data = os.read(self._fd, 1024)
        except OSError as exc:
            logger.warning("Keyboard read failed", extra={"error": str(exc)})
            return
        if not data:
            self._bus.loop.remove_reader(self._fd)
            return
        for key in decode_keys(data.decode("utf-8", errors="ignore")):
            self._bus.post(KeyPressed(key))


__all__ = ["KeyboardReader", "decode_keys"]
