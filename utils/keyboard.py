"""
Operator cancellation signals.

CancelSignal is set programmatically; KeyboardCancelSignal additionally
turns any key press on the controlling terminal into a cancel request.
Both are sampled by the protocols at loop boundaries, never preemptively.
"""

import os
import select
import sys
import threading

try:
    import termios
    import tty
    TERMIOS_AVAILABLE = True
except ImportError:
    TERMIOS_AVAILABLE = False


class CancelSignal:
    """Idempotent, thread-safe cancel request flag."""

    def __init__(self):
        self._event = threading.Event()

    def request(self):
        """Request cancellation. Repeated requests have no further effect."""
        self._event.set()

    def is_requested(self) -> bool:
        return self._event.is_set()

    def reset(self):
        self._event.clear()


class KeyboardCancelSignal(CancelSignal):
    """
    Cancel signal fed by key presses on stdin.

    Use as a context manager: the terminal is switched to cbreak mode on
    enter, so single key presses are visible without Enter, and restored
    on exit. Outside a terminal it behaves like a plain CancelSignal.
    """

    def __init__(self, stream=None):
        super().__init__()
        self._stream = stream or sys.stdin
        self._fd = None
        self._saved_attrs = None

    @property
    def active(self) -> bool:
        return self._fd is not None

    def __enter__(self):
        try:
            fd = self._stream.fileno()
        except (AttributeError, ValueError, OSError):
            return self
        if not (TERMIOS_AVAILABLE and os.isatty(fd)):
            return self

        self._saved_attrs = termios.tcgetattr(fd)
        tty.setcbreak(fd)
        self._fd = fd
        return self

    def __exit__(self, exc_type, exc, tb):
        if self._fd is not None and self._saved_attrs is not None:
            termios.tcsetattr(self._fd, termios.TCSANOW, self._saved_attrs)
        self._fd = None
        self._saved_attrs = None
        return False

    def key_pressed(self) -> bool:
        """Non-blocking check for a pending key press; consumes the key."""
        if self._fd is None:
            return False
        ready, _, _ = select.select([self._fd], [], [], 0)
        if not ready:
            return False
        os.read(self._fd, 1)
        return True

    def is_requested(self) -> bool:
        if not super().is_requested() and self.key_pressed():
            self.request()
        return super().is_requested()
