"""
Signal handling for the relay daemon.

Signal handlers only record what happened and write a byte to a wake
channel. The reactor selects on that channel, so its wait returns
promptly and the real work happens on the reactor's own turn.

Classes:
    WakeChannel: Self-pipe used to interrupt the reactor's wait
    SignalCoordinator: Installs handlers that map signals to state changes
"""

from __future__ import annotations

import contextlib
import logging
import os
import signal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from relay.reactor import ServerState

logger = logging.getLogger(__name__)

QUIT_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGQUIT)
# Caught with a no-op handler rather than SIG_IGN: ignored dispositions
# survive exec and would be inherited by fowsr
IGNORED_SIGNALS = (signal.SIGHUP, signal.SIGUSR1, signal.SIGUSR2)
WAKE_BYTE = b"\x00"


class WakeChannel:
    """Non-blocking pipe whose only purpose is to make select() return."""

    def __init__(self):
        self._read_fd, self._write_fd = os.pipe()
        os.set_blocking(self._read_fd, False)
        os.set_blocking(self._write_fd, False)

    def fileno(self) -> int:
        return self._read_fd

    def notify(self) -> None:
        """Write one wake byte. Safe to call from a signal handler."""
        # A full pipe already holds a pending wake-up
        with contextlib.suppress(BlockingIOError):
            os.write(self._write_fd, WAKE_BYTE)

    def drain(self) -> int:
        """Consume all pending wake bytes and return how many there were."""
        total = 0
        while True:
            try:
                data = os.read(self._read_fd, 512)
            except BlockingIOError:
                return total
            if not data:
                return total
            total += len(data)

    def close(self) -> None:
        for fd in (self._read_fd, self._write_fd):
            with contextlib.suppress(OSError):
                os.close(fd)


class SignalCoordinator:
    """
    Routes process signals into ServerState.

    - SIGINT/SIGTERM/SIGQUIT: request shutdown
    - SIGCHLD: wake the reactor so the supervisor reaps the child promptly
    - SIGHUP/SIGUSR1/SIGUSR2: caught and ignored, so fowsr inherits defaults
    - SIGPIPE: SIG_IGN
    """

    def __init__(self, state: ServerState, wake: WakeChannel):
        self._state = state
        self._wake = wake
        self._previous: dict[int, object] = {}

    def install(self) -> None:
        """Register handlers, remembering the previous ones for restore()."""
        for signum in QUIT_SIGNALS:
            self._set(signum, self.handle_quit)
        self._set(signal.SIGCHLD, self.handle_child)
        for signum in IGNORED_SIGNALS:
            self._set(signum, self.handle_ignored)
        # Python already ignores SIGPIPE; subprocess resets it for children
        self._set(signal.SIGPIPE, signal.SIG_IGN)
        logger.debug("Signal handlers installed")

    def restore(self) -> None:
        """Put back the handlers that were active before install()."""
        for signum, handler in self._previous.items():
            # None means the handler was not installed from Python
            if handler is not None:
                signal.signal(signum, handler)
        self._previous.clear()

    def handle_quit(self, signum, frame) -> None:
        self._state.request_shutdown(signum)
        self._wake.notify()

    def handle_child(self, signum, frame) -> None:
        self._wake.notify()

    def handle_ignored(self, signum, frame) -> None:
        pass

    def _set(self, signum: int, handler) -> None:
        previous = signal.signal(signum, handler)
        self._previous.setdefault(signum, previous)
