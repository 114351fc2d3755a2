"""
Single-threaded event loop for the relay daemon.

One thread owns all relay state. The only place it blocks is the select()
in Reactor.wait(); every read, write and accept it dispatches to is
non-blocking.

Classes:
    ServerState: Everything the reactor owns
    SourceKind: Kinds of I/O source the reactor waits on
    ReadySource: A source that select() reported readable
    Reactor: Waits on all sources and dispatches to their handlers
"""

import logging
import selectors
import signal
import socket
from dataclasses import dataclass, field
from enum import Enum

from relay.registry import Subscriber, SubscriberRegistry
from relay.signals import WakeChannel
from relay.supervisor import DEFAULT_SHUTDOWN_TIMEOUT_SEC, SensorSupervisor
from utils.protocol import decode_block

logger = logging.getLogger(__name__)

DEFAULT_SELECT_TIMEOUT_SEC = 5.0
DEFAULT_READ_SIZE = 4096
MAX_PARTIAL_LINE = 64 * 1024


@dataclass
class ServerState:
    """
    All state of a running relay.

    Owned by the reactor's thread. Signal handlers touch only
    request_shutdown() and the wake channel.
    """

    listener: socket.socket
    supervisor: SensorSupervisor
    wake: WakeChannel
    registry: SubscriberRegistry = field(default_factory=SubscriberRegistry)
    shutdown_requested: bool = False
    shutdown_signal: int | None = None  # First quit signal received

    def request_shutdown(self, signum: int | None = None) -> None:
        """Set the shutdown flag. Once set it is never cleared."""
        if not self.shutdown_requested:
            self.shutdown_signal = signum
        self.shutdown_requested = True


class SourceKind(Enum):
    LISTENER = "listener"
    SENSOR_OUTPUT = "sensor_output"
    WAKE = "wake"
    SUBSCRIBER = "subscriber"


@dataclass(frozen=True)
class ReadySource:
    """An I/O source, tagged with what kind of handler it needs."""

    kind: SourceKind
    fd: int
    subscriber: Subscriber | None = None


class Reactor:
    """
    Waits on the listener, fowsr's stdout, the wake channel and every
    subscriber, and dispatches whichever become readable.

    Each iteration:
        1. Build the wait set from the current state
        2. select() until something is readable or the timeout passes
        3. Dispatch each readable source
        4. Stop if shutdown was requested
        5. Let the supervisor reap/respawn fowsr

    The timeout only exists so the supervisor gets to respawn fowsr when
    nothing else is happening.
    """

    def __init__(
        self,
        state: ServerState,
        select_timeout: float = DEFAULT_SELECT_TIMEOUT_SEC,
        read_size: int = DEFAULT_READ_SIZE,
        shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT_SEC,
    ):
        self._state = state
        self._select_timeout = select_timeout
        self._read_size = read_size
        self._shutdown_timeout = shutdown_timeout
        self._partial_line = b""  # fowsr output after the last newline
        self._readings_broadcast = 0

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def readings_broadcast(self) -> int:
        return self._readings_broadcast

    def wait_set(self) -> list[ReadySource]:
        """Every source the next select() should wait on."""
        state = self._state
        sources = [
            ReadySource(SourceKind.LISTENER, state.listener.fileno()),
            ReadySource(SourceKind.WAKE, state.wake.fileno()),
        ]
        output_fd = state.supervisor.output_fd
        if output_fd is not None:
            sources.append(ReadySource(SourceKind.SENSOR_OUTPUT, output_fd))
        for subscriber in state.registry:
            sources.append(
                ReadySource(SourceKind.SUBSCRIBER, subscriber.fd, subscriber)
            )
        return sources

    def wait(self) -> list[ReadySource]:
        """Block until at least one source is readable or the timeout passes."""
        with selectors.DefaultSelector() as selector:
            for source in self.wait_set():
                selector.register(source.fd, selectors.EVENT_READ, data=source)
            events = selector.select(timeout=self._select_timeout)
        return [key.data for key, _ in events]

    def run_once(self) -> bool:
        """
        Run one loop iteration.

        Returns:
            False once shutdown has been requested, True otherwise
        """
        for source in self.wait():
            self.dispatch(source)

        if self._state.shutdown_requested:
            return False

        self._state.supervisor.tick()
        if self._state.supervisor.output_fd is None:
            self._partial_line = b""
        return True

    def run(self) -> None:
        """Run until shutdown is requested, then tear everything down."""
        logger.info("Relay started")
        self._state.supervisor.tick()
        try:
            while self.run_once():
                pass
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        signum = self._state.shutdown_signal
        if signum is not None:
            logger.info(f"Shutting down on {signal.Signals(signum).name}")
        else:
            logger.info("Shutting down")
        self._state.supervisor.stop(timeout=self._shutdown_timeout)
        self._state.registry.close_all()
        logger.info(f"Relay stopped after {self._readings_broadcast} reading(s)")

    def dispatch(self, source: ReadySource) -> None:
        if source.kind is SourceKind.LISTENER:
            self._state.registry.accept(self._state.listener)
        elif source.kind is SourceKind.SENSOR_OUTPUT:
            self._handle_sensor_output()
        elif source.kind is SourceKind.WAKE:
            self._state.wake.drain()
        elif source.kind is SourceKind.SUBSCRIBER:
            self._state.registry.drain(source.subscriber)
        else:
            raise ValueError(f"Unknown source kind: {source.kind}")

    def _handle_sensor_output(self) -> None:
        data = self._state.supervisor.read_output(self._read_size)
        if data is None:
            return
        if not data:
            if self._partial_line:
                logger.debug(
                    f"Discarding {len(self._partial_line)} bytes of "
                    f"unterminated fowsr output"
                )
            self._partial_line = b""
            return

        # Only decode complete lines; keep the tail for the next read
        buffered = self._partial_line + data
        complete, newline, self._partial_line = buffered.rpartition(b"\n")
        if len(self._partial_line) > MAX_PARTIAL_LINE:
            logger.warning(
                f"Discarding {len(self._partial_line)} bytes of fowsr output "
                f"with no newline"
            )
            self._partial_line = b""
        if not newline:
            return

        reading = decode_block((complete + newline).decode("utf-8", errors="replace"))
        if not reading:
            return

        delivered = self._state.registry.broadcast(reading)
        self._readings_broadcast += 1
        logger.debug(f"Reading {reading} delivered to {delivered} subscriber(s)")
