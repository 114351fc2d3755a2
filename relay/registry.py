"""
Registry of connected subscribers and reading fan-out.

Classes:
    Subscriber: A connected consumer of the reading stream
    SubscriberRegistry: Accepts, drains, broadcasts to and removes subscribers
"""

import logging
import socket
import time
from dataclasses import dataclass, field

from utils.protocol import Reading, encode_reading

logger = logging.getLogger(__name__)

DRAIN_READ_SIZE = 4096


@dataclass(eq=False)
class Subscriber:
    """A connected consumer of the reading stream."""

    sock: socket.socket
    fd: int  # Captured at accept time so it stays valid after close()
    connected_at: float = field(default_factory=time.time)
    records_sent: int = 0

    def __str__(self) -> str:
        return f"subscriber fd={self.fd}"


class SubscriberRegistry:
    """
    Owns every subscriber connection.

    Subscribers are write-only from the relay's point of view: anything
    they send is read and discarded so their connection can be closed
    promptly on EOF. All socket calls are non-blocking, so a stalled
    subscriber is dropped rather than allowed to hold up the reactor.
    """

    def __init__(self):
        self._subscribers: dict[int, Subscriber] = {}

    def __len__(self) -> int:
        return len(self._subscribers)

    def __iter__(self):
        return iter(list(self._subscribers.values()))

    def __contains__(self, subscriber: Subscriber) -> bool:
        return self._subscribers.get(subscriber.fd) is subscriber

    def accept(self, listener: socket.socket) -> Subscriber | None:
        """
        Accept a pending connection on the listening socket.

        Returns:
            The new Subscriber, or None if nothing could be accepted
        """
        try:
            sock, _ = listener.accept()
        except (BlockingIOError, InterruptedError):
            logger.debug("No pending connection to accept")
            return None
        except OSError as e:
            logger.warning(f"Failed to accept subscriber: {e}")
            return None

        subscriber = self.add(sock)
        logger.info(f"Accepted {subscriber} ({len(self)} connected)")
        return subscriber

    def add(self, sock: socket.socket) -> Subscriber:
        """Register an already-connected socket as a subscriber."""
        sock.setblocking(False)
        subscriber = Subscriber(sock=sock, fd=sock.fileno())
        self._subscribers[subscriber.fd] = subscriber
        return subscriber

    def drain(self, subscriber: Subscriber) -> None:
        """Discard whatever the subscriber sent, closing it on EOF or error."""
        if subscriber not in self:
            return
        try:
            data = subscriber.sock.recv(DRAIN_READ_SIZE)
        except (BlockingIOError, InterruptedError):
            return
        except OSError as e:
            logger.warning(f"Read from {subscriber} failed: {e}")
            self.remove(subscriber)
            return

        if not data:
            logger.info(f"{subscriber} disconnected")
            self.remove(subscriber)
        else:
            logger.debug(f"Discarded {len(data)} bytes from {subscriber}")

    def broadcast(self, reading: Reading) -> int:
        """
        Send a reading to every subscriber.

        Each subscriber gets one attempt. A subscriber whose socket errors or
        cannot take the whole record right now is removed; the rest still
        receive the reading.

        Args:
            reading: Decoded reading (nothing is sent if empty)

        Returns:
            Number of subscribers the reading was delivered to
        """
        if not reading:
            return 0

        record = encode_reading(reading)
        delivered = 0
        for subscriber in self:
            try:
                sent = subscriber.sock.send(record)
            except (BlockingIOError, InterruptedError):
                sent = 0
            except OSError as e:
                logger.warning(f"Write to {subscriber} failed: {e}")
                self.remove(subscriber)
                continue

            if sent < len(record):
                logger.warning(
                    f"Dropping {subscriber}: not draining its socket "
                    f"({sent}/{len(record)} bytes written)"
                )
                self.remove(subscriber)
                continue

            subscriber.records_sent += 1
            delivered += 1

        logger.debug(f"Broadcast {len(record)} bytes to {delivered} subscriber(s)")
        return delivered

    def remove(self, subscriber: Subscriber) -> bool:
        """
        Unregister and close a subscriber.

        Returns:
            True if the subscriber was registered, False if already removed
        """
        if subscriber not in self:
            return False
        del self._subscribers[subscriber.fd]
        subscriber.sock.close()
        logger.info(
            f"Closed {subscriber} after {subscriber.records_sent} record(s) "
            f"({len(self)} connected)"
        )
        return True

    def close_all(self) -> None:
        for subscriber in self:
            self.remove(subscriber)
