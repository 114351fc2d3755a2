"""
Relay package - fans fowsr weather station readings out over a Unix socket.

This package contains:
- supervisor: Keeps a single fowsr process running, with fixed restart backoff
- registry: Subscriber connections and reading broadcast
- signals: Wake channel and signal-to-state routing
- listener: The Unix socket subscribers connect to
- reactor: Single-threaded select() loop tying the above together
- config: JSON configuration
- server: Entry point
"""

from relay.config import RelayConfig, load_config
from relay.listener import ListenerError, close_listener, open_listener
from relay.reactor import Reactor, ReadySource, ServerState, SourceKind
from relay.registry import Subscriber, SubscriberRegistry
from relay.server import main, run_relay
from relay.signals import SignalCoordinator, WakeChannel
from relay.supervisor import SensorSupervisor, SupervisorState

__all__ = [
    "ListenerError",
    "Reactor",
    "ReadySource",
    "RelayConfig",
    "SensorSupervisor",
    "ServerState",
    "SignalCoordinator",
    "SourceKind",
    "Subscriber",
    "SubscriberRegistry",
    "SupervisorState",
    "WakeChannel",
    "close_listener",
    "load_config",
    "main",
    "open_listener",
    "run_relay",
]
