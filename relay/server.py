#!/usr/bin/env python3
"""
Weather station relay - fans fowsr readings out to local subscribers.

Runs fowsr in continuous mode, decodes its output into readings and writes
each reading as one JSON line to every client connected to a Unix socket.
fowsr is restarted 15s after it exits.

Usage:
    python3 -m relay.server [--fowsr PATH] [--listen PATH] [--config FILE]
    python3 relay_server.py [--fowsr PATH] [--listen PATH] [--config FILE]
"""

import argparse
import logging
import sys

from relay.config import RelayConfig, load_config
from relay.listener import ListenerError, close_listener, open_listener
from relay.reactor import Reactor, ServerState
from relay.signals import SignalCoordinator, WakeChannel
from relay.supervisor import SensorSupervisor

logger = logging.getLogger(__name__)


def configure_logging(level: str | int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def run_relay(config: RelayConfig) -> int:
    """
    Run the relay until a quit signal arrives.

    Returns:
        Process exit status
    """
    try:
        listener = open_listener(config.socket_path, mode=config.socket_mode)
    except ListenerError as e:
        logger.error(str(e))
        return 1

    supervisor = SensorSupervisor(
        config.fowsr_path,
        args=config.fowsr_args,
        restart_backoff=config.restart_backoff_sec,
    )
    wake = WakeChannel()
    state = ServerState(listener=listener, supervisor=supervisor, wake=wake)
    reactor = Reactor(
        state,
        select_timeout=config.select_timeout_sec,
        shutdown_timeout=config.shutdown_timeout_sec,
    )
    signals = SignalCoordinator(state, wake)
    signals.install()

    try:
        reactor.run()
    finally:
        signals.restore()
        close_listener(listener, config.socket_path)
        wake.close()
    return 0


def build_config(args: argparse.Namespace) -> RelayConfig:
    config = load_config(args.config) if args.config else RelayConfig()
    if args.fowsr:
        config.fowsr_path = args.fowsr
    if args.listen:
        config.socket_path = args.listen
    if args.verbose:
        config.log_level = "DEBUG"
    return config


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Relay fowsr weather station readings to local subscribers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--fowsr",
        metavar="PATH",
        help="Path to the fowsr binary (default: fowsr next to relay_server.py)",
    )
    parser.add_argument(
        "--listen",
        metavar="PATH",
        help="Unix socket path for subscribers (default: /var/run/fowsr.sock)",
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        help="JSON config file (flags override its values)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except (OSError, ValueError) as e:
        configure_logging()
        logger.error(str(e))
        return 1

    configure_logging(config.log_level)
    return run_relay(config)


if __name__ == "__main__":
    sys.exit(main())
