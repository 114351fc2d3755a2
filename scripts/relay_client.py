#!/usr/bin/env python3
"""
Debug subscriber for the weather station relay.

Connects to the relay socket and prints every reading it receives.

Usage:
    python3 scripts/relay_client.py [--socket /var/run/fowsr.sock] [--count N]
"""

import argparse
import json
import logging
import socket
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.protocol import FrameError, RecordAssembler

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("relay_client")

RECV_SIZE = 4096


def follow(socket_path: str, count: int | None = None) -> int:
    """Print readings until the relay closes the connection or count is reached."""
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    sock.connect(socket_path)
    logger.info(f"Connected to {socket_path}")

    assembler = RecordAssembler()
    received = 0
    try:
        while count is None or received < count:
            chunk = sock.recv(RECV_SIZE)
            if not chunk:
                logger.info("Relay closed the connection")
                break
            try:
                records = assembler.feed(chunk)
            except FrameError as e:
                logger.warning(f"Dropped malformed data: {e}")
                continue
            for record in records:
                print(json.dumps(record, sort_keys=True), flush=True)
                received += 1
    finally:
        sock.close()
    return received


def main():
    parser = argparse.ArgumentParser(description="Print readings from the relay")
    parser.add_argument(
        "--socket",
        default="/var/run/fowsr.sock",
        help="Relay socket path (default: /var/run/fowsr.sock)",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=None,
        help="Exit after this many readings (default: run until disconnected)",
    )
    args = parser.parse_args()

    try:
        follow(args.socket, args.count)
    except OSError as e:
        logger.error(f"Cannot read from {args.socket}: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
