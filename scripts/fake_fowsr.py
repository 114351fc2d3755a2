#!/usr/bin/env python3
"""
fowsr simulator - prints weather station output without the hardware.

Emits the same "<token> <value>" lines as `fowsr -c`, one block per
interval, with slowly drifting values. Point the relay at it to test
subscribers:

Usage:
    python3 relay_server.py --fowsr scripts/fake_fowsr.py --listen /tmp/fowsr.sock
    python3 scripts/fake_fowsr.py -c [--interval 2] [--count N] [--exit-code 0]
"""

import argparse
import random
import sys
import time


def format_block(now: float, rng: random.Random) -> str:
    """Build one fowsr output block for the given time."""
    lines = [
        f"ETime {int(now)}",
        f"RHi {rng.uniform(35.0, 55.0):.1f}",
        f"Ti {rng.uniform(18.0, 23.0):.1f}",
        f"RHo {rng.uniform(40.0, 95.0):.1f}",
        f"To {rng.uniform(-5.0, 25.0):.1f}",
        f"RP {rng.uniform(985.0, 1030.0):.1f}",
        f"DIR {rng.choice(range(0, 360, 45))}.0",
    ]
    return "\n".join(lines) + "\n"


def main():
    parser = argparse.ArgumentParser(description="Simulate fowsr -c output")
    parser.add_argument(
        "-c",
        dest="continuous",
        action="store_true",
        help="Continuous output (accepted for compatibility with fowsr)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=2.0,
        help="Seconds between blocks (default: 2)",
    )
    parser.add_argument(
        "--count",
        type=int,
        default=None,
        help="Exit after this many blocks (default: run forever)",
    )
    parser.add_argument(
        "--exit-code",
        type=int,
        default=0,
        help="Status to exit with after --count blocks",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    args = parser.parse_args()

    rng = random.Random(args.seed)
    emitted = 0
    while args.count is None or emitted < args.count:
        sys.stdout.write(format_block(time.time(), rng))
        sys.stdout.flush()
        emitted += 1
        time.sleep(args.interval)
    sys.exit(args.exit_code)


if __name__ == "__main__":
    main()
