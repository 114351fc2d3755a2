#!/usr/bin/env python3
"""Weather station relay daemon. See relay/server.py for details."""

import sys

from relay.server import main

if __name__ == "__main__":
    sys.exit(main())
