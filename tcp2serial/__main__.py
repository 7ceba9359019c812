"""Entry point: parse config and run the TCP-to-serial bridge."""

import sys

from tcp2serial.bridge import run_bridge
from tcp2serial.config import parse_args
from tcp2serial.errors import ListenError


def main():
    try:
        config = parse_args()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    try:
        run_bridge(config)
    except ListenError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
