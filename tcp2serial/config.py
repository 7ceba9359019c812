"""Configuration and command-line argument parsing for the TCP-to-serial bridge."""

import argparse
from dataclasses import dataclass
from typing import Optional, Sequence

VERSION = "0.0.1"

DEFAULT_PORT = 9100
DEFAULT_SERIAL_PORT = "COM1"
DEFAULT_BAUDRATE = 115200
DEFAULT_LISTEN = "0.0.0.0"
DEFAULT_IDLE_TIMEOUT = 300.0
DEFAULT_WRITE_TIMEOUT = 5.0


@dataclass(frozen=True)
class BridgeConfig:
    port: int = DEFAULT_PORT
    serial_port: str = DEFAULT_SERIAL_PORT
    baudrate: int = DEFAULT_BAUDRATE
    listen: str = DEFAULT_LISTEN
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT
    write_timeout: float = DEFAULT_WRITE_TIMEOUT
    verbose: bool = False


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser with the bridge options."""
    parser = argparse.ArgumentParser(
        prog="tcp2serial",
        description="Listen on a TCP port and dump the received bytes on a serial port.",
    )
    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help=f"TCP port to listen on, 1-65535 (default: {DEFAULT_PORT})",
    )
    parser.add_argument(
        "-s",
        "--serial-port",
        default=DEFAULT_SERIAL_PORT,
        help="Serial port to forward received bytes to, e.g. COM1, /dev/ttyUSB0 "
        f"(default: {DEFAULT_SERIAL_PORT})",
    )
    parser.add_argument(
        "-b",
        "--baudrate",
        type=int,
        default=DEFAULT_BAUDRATE,
        help=f"Serial port baud rate (default: {DEFAULT_BAUDRATE})",
    )
    parser.add_argument(
        "--listen",
        default=DEFAULT_LISTEN,
        help=f"TCP listen address (default: {DEFAULT_LISTEN})",
    )
    parser.add_argument(
        "--idle-timeout",
        type=float,
        default=DEFAULT_IDLE_TIMEOUT,
        help="Drop a client that sends nothing for this many seconds, 0 to disable "
        f"(default: {DEFAULT_IDLE_TIMEOUT:g})",
    )
    parser.add_argument(
        "--write-timeout",
        type=float,
        default=DEFAULT_WRITE_TIMEOUT,
        help="Serial write timeout in seconds, 0 to disable "
        f"(default: {DEFAULT_WRITE_TIMEOUT:g})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging (per-chunk byte counts)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> BridgeConfig:
    """Parse command-line arguments and return a validated BridgeConfig."""
    args = build_parser().parse_args(argv)
    _validate(args)
    return BridgeConfig(
        port=args.port,
        serial_port=args.serial_port,
        baudrate=args.baudrate,
        listen=args.listen,
        idle_timeout=args.idle_timeout,
        write_timeout=args.write_timeout,
        verbose=args.verbose,
    )


def _validate(args):
    """Validate parsed arguments; raise ValueError on invalid values."""
    if not (1 <= args.port <= 65535):
        raise ValueError(f"Invalid port number: {args.port}")
    if not (args.serial_port and args.serial_port.strip()):
        raise ValueError("Serial port (--serial-port) must be non-empty")
    if args.baudrate <= 0:
        raise ValueError("Baud rate (--baudrate) must be positive")
    if args.idle_timeout < 0:
        raise ValueError("Idle timeout (--idle-timeout) must not be negative")
    if args.write_timeout < 0:
        raise ValueError("Write timeout (--write-timeout) must not be negative")
