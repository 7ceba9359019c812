"""Asyncio entry points: bind the listener and run the supervisor."""

import asyncio
import logging
import socket

from tcp2serial.config import BridgeConfig
from tcp2serial.errors import ListenError
from tcp2serial.supervisor import Supervisor

logger = logging.getLogger("tcp2serial")


def create_listener(host: str, port: int) -> socket.socket:
    """Bind a non-blocking TCP listening socket; raise ListenError on failure."""
    try:
        sock = socket.create_server((host, port))
    except OSError as e:
        raise ListenError(f"Can not listen on TCP port {port}: {e}") from e
    sock.setblocking(False)
    return sock


def setup_logging(verbose: bool = False) -> None:
    """Log to stderr at INFO, or DEBUG when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


async def run_bridge_async(config: BridgeConfig) -> None:
    """Listen on the configured port and bridge clients until cancelled."""
    listener = create_listener(config.listen, config.port)
    logger.info("Listening on %s:%d", config.listen, config.port)
    supervisor = Supervisor(
        listener,
        config.serial_port,
        config.baudrate,
        idle_timeout=config.idle_timeout,
        write_timeout=config.write_timeout,
    )
    try:
        await supervisor.run()
    finally:
        listener.close()
        logger.info("Listener closed")


def run_bridge(config: BridgeConfig) -> None:
    """Synchronous entry: run the asyncio bridge until interrupted."""
    setup_logging(config.verbose)
    try:
        asyncio.run(run_bridge_async(config))
    except KeyboardInterrupt:
        pass
