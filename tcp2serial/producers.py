"""Event producers feeding the supervisor: the acceptor and the connection reader.

Both producers follow the same hand-off discipline: emit exactly one event on
the shared queue, then park until the supervisor grants (or revokes)
permission to produce the next one.
"""

import asyncio
import logging
import socket
from dataclasses import dataclass
from typing import Optional, Union

logger = logging.getLogger("tcp2serial")


class Permit:
    """One-slot continue signal handed from the supervisor to a producer."""

    def __init__(self):
        self._slot: "asyncio.Queue[bool]" = asyncio.Queue(maxsize=1)

    def grant(self) -> None:
        """Let the producer emit its next event."""
        # QueueFull here means permission was granted twice for one event.
        self._slot.put_nowait(True)

    def revoke(self) -> None:
        """Tell the producer to stop."""
        self._slot.put_nowait(False)

    async def wait(self) -> bool:
        """Block until granted (True) or revoked (False)."""
        return await self._slot.get()


@dataclass
class Connection:
    """An accepted TCP client wrapped in asyncio streams."""

    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    peer: tuple

    @property
    def peer_name(self) -> str:
        return f"{self.peer[0]}:{self.peer[1]}"

    async def close(self) -> None:
        """Close the connection, logging (not raising) close failures."""
        logger.info("Closing connection %s...", self.peer_name)
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError as e:
            logger.warning("Failed to close connection %s: %s", self.peer_name, e)
        else:
            logger.info("Connection %s successfully closed", self.peer_name)


@dataclass
class AcceptEvent:
    connection: Optional[Connection] = None
    error: Optional[BaseException] = None


@dataclass
class ReadEvent:
    count: int = 0
    error: Optional[BaseException] = None


Event = Union[AcceptEvent, ReadEvent]


class Acceptor:
    """Accept one client at a time from a non-blocking listening socket."""

    def __init__(self, listener: socket.socket, events: "asyncio.Queue[Event]"):
        self._listener = listener
        self._events = events
        self.permit = Permit()

    async def _accept(self) -> Connection:
        loop = asyncio.get_running_loop()
        sock, addr = await loop.sock_accept(self._listener)
        try:
            reader, writer = await asyncio.open_connection(sock=sock)
        except BaseException:
            sock.close()
            raise
        return Connection(reader, writer, addr)

    async def run(self) -> None:
        while True:
            logger.info("Waiting for connection...")
            try:
                conn = await self._accept()
            except OSError as e:
                event = AcceptEvent(error=e)
            else:
                logger.info("Connection accepted from %s", conn.peer_name)
                event = AcceptEvent(connection=conn)
            await self._events.put(event)
            if not await self.permit.wait():
                return


class ConnectionReader:
    """Read from one connection into the shared buffer, one chunk per permit.

    A fresh reader is created for every connection. End of stream is
    reported as an EOFError event, a read deadline miss as TimeoutError.
    """

    def __init__(
        self,
        connection: Connection,
        buffer: bytearray,
        events: "asyncio.Queue[Event]",
        idle_timeout: Optional[float] = None,
    ):
        self._connection = connection
        self._buffer = buffer
        self._events = events
        self._idle_timeout = idle_timeout or None
        self.permit = Permit()

    async def _read(self) -> int:
        try:
            data = await asyncio.wait_for(
                self._connection.reader.read(len(self._buffer)), self._idle_timeout
            )
        except asyncio.TimeoutError:
            raise TimeoutError(f"no data received for {self._idle_timeout}s") from None
        if not data:
            raise EOFError("connection closed by peer")
        n = len(data)
        self._buffer[:n] = data
        return n

    async def run(self) -> None:
        while True:
            try:
                event = ReadEvent(count=await self._read())
            except (OSError, EOFError) as e:
                event = ReadEvent(error=e)
            await self._events.put(event)
            if not await self.permit.wait():
                return
