"""Connection-lifecycle supervisor: the single consumer of acceptor and reader events."""

import asyncio
import enum
import logging
import socket
from typing import Callable, Optional

from tcp2serial.errors import SerialOpenError, SerialWriteError
from tcp2serial.producers import (
    AcceptEvent,
    Acceptor,
    Connection,
    ConnectionReader,
    Event,
    ReadEvent,
)
from tcp2serial.serial_link import SerialLink

logger = logging.getLogger("tcp2serial")

BUFFER_SIZE = 1024

SerialOpener = Callable[[str, int, Optional[float]], SerialLink]


def _close_abandoned_link(opening: "asyncio.Future") -> None:
    """Close a serial link whose open finished after its caller went away."""
    if not opening.cancelled() and opening.exception() is None:
        opening.result().close()


class State(enum.Enum):
    IDLE = "idle"
    ACTIVE = "active"


class Supervisor:
    """Bridge one TCP connection at a time to the serial device.

    Events from the acceptor and the current reader are merged into one
    queue and handled strictly one after another. A producer only resumes
    after the event it emitted has been fully processed, so the shared read
    buffer is never written while it is being forwarded.
    """

    def __init__(
        self,
        listener: socket.socket,
        device: str,
        baud: int,
        *,
        idle_timeout: Optional[float] = None,
        write_timeout: Optional[float] = None,
        open_serial: SerialOpener = SerialLink.open,
    ):
        self._listener = listener
        self._device = device
        self._baud = baud
        self._idle_timeout = idle_timeout
        self._write_timeout = write_timeout
        self._open_serial = open_serial

        self._events: "asyncio.Queue[Event]" = asyncio.Queue()
        self._buffer = bytearray(BUFFER_SIZE)
        self._acceptor = Acceptor(listener, self._events)
        self._acceptor_task: Optional[asyncio.Task] = None

        self.state = State.IDLE
        self.connection_count = 0
        self._connection: Optional[Connection] = None
        self._serial: Optional[SerialLink] = None
        self._reader: Optional[ConnectionReader] = None
        self._reader_task: Optional[asyncio.Task] = None

    @property
    def connection(self) -> Optional[Connection]:
        return self._connection

    @property
    def serial(self) -> Optional[SerialLink]:
        return self._serial

    async def run(self) -> None:
        """Process events until cancelled."""
        self._acceptor_task = asyncio.create_task(self._acceptor.run())
        try:
            while True:
                event = await self._events.get()
                if isinstance(event, AcceptEvent):
                    await self._on_accept(event)
                else:
                    await self._on_read(event)
        finally:
            await self._shutdown()

    def _set_state(self, state: State, reason: str) -> None:
        logger.info("%s -> %s (%s)", self.state.name, state.name, reason)
        self.state = state

    async def _on_accept(self, event: AcceptEvent) -> None:
        if event.error is not None:
            logger.error("Failed to accept the connection: %s", event.error)
            self._acceptor.permit.grant()
            return

        conn = event.connection
        opening = asyncio.ensure_future(
            asyncio.to_thread(self._open_serial, self._device, self._baud, self._write_timeout)
        )
        try:
            link = await asyncio.shield(opening)
        except SerialOpenError as e:
            self.connection_count += 1
            logger.error("Failed to open serial port, rejecting %s: %s", conn.peer_name, e)
            await conn.close()
            self._acceptor.permit.grant()
            return
        except BaseException:
            # The worker thread may still hand back an open link.
            opening.add_done_callback(_close_abandoned_link)
            await conn.close()
            raise

        self.connection_count += 1
        self._connection = conn
        self._serial = link
        self._reader = ConnectionReader(conn, self._buffer, self._events, self._idle_timeout)
        self._reader_task = asyncio.create_task(self._reader.run())
        self._set_state(State.ACTIVE, f"client {conn.peer_name}")

    async def _on_read(self, event: ReadEvent) -> None:
        if event.error is not None:
            if isinstance(event.error, EOFError):
                logger.info("Client %s disconnected", self._connection.peer_name)
                await self._teardown("peer closed")
            else:
                logger.error("Error reading from connection: %s", event.error)
                await self._teardown("read error")
            return

        chunk = memoryview(self._buffer)[: event.count]
        try:
            await asyncio.to_thread(self._serial.write, chunk)
        except SerialWriteError as e:
            logger.error("Error writing to serial port: %s", e)
            await self._teardown("write error")
            return
        logger.debug("Forwarded %d bytes to %s", event.count, self._device)
        self._reader.permit.grant()

    async def _teardown(self, reason: str) -> None:
        # Fields are cleared only after both sides are closed; _shutdown
        # closes whatever is still set.
        self._reader.permit.revoke()
        await self._reader_task
        await self._connection.close()
        await asyncio.to_thread(self._serial.close)
        self._connection = self._serial = None
        self._reader = self._reader_task = None
        self._set_state(State.IDLE, reason)
        self._acceptor.permit.grant()

    async def _shutdown(self) -> None:
        tasks = [t for t in (self._acceptor_task, self._reader_task) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        # Accepted but never handled.
        while not self._events.empty():
            event = self._events.get_nowait()
            if isinstance(event, AcceptEvent) and event.connection is not None:
                await event.connection.close()

        if self._connection is not None:
            await self._connection.close()
        if self._serial is not None:
            self._serial.close()
        self._connection = self._serial = None
        self._reader = self._reader_task = None
        if self.state is State.ACTIVE:
            self._set_state(State.IDLE, "shutdown")
