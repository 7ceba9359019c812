"""Shared fixtures: an in-memory serial device and a running bridge on loopback."""

import asyncio
import contextlib
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

import pytest
import pytest_asyncio

from tcp2serial.bridge import create_listener
from tcp2serial.errors import SerialOpenError, SerialWriteError
from tcp2serial.supervisor import Supervisor


class FakeLink:
    """Stands in for SerialLink; records every byte written through it."""

    def __init__(self, device: "FakeSerialDevice"):
        self._device = device
        self.data = bytearray()
        self.is_open = True

    def write(self, data) -> None:
        if self._device.fail_writes:
            raise SerialWriteError("fake0: write failed")
        self.data += bytes(data)
        self._device.received += bytes(data)

    def close(self) -> None:
        if self.is_open:
            self.is_open = False
            self._device.open_links -= 1


class FakeSerialDevice:
    def __init__(self):
        self.available = True
        self.fail_writes = False
        # When set, open() blocks until the event is set.
        self.open_gate: Optional[threading.Event] = None
        self.received = bytearray()
        self.links: List[FakeLink] = []
        self.open_links = 0
        self.max_open_links = 0

    def open(self, device: str, baud: int, write_timeout: Optional[float] = None) -> FakeLink:
        if self.open_gate is not None:
            self.open_gate.wait(5.0)
        if not self.available:
            raise SerialOpenError(f"{device}: device not present")
        link = FakeLink(self)
        self.links.append(link)
        self.open_links += 1
        self.max_open_links = max(self.max_open_links, self.open_links)
        return link


@dataclass
class Harness:
    supervisor: Supervisor
    port: int
    device: FakeSerialDevice
    task: asyncio.Task

    async def connect(self):
        return await asyncio.open_connection("127.0.0.1", self.port)


async def _wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def wait_until():
    return _wait_until


@pytest.fixture
def fake_serial():
    return FakeSerialDevice()


@pytest_asyncio.fixture
async def start_bridge(fake_serial):
    running = []

    async def _start(**kwargs) -> Harness:
        listener = create_listener("127.0.0.1", 0)
        supervisor = Supervisor(listener, "fake0", 9600, open_serial=fake_serial.open, **kwargs)
        task = asyncio.create_task(supervisor.run())
        running.append((task, listener))
        return Harness(supervisor, listener.getsockname()[1], fake_serial, task)

    yield _start

    for task, listener in running:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        listener.close()


@pytest_asyncio.fixture
async def bridge(start_bridge):
    return await start_bridge()
