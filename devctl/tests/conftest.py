"""Shared test fixtures for the devctl test suite."""
from __future__ import annotations

import threading
import time

import pytest

from devctl.dev_modules.connection import DeviceConnection
from devctl.dev_modules.relay import ConsoleRelay
from devctl.dev_modules.types import CommandContext, GlobalFlags


class FakeConnection(DeviceConnection):
    """In-memory DeviceConnection recording writes and closes."""

    def __init__(
        self,
        address: str = "/dev/ttyFAKE0",
        replies: list[bytes] | None = None,
    ) -> None:
        super().__init__(address)
        self.written: list[bytes] = []
        self.replies = list(replies or [])
        self.close_count = 0
        self.write_error: OSError | None = None
        self.read_error: OSError | None = None
        self.close_error: OSError | None = None

    def write(self, data: bytes) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.written.append(data)

    def read_available(self, timeout: float) -> bytes:
        if self.read_error is not None:
            raise self.read_error
        if self.replies:
            return self.replies.pop(0)
        time.sleep(min(timeout, 0.01))
        return b""

    def _close(self) -> None:
        self.close_count += 1
        if self.close_error is not None:
            raise self.close_error


@pytest.fixture
def flags() -> GlobalFlags:
    """Return GlobalFlags with every value at its default."""
    return GlobalFlags()


@pytest.fixture
def relay() -> ConsoleRelay:
    """Return an empty ConsoleRelay of default capacity."""
    return ConsoleRelay()


@pytest.fixture
def fake_conn() -> FakeConnection:
    """Return an open in-memory device connection."""
    return FakeConnection()


@pytest.fixture
def command_context(
    flags: GlobalFlags,
    relay: ConsoleRelay,
) -> CommandContext:
    """Return a CommandContext with default flags and a fresh relay."""
    return CommandContext(
        command_name="test",
        flags=flags,
        relay=relay,
        cancel_event=threading.Event(),
    )
