"""Device connections: serial port and TCP transports.

A DeviceConnection is an open channel to one device, owned
by a single command execution. disconnect() is idempotent.
"""
from __future__ import annotations

import abc
import os
import select
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import socket

READ_CHUNK_SIZE = 4096


class DeviceConnection(abc.ABC):
    """Open channel to one external device."""

    def __init__(self, address: str) -> None:
        self.address = address
        self._closed = False
        self._close_lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    @abc.abstractmethod
    def write(self, data: bytes) -> None:
        """Write all of data to the device."""

    @abc.abstractmethod
    def read_available(self, timeout: float) -> bytes:
        """Return bytes available within timeout, or b"" if none."""

    @abc.abstractmethod
    def _close(self) -> None:
        """Release the underlying OS resource."""

    def disconnect(self) -> None:
        """Close the connection. Calling it again is a no-op."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"{type(self).__name__}({self.address!r}, {state})"


class SerialConnection(DeviceConnection):
    """Serial device opened as a raw file descriptor."""

    def __init__(self, address: str, fd: int) -> None:
        super().__init__(address)
        self.fd = fd

    def write(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = os.write(self.fd, view)
            view = view[written:]

    def read_available(self, timeout: float) -> bytes:
        ready, _, _ = select.select([self.fd], [], [], timeout)
        if not ready:
            return b""
        return os.read(self.fd, READ_CHUNK_SIZE)

    def _close(self) -> None:
        os.close(self.fd)


class TcpConnection(DeviceConnection):
    """Device reachable over a TCP socket."""

    def __init__(self, address: str, sock: socket.socket) -> None:
        super().__init__(address)
        self.sock = sock

    def write(self, data: bytes) -> None:
        self.sock.sendall(data)

    def read_available(self, timeout: float) -> bytes:
        ready, _, _ = select.select([self.sock], [], [], timeout)
        if not ready:
            return b""
        chunk = self.sock.recv(READ_CHUNK_SIZE)
        if not chunk:
            msg = f"{self.address} closed the connection"
            raise ConnectionResetError(msg)
        return chunk

    def _close(self) -> None:
        self.sock.close()
