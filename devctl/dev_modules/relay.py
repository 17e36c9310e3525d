"""Console relay for incidental device output.

A bounded, non-blocking queue of byte chunks shared by one
producer (ConsoleReader, reading the device in a background
thread) and one consumer (a command displaying console
output). When the queue is full new chunks are dropped so
the producer never stalls; nothing else depends on this
data.
"""
from __future__ import annotations

import logging
import queue
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from devctl.dev_modules.connection import DeviceConnection

RELAY_CAPACITY = 10
READ_POLL_SECONDS = 0.1

_TEXT_BYTES = frozenset(range(0x20, 0x7F)) | {0x09, 0x0A, 0x0D}

logger = logging.getLogger("devctl.relay")


def remove_non_text(chunk: bytes) -> bytes:
    """Drop every byte that is not printable ASCII, tab or newline."""
    return bytes(b for b in chunk if b in _TEXT_BYTES)


class ConsoleRelay:
    """Fixed-capacity relay of console chunks.

    offer() never blocks and never grows the queue past
    capacity. Retained chunks keep arrival order.
    """

    def __init__(self, capacity: int = RELAY_CAPACITY) -> None:
        if capacity < 1:
            msg = f"Relay capacity must be positive, got {capacity}"
            raise ValueError(msg)
        self._queue: queue.Queue[bytes] = queue.Queue(maxsize=capacity)
        self._capacity = capacity
        self._lock = threading.Lock()
        self._dropped = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def dropped(self) -> int:
        """Number of chunks shed because the relay was full."""
        with self._lock:
            return self._dropped

    def __len__(self) -> int:
        return self._queue.qsize()

    def offer(self, chunk: bytes) -> bool:
        """Enqueue the text part of chunk without blocking.

        Returns False when nothing was enqueued: the chunk had
        no text bytes, or the relay was full.
        """
        text = remove_non_text(chunk)
        if not text:
            return False
        try:
            self._queue.put_nowait(text)
        except queue.Full:
            with self._lock:
                self._dropped += 1
            return False
        return True

    def drain(self) -> bytes | None:
        """Return the oldest retained chunk, or None when empty."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def drain_all(self) -> list[bytes]:
        """Return every retained chunk in arrival order."""
        chunks: list[bytes] = []
        while (chunk := self.drain()) is not None:
            chunks.append(chunk)
        return chunks


class ConsoleReader:
    """Background producer feeding device output into a relay.

    Runs a daemon thread that polls the connection and offers
    each chunk. Stops on stop(), on a closed connection, or on
    the first read error.
    """

    def __init__(
        self,
        connection: DeviceConnection,
        relay: ConsoleRelay,
        poll_seconds: float = READ_POLL_SECONDS,
    ) -> None:
        self._connection = connection
        self._relay = relay
        self._poll_seconds = poll_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.error: OSError | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run,
            name=f"console-reader:{self._connection.address}",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stop.is_set() and not self._connection.closed:
            try:
                chunk = self._connection.read_available(self._poll_seconds)
            except OSError as exc:
                self.error = exc
                logger.warning(
                    "Console read from %s failed: %s",
                    self._connection.address, exc,
                )
                return
            if chunk and not self._relay.offer(chunk):
                logger.debug("Console chunk dropped (%d bytes)", len(chunk))
