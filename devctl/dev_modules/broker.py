"""Connection broker -- conditional device acquisition and release.

Decides per ConnectionRequirement whether a device
connection is opened before a handler runs, and guarantees
release afterwards via session().

Discovery policy: up to CONNECT_ATTEMPTS attempts spaced
CONNECT_RETRY_DELAY_SECONDS apart; each TCP attempt is
bounded by the --timeout flag. Malformed addresses are not
retried.
"""
from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

from returns.io import IOFailure, IOResult, IOSuccess
from returns.unsafe import unsafe_perform_io

from devctl.dev_modules import io_ops
from devctl.dev_modules.commands.types import ConnectionRequirement
from devctl.dev_modules.errors import CONNECTION_ERROR, DevctlError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from devctl.dev_modules.connection import DeviceConnection
    from devctl.dev_modules.types import GlobalFlags

CONNECT_ATTEMPTS = 3
CONNECT_RETRY_DELAY_SECONDS = 0.5
AUTO_PORT = "auto"
TCP_SCHEME = "tcp://"

_NOT_RETRYABLE = frozenset({"InvalidAddressError"})

logger = logging.getLogger("devctl.broker")


def _invalid_address(port: str, reason: str) -> IOResult[DeviceConnection, DevctlError]:
    return IOFailure(
        DevctlError(
            step_name="broker.open_device",
            error_type="InvalidAddressError",
            message=f"Invalid device address '{port}': {reason}",
            context={"port": port},
        ),
    )


def open_device(
    flags: GlobalFlags,
) -> IOResult[DeviceConnection, DevctlError]:
    """Open the device named by --port, one attempt.

    Empty or 'auto' picks the first detected serial port;
    tcp://host:port connects over TCP; anything else is a
    serial device path.
    """
    port = flags.port.strip()
    if port in ("", AUTO_PORT):
        ports_result = io_ops.list_serial_ports()
        if isinstance(ports_result, IOFailure):
            return ports_result
        ports = unsafe_perform_io(ports_result.unwrap())
        if not ports:
            return IOFailure(
                DevctlError(
                    step_name="broker.open_device",
                    error_type="DeviceNotFoundError",
                    message="No serial ports detected; use --port",
                    context={"port": port},
                ),
            )
        logger.debug("Auto-detected serial port %s", ports[0])
        return io_ops.open_serial_port(ports[0], flags.baud)

    if port.startswith(TCP_SCHEME):
        host, sep, port_text = port[len(TCP_SCHEME):].rpartition(":")
        if not sep or not host:
            return _invalid_address(port, "expected tcp://host:port")
        if not port_text.isdigit() or not 0 < int(port_text) < 65536:  # noqa: PLR2004
            return _invalid_address(port, f"bad TCP port '{port_text}'")
        return io_ops.open_tcp_connection(
            host, int(port_text), flags.timeout,
        )

    return io_ops.open_serial_port(port, flags.baud)


class ConnectionBroker:
    """Acquires and releases device connections for one command."""

    def __init__(
        self,
        attempts: int = CONNECT_ATTEMPTS,
        retry_delay_seconds: float = CONNECT_RETRY_DELAY_SECONDS,
    ) -> None:
        self.attempts = max(1, attempts)
        self.retry_delay_seconds = retry_delay_seconds

    def _connect(
        self,
        flags: GlobalFlags,
    ) -> IOResult[DeviceConnection, DevctlError]:
        """Try open_device with the retry policy."""
        attempt = 1
        result = open_device(flags)
        while isinstance(result, IOFailure):
            last = unsafe_perform_io(result.failure())
            logger.debug(
                "Connection attempt %d/%d failed: %s",
                attempt, self.attempts, last.message,
            )
            if last.error_type in _NOT_RETRYABLE or attempt >= self.attempts:
                return IOFailure(
                    DevctlError(
                        step_name="broker",
                        error_type=CONNECTION_ERROR,
                        message=f"Cannot connect to device: {last.message}",
                        context={
                            "port": flags.port,
                            "attempts": attempt,
                            "cause": last.to_dict(),
                        },
                    ),
                )
            io_ops.sleep_seconds(self.retry_delay_seconds)
            attempt += 1
            result = open_device(flags)
        return result

    def acquire_if_needed(
        self,
        requirement: ConnectionRequirement,
        flags: GlobalFlags,
    ) -> IOResult[DeviceConnection | None, DevctlError]:
        """Acquire a connection according to requirement.

        NOT_NEEDED never touches the device. REQUIRED returns
        IOFailure(ConnectionError) when no device can be
        opened. OPTIONAL downgrades that failure to
        IOSuccess(None).
        """
        if requirement is ConnectionRequirement.NOT_NEEDED:
            return IOSuccess(None)

        result = self._connect(flags)
        if isinstance(result, IOSuccess):
            conn = unsafe_perform_io(result.unwrap())
            logger.info("Connected to %s", conn.address)
            return IOSuccess(conn)

        if requirement is ConnectionRequirement.OPTIONAL:
            err = unsafe_perform_io(result.failure())
            logger.info("Continuing without device: %s", err.message)
            return IOSuccess(None)
        return result  # type: ignore[return-value]

    def release(
        self,
        conn: DeviceConnection,
    ) -> IOResult[None, DevctlError]:
        """Disconnect conn. A second call on the same connection is a no-op."""
        try:
            conn.disconnect()
        except OSError as exc:
            logger.warning("Releasing %s failed: %s", conn.address, exc)
            return IOFailure(
                DevctlError(
                    step_name="broker.release",
                    error_type=type(exc).__name__,
                    message=f"Failed to release {conn.address}: {exc}",
                    context={"address": conn.address},
                ),
            )
        logger.info("Released %s", conn.address)
        return IOSuccess(None)

    @contextlib.contextmanager
    def session(
        self,
        conn: DeviceConnection | None,
    ) -> Iterator[DeviceConnection | None]:
        """Hold conn for the enclosed block, releasing it on every exit path.

        A release failure is logged and never replaces an
        exception propagating out of the block.
        """
        try:
            yield conn
        finally:
            if conn is not None:
                self.release(conn)
