"""I/O boundary module -- ALL external I/O goes through here.

This is the single mock point for the test suite. Dispatch
code never touches ports, sockets, stdio or signals
directly; it calls io_ops functions, which return IOResult
and never raise.
"""
from __future__ import annotations

import fcntl
import glob
import os
import signal
import socket
import sys
import termios
import time
import tty
from pathlib import Path
from typing import TYPE_CHECKING, Any

from returns.io import IOFailure, IOResult, IOSuccess

from devctl.dev_modules.connection import SerialConnection, TcpConnection
from devctl.dev_modules.errors import DevctlError

if TYPE_CHECKING:
    from collections.abc import Callable

_SERIAL_PORT_PATTERNS: tuple[str, ...] = (
    "/dev/ttyUSB*",
    "/dev/ttyACM*",
    "/dev/cu.usbserial*",
    "/dev/cu.usbmodem*",
    "/dev/cu.SLAB_USBtoUART*",
    "/dev/cu.wchusbserial*",
)

_BAUD_RATES: dict[int, int] = {
    9600: termios.B9600,
    19200: termios.B19200,
    38400: termios.B38400,
    57600: termios.B57600,
    115200: termios.B115200,
    230400: termios.B230400,
}


def _os_failure(
    step_name: str,
    exc: OSError,
    message: str,
    context: dict[str, object],
) -> IOResult[Any, DevctlError]:
    """Build an IOFailure for an OSError at this boundary."""
    return IOFailure(
        DevctlError(
            step_name=step_name,
            error_type=type(exc).__name__,
            message=message,
            context=context,
        ),
    )


def _configure_raw(fd: int, baud: int) -> None:
    """Put fd in raw mode at the given baud rate.

    Modem control lines are ignored (CLOCAL) and the fd is
    switched back to blocking I/O once configured.
    """
    tty.setraw(fd)
    attrs = termios.tcgetattr(fd)
    speed = _BAUD_RATES.get(baud, termios.B115200)
    attrs[2] |= termios.CLOCAL | termios.CREAD
    attrs[4] = speed
    attrs[5] = speed
    termios.tcsetattr(fd, termios.TCSANOW, attrs)
    flags = fcntl.fcntl(fd, fcntl.F_GETFL)
    fcntl.fcntl(fd, fcntl.F_SETFL, flags & ~os.O_NONBLOCK)


def open_serial_port(
    path: str,
    baud: int,
) -> IOResult[SerialConnection, DevctlError]:
    """Open a serial device in raw mode. Returns IOResult, never raises.

    The open itself is non-blocking so a port without carrier
    detect fails or succeeds immediately.
    """
    try:
        fd = os.open(path, os.O_RDWR | os.O_NOCTTY | os.O_NONBLOCK)
    except FileNotFoundError as exc:
        return _os_failure(
            "io_ops.open_serial_port", exc,
            f"Serial port not found: {path}",
            {"port": path},
        )
    except PermissionError as exc:
        return _os_failure(
            "io_ops.open_serial_port", exc,
            f"Permission denied opening serial port: {path}",
            {"port": path},
        )
    except OSError as exc:
        return _os_failure(
            "io_ops.open_serial_port", exc,
            f"OS error opening {path}: {exc}",
            {"port": path},
        )
    try:
        _configure_raw(fd, baud)
    except Exception as exc:  # noqa: BLE001
        os.close(fd)
        return IOFailure(
            DevctlError(
                step_name="io_ops.open_serial_port",
                error_type="SerialConfigError",
                message=f"Cannot configure {path} at {baud} baud: {exc}",
                context={"port": path, "baud": baud},
            ),
        )
    return IOSuccess(SerialConnection(path, fd))


def open_tcp_connection(
    host: str,
    port: int,
    timeout: float,
) -> IOResult[TcpConnection, DevctlError]:
    """Connect to host:port within timeout. Returns IOResult, never raises."""
    address = f"tcp://{host}:{port}"
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except TimeoutError as exc:
        return _os_failure(
            "io_ops.open_tcp_connection", exc,
            f"Timed out after {timeout}s connecting to {address}",
            {"address": address, "timeout": timeout},
        )
    except OSError as exc:
        return _os_failure(
            "io_ops.open_tcp_connection", exc,
            f"Cannot connect to {address}: {exc}",
            {"address": address},
        )
    sock.settimeout(None)
    return IOSuccess(TcpConnection(address, sock))


def list_serial_ports() -> IOResult[list[str], DevctlError]:
    """Return detected serial port paths, sorted. Never raises."""
    try:
        found: set[str] = set()
        for pattern in _SERIAL_PORT_PATTERNS:
            found.update(glob.glob(pattern))
    except OSError as exc:
        return _os_failure(
            "io_ops.list_serial_ports", exc,
            f"Cannot enumerate serial ports: {exc}",
            {},
        )
    return IOSuccess(sorted(found))


def change_directory(path: str) -> IOResult[None, DevctlError]:
    """Change the working directory. Returns IOResult, never raises."""
    try:
        os.chdir(path)
    except OSError as exc:
        return _os_failure(
            "io_ops.change_directory", exc,
            f"Cannot change directory to {path}: {exc}",
            {"path": path},
        )
    return IOSuccess(None)


def ensure_directory(path: str) -> IOResult[Path, DevctlError]:
    """Create path (and parents) if missing; return it expanded."""
    target = Path(path).expanduser()
    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        return _os_failure(
            "io_ops.ensure_directory", exc,
            f"Cannot create directory {target}: {exc}",
            {"path": str(target)},
        )
    return IOSuccess(target)


def write_stdout(message: str) -> IOResult[None, DevctlError]:
    """Write message to stdout and flush. Returns IOResult, never raises."""
    try:
        sys.stdout.write(message)
        sys.stdout.flush()
    except OSError as exc:
        return _os_failure(
            "io_ops.write_stdout", exc,
            f"Failed to write to stdout: {exc}",
            {"original_message": message},
        )
    return IOSuccess(None)


def write_stderr(message: str) -> IOResult[None, DevctlError]:
    """Write message to stderr. Returns IOResult, never raises."""
    try:
        sys.stderr.write(message)
    except OSError as exc:
        return IOFailure(
            DevctlError(
                step_name="io_ops.write_stderr",
                error_type="StderrWriteError",
                message=f"Failed to write to stderr: {exc}",
                context={"original_message": message},
            ),
        )
    return IOSuccess(None)


def read_input_line(prompt: str = "") -> IOResult[str | None, DevctlError]:
    """Read one line from stdin. IOSuccess(None) on EOF."""
    try:
        if prompt:
            sys.stdout.write(prompt)
            sys.stdout.flush()
        line = sys.stdin.readline()
    except OSError as exc:
        return _os_failure(
            "io_ops.read_input_line", exc,
            f"Failed to read from stdin: {exc}",
            {},
        )
    if not line:
        return IOSuccess(None)
    return IOSuccess(line.rstrip("\r\n"))


def sleep_seconds(
    seconds: float,
) -> IOResult[None, DevctlError]:
    """Sleep for specified seconds. Returns IOResult, never raises."""
    try:
        time.sleep(seconds)
    except OSError as exc:
        return _os_failure(
            "io_ops.sleep_seconds", exc,
            f"Sleep interrupted: {exc}",
            {"seconds": seconds},
        )
    return IOSuccess(None)


def install_interrupt_handler(
    callback: Callable[[], None],
) -> IOResult[object, DevctlError]:
    """Route SIGINT to callback. Returns the previous handler.

    Only possible from the main thread; elsewhere returns
    IOFailure and leaves the default handler in place.
    """

    def _on_signal(signum: int, frame: object) -> None:  # noqa: ARG001
        callback()

    try:
        previous = signal.signal(signal.SIGINT, _on_signal)
    except ValueError as exc:
        return IOFailure(
            DevctlError(
                step_name="io_ops.install_interrupt_handler",
                error_type="SignalError",
                message=f"Cannot install SIGINT handler: {exc}",
                context={},
            ),
        )
    return IOSuccess(previous)


def restore_interrupt_handler(
    previous: object,
) -> IOResult[None, DevctlError]:
    """Reinstate a SIGINT handler returned by install_interrupt_handler."""
    try:
        signal.signal(signal.SIGINT, previous)  # type: ignore[arg-type]
    except (ValueError, TypeError) as exc:
        return IOFailure(
            DevctlError(
                step_name="io_ops.restore_interrupt_handler",
                error_type="SignalError",
                message=f"Cannot restore SIGINT handler: {exc}",
                context={},
            ),
        )
    return IOSuccess(None)
