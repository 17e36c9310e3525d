"""Informational commands: version, ports, probe."""
from __future__ import annotations

from typing import TYPE_CHECKING

from returns.io import IOFailure, IOResult
from returns.unsafe import unsafe_perform_io

from devctl import __version__
from devctl.dev_modules import io_ops
from devctl.dev_modules.commands.help import TAGLINE

if TYPE_CHECKING:
    from devctl.dev_modules.connection import DeviceConnection
    from devctl.dev_modules.errors import DevctlError
    from devctl.dev_modules.types import CommandContext


def show_version(
    ctx: CommandContext,  # noqa: ARG001
    conn: DeviceConnection | None,  # noqa: ARG001
) -> IOResult[None, DevctlError]:
    """Print the tool name and version."""
    return io_ops.write_stdout(f"{TAGLINE}\nVersion: {__version__}\n")


def show_ports(
    ctx: CommandContext,  # noqa: ARG001
    conn: DeviceConnection | None,  # noqa: ARG001
) -> IOResult[None, DevctlError]:
    """Print detected serial ports, one per line."""
    ports_result = io_ops.list_serial_ports()
    if isinstance(ports_result, IOFailure):
        return ports_result
    ports = unsafe_perform_io(ports_result.unwrap())
    if not ports:
        return io_ops.write_stdout("No serial ports found\n")
    return io_ops.write_stdout("\n".join(ports) + "\n")


def probe_device(
    ctx: CommandContext,  # noqa: ARG001
    conn: DeviceConnection | None,
) -> IOResult[None, DevctlError]:
    """Report whether a device could be reached."""
    if conn is None:
        return io_ops.write_stdout("No device connected\n")
    return io_ops.write_stdout(f"Device connected: {conn.address}\n")
