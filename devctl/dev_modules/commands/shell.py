"""Interactive shell -- the default mode when no command is given.

Runs with or without a device. Reads one line at a time
from stdin and prints any captured console output between
lines.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from returns.io import IOFailure, IOResult, IOSuccess
from returns.unsafe import unsafe_perform_io

from devctl.dev_modules import io_ops
from devctl.dev_modules.commands.console import flush_relay
from devctl.dev_modules.errors import DevctlError
from devctl.dev_modules.relay import ConsoleReader

if TYPE_CHECKING:
    from devctl.dev_modules.connection import DeviceConnection
    from devctl.dev_modules.types import CommandContext

PROMPT = "devctl> "
QUIT_WORDS = frozenset({"quit", "exit"})

SHELL_HELP = (
    "Shell commands:\n"
    "  status       Show the device connection\n"
    "  send TEXT    Send TEXT plus newline to the device\n"
    "  help         Show this help\n"
    "  quit, exit   Leave the shell\n"
)


def _status_line(conn: DeviceConnection | None) -> str:
    if conn is None:
        return "No device connected\n"
    return f"Connected to {conn.address}\n"


def handle_line(
    line: str,
    conn: DeviceConnection | None,
) -> IOResult[bool, DevctlError]:
    """Execute one shell line.

    Returns IOSuccess(False) when the shell should exit.
    Device write errors end the shell with IOFailure.
    """
    word, _, rest = line.strip().partition(" ")
    if not word:
        return IOSuccess(True)  # noqa: FBT003
    if word in QUIT_WORDS:
        return IOSuccess(False)  # noqa: FBT003
    if word == "help":
        return io_ops.write_stdout(SHELL_HELP).map(lambda _: True)
    if word == "status":
        return io_ops.write_stdout(_status_line(conn)).map(lambda _: True)
    if word == "send":
        if conn is None:
            return io_ops.write_stdout(
                "No device connected; cannot send\n",
            ).map(lambda _: True)
        try:
            conn.write(rest.encode("utf-8") + b"\n")
        except OSError as exc:
            return IOFailure(
                DevctlError(
                    step_name="shell",
                    error_type="WriteError",
                    message=f"Writing to {conn.address} failed: {exc}",
                    context={"address": conn.address},
                ),
            )
        return IOSuccess(True)  # noqa: FBT003
    return io_ops.write_stdout(
        f"Unknown shell command: {word}. Type 'help'.\n",
    ).map(lambda _: True)


def run_shell(
    ctx: CommandContext,
    conn: DeviceConnection | None,
) -> IOResult[None, DevctlError]:
    """Run the interactive shell until EOF, quit or cancellation."""
    reader = ConsoleReader(conn, ctx.relay) if conn is not None else None
    if reader is not None:
        reader.start()
    try:
        banner = io_ops.write_stdout(f"devctl shell: {_status_line(conn)}")
        if isinstance(banner, IOFailure):
            return banner
        while not ctx.is_done():
            flushed = flush_relay(ctx.relay)
            if isinstance(flushed, IOFailure):
                return flushed
            line_result = io_ops.read_input_line(PROMPT)
            if isinstance(line_result, IOFailure):
                return line_result
            line = unsafe_perform_io(line_result.unwrap())
            if line is None:
                break
            handled = handle_line(line, conn)
            if isinstance(handled, IOFailure):
                return handled  # type: ignore[return-value]
            if not unsafe_perform_io(handled.unwrap()):
                break
    finally:
        if reader is not None:
            reader.stop()
    return flush_relay(ctx.relay)
