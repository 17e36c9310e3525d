"""Console commands -- relay device output to stdout.

console streams until interrupted or --duration elapses.
send writes --data to the device first, then relays the
reply the same way (a single read window when --duration
is 0).
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from returns.io import IOFailure, IOResult, IOSuccess

from devctl.dev_modules import io_ops
from devctl.dev_modules.errors import DevctlError
from devctl.dev_modules.relay import ConsoleReader

if TYPE_CHECKING:
    from devctl.dev_modules.connection import DeviceConnection
    from devctl.dev_modules.relay import ConsoleRelay
    from devctl.dev_modules.types import CommandContext

DISPLAY_INTERVAL_SECONDS = 0.05
REPLY_WINDOW_SECONDS = 0.5


def _no_connection(step_name: str) -> IOResult[None, DevctlError]:
    return IOFailure(
        DevctlError(
            step_name=step_name,
            error_type="NoConnectionError",
            message="No device connection available",
        ),
    )


def flush_relay(relay: ConsoleRelay) -> IOResult[None, DevctlError]:
    """Write every retained console chunk to stdout."""
    chunks = relay.drain_all()
    if not chunks:
        return IOSuccess(None)
    return io_ops.write_stdout(
        b"".join(chunks).decode("ascii"),
    )


def stream_console(
    ctx: CommandContext,
    conn: DeviceConnection,
) -> IOResult[None, DevctlError]:
    """Relay device output until ctx is done or the reader fails.

    The caller sets a deadline on ctx to bound the stream.
    """
    reader = ConsoleReader(conn, ctx.relay)
    reader.start()
    try:
        while not ctx.is_done():
            flushed = flush_relay(ctx.relay)
            if isinstance(flushed, IOFailure):
                return flushed
            if not reader.running:
                break
            ctx.wait(DISPLAY_INTERVAL_SECONDS)
    finally:
        reader.stop()

    flushed = flush_relay(ctx.relay)
    if isinstance(flushed, IOFailure):
        return flushed
    if reader.error is not None:
        return IOFailure(
            DevctlError(
                step_name="console",
                error_type="ReadError",
                message=f"Reading from {conn.address} failed: {reader.error}",
                context={"address": conn.address},
            ),
        )
    return IOSuccess(None)


def run_console(
    ctx: CommandContext,
    conn: DeviceConnection | None,
) -> IOResult[None, DevctlError]:
    """Show device console output until interrupted or --duration passes."""
    if conn is None:
        return _no_connection("console")
    io_ops.write_stderr(
        f"Connected to {conn.address}; press Ctrl-C to stop\n",
    )
    return stream_console(ctx.with_deadline(ctx.flags.duration), conn)


def send_data(
    ctx: CommandContext,
    conn: DeviceConnection | None,
) -> IOResult[None, DevctlError]:
    """Write --data plus newline to the device and show its output."""
    if conn is None:
        return _no_connection("send")
    payload = ctx.flags.data.encode("utf-8") + b"\n"
    try:
        conn.write(payload)
    except OSError as exc:
        return IOFailure(
            DevctlError(
                step_name="send",
                error_type="WriteError",
                message=f"Writing to {conn.address} failed: {exc}",
                context={"address": conn.address, "size": len(payload)},
            ),
        )

    if ctx.flags.duration > 0:
        return stream_console(ctx.with_deadline(ctx.flags.duration), conn)

    try:
        reply = conn.read_available(REPLY_WINDOW_SECONDS)
    except OSError as exc:
        return IOFailure(
            DevctlError(
                step_name="send",
                error_type="ReadError",
                message=f"Reading from {conn.address} failed: {exc}",
                context={"address": conn.address},
            ),
        )
    ctx.relay.offer(reply)
    return flush_relay(ctx.relay)
