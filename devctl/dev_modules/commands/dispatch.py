"""Command dispatch -- central entry point for one devctl invocation.

lookup -> validate required flags -> acquire connection per
the command's requirement -> run handler -> release -> exit
code. Dispatch-phase failures short-circuit before any side
effect. Once a connection is acquired it is released on
every exit path, including handler errors and exceptions.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from returns.io import IOFailure, IOResult, IOSuccess
from returns.result import Failure
from returns.unsafe import unsafe_perform_io

from devctl.dev_modules import io_ops
from devctl.dev_modules.broker import ConnectionBroker
from devctl.dev_modules.commands.help import PROG_NAME, short_usage
from devctl.dev_modules.commands.registry import (
    DEFAULT_COMMAND_NAME,
    get_command,
)
from devctl.dev_modules.errors import USAGE_ERROR, DevctlError
from devctl.dev_modules.relay import ConsoleRelay
from devctl.dev_modules.types import CommandContext
from devctl.dev_modules.validate import check_required_flags

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from devctl.dev_modules.commands.types import CommandSpec
    from devctl.dev_modules.connection import DeviceConnection
    from devctl.dev_modules.types import GlobalFlags

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

logger = logging.getLogger("devctl.dispatch")


@dataclass(frozen=True)
class Dispatcher:
    """Runs exactly one command against an injected registry.

    default_command is used when no command name is given
    or the name is DEFAULT_COMMAND_NAME.
    """

    registry: Mapping[str, CommandSpec]
    default_command: CommandSpec
    broker: ConnectionBroker = field(default_factory=ConnectionBroker)
    relay: ConsoleRelay = field(default_factory=ConsoleRelay)

    def resolve(
        self,
        name: str,
    ) -> IOResult[CommandSpec, DevctlError]:
        """Map a command name to its spec, or fail with UsageError."""
        if not name or name == DEFAULT_COMMAND_NAME:
            return IOSuccess(self.default_command)
        spec = get_command(name, self.registry)
        if spec is None:
            return IOFailure(
                DevctlError(
                    step_name="dispatch",
                    error_type=USAGE_ERROR,
                    message=(
                        f'Unknown command: {name}.'
                        f' Run "{PROG_NAME} help"'
                    ),
                    context={"command_name": name},
                ),
            )
        return IOSuccess(spec)

    def _invoke(
        self,
        spec: CommandSpec,
        ctx: CommandContext,
        conn: DeviceConnection | None,
    ) -> IOResult[None, DevctlError]:
        """Call the handler, annotating any failure with the command name."""
        try:
            result = spec.handler(ctx, conn)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Handler for %s raised", spec.name)
            return IOFailure(
                DevctlError(
                    step_name=spec.name,
                    error_type=type(exc).__name__,
                    message=str(exc) or type(exc).__name__,
                ).annotate(spec.name),
            )
        if isinstance(result, IOFailure):
            err = unsafe_perform_io(result.failure())
            return IOFailure(err.annotate(spec.name))
        return IOSuccess(None)

    def dispatch(
        self,
        args: Sequence[str],
        flags: GlobalFlags,
        cancel_event: threading.Event | None = None,
    ) -> IOResult[None, DevctlError]:
        """Run the command named by args[0] and return its outcome."""
        name = args[0] if args else ""
        resolved = self.resolve(name)
        if isinstance(resolved, IOFailure):
            return resolved  # type: ignore[return-value]
        spec = unsafe_perform_io(resolved.unwrap())

        checked = check_required_flags(spec.required, flags)
        if isinstance(checked, Failure):
            return IOFailure(checked.failure())

        acquired = self.broker.acquire_if_needed(spec.connection, flags)
        if isinstance(acquired, IOFailure):
            return acquired  # type: ignore[return-value]
        conn = unsafe_perform_io(acquired.unwrap())

        with self.broker.session(conn):
            ctx = CommandContext(
                command_name=spec.name,
                flags=flags,
                relay=self.relay,
                registry=self.registry,
                args=tuple(args[1:]),
                cancel_event=cancel_event or threading.Event(),
            )
            logger.info("Running %s (device: %s)", spec.name, conn)
            return self._invoke(spec, ctx, conn)

    def run(
        self,
        args: Sequence[str],
        flags: GlobalFlags,
        cancel_event: threading.Event | None = None,
    ) -> int:
        """Dispatch and map the outcome to a process exit code.

        Errors are written to stderr; unknown commands also
        print short usage.
        """
        result = self.dispatch(args, flags, cancel_event)
        if isinstance(result, IOSuccess):
            return EXIT_SUCCESS

        err = unsafe_perform_io(result.failure())
        logger.info("Error: %s", err)
        if err.error_type == USAGE_ERROR:
            io_ops.write_stderr(f"{err.message}\n{short_usage()}")
        else:
            io_ops.write_stderr(f"Error: {err.message}\n")
        return EXIT_FAILURE
