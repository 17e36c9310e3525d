"""devctl command-line entry point.

Parses global flags, performs process initialization
(working directory, state directory, logging), wires
Ctrl-C to command cancellation, and runs one command through
the Dispatcher.

Usage:
    devctl                                   # interactive shell
    devctl help --full                       # all commands and flags
    devctl --port /dev/ttyUSB0 console       # device console
    devctl send --data "hello" --port tcp://10.0.0.7:23
    DEVCTL_PORT=/dev/ttyACM0 devctl probe    # flags from environment

A first Ctrl-C asks the running command to stop; a second one
interrupts it outright. Either way the device connection is
released before exit.
"""
from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING, Any

import click
from click.core import ParameterSource
from returns.io import IOFailure, IOResult, IOSuccess
from returns.unsafe import unsafe_perform_io

from devctl import __version__
from devctl.dev_modules import io_ops
from devctl.dev_modules.commands.dispatch import (
    EXIT_FAILURE,
    Dispatcher,
)
from devctl.dev_modules.commands.registry import (
    DEFAULT_COMMAND_NAME,
    load_registry,
)
from devctl.dev_modules.errors import INITIALIZATION_ERROR, DevctlError
from devctl.dev_modules.logging_setup import setup_logging
from devctl.dev_modules.types import ENV_PREFIX, GlobalFlags

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

_SHORT_FLAGS: dict[str, str] = {"chdir": "-C", "verbose": "-v"}
_EXPLICIT_SOURCES = frozenset({
    ParameterSource.COMMANDLINE,
    ParameterSource.ENVIRONMENT,
})


def _flag_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach one click option per GlobalFlags field."""
    for spec in reversed(GlobalFlags.flag_specs()):
        decls = [f"--{spec.name}"]
        if spec.name in _SHORT_FLAGS:
            decls.append(_SHORT_FLAGS[spec.name])
        if spec.value_type is bool:
            option = click.option(
                *decls, spec.field_name,
                is_flag=True,
                default=spec.default,
                help=spec.description,
            )
        else:
            option = click.option(
                *decls, spec.field_name,
                type=spec.value_type,
                default=spec.default,
                show_default=True,
                help=spec.description,
            )
        func = option(func)
    return func


def build_flags(
    click_ctx: click.Context,
    values: dict[str, Any],
) -> GlobalFlags:
    """Build GlobalFlags, recording which flags the user supplied."""
    explicit = frozenset(
        name for name in values
        if click_ctx.get_parameter_source(name) in _EXPLICIT_SOURCES
    )
    return GlobalFlags(**values, explicit=explicit)


def _init_failure(err: DevctlError) -> IOResult[Path, DevctlError]:
    return IOFailure(
        DevctlError(
            step_name="init",
            error_type=INITIALIZATION_ERROR,
            message=err.message,
            context={"cause": err.to_dict()},
        ),
    )


def initialize(flags: GlobalFlags) -> IOResult[Path, DevctlError]:
    """Change directory if asked and prepare the state directory.

    Returns the state directory path. Any failure is an
    InitializationError and no command may run.
    """
    if flags.chdir:
        changed = io_ops.change_directory(flags.chdir)
        if isinstance(changed, IOFailure):
            return _init_failure(unsafe_perform_io(changed.failure()))
    state = io_ops.ensure_directory(flags.state_dir)
    if isinstance(state, IOFailure):
        return _init_failure(unsafe_perform_io(state.failure()))
    return state


def _interrupt_callback(cancel_event: threading.Event) -> Callable[[], None]:
    """First interrupt cancels cooperatively, the second raises."""

    def _on_interrupt() -> None:
        if cancel_event.is_set():
            raise KeyboardInterrupt
        cancel_event.set()

    return _on_interrupt


def run_with_interrupts(
    dispatcher: Dispatcher,
    args: Sequence[str],
    flags: GlobalFlags,
) -> int:
    """Run the dispatcher with SIGINT routed to its cancel event."""
    cancel_event = threading.Event()
    installed = io_ops.install_interrupt_handler(
        _interrupt_callback(cancel_event),
    )
    try:
        return dispatcher.run(args, flags, cancel_event)
    except KeyboardInterrupt:
        io_ops.write_stderr("Interrupted\n")
        return EXIT_FAILURE
    finally:
        if isinstance(installed, IOSuccess):
            io_ops.restore_interrupt_handler(
                unsafe_perform_io(installed.unwrap()),
            )


@click.command(
    context_settings={
        "auto_envvar_prefix": ENV_PREFIX,
        "help_option_names": ["-h", "--help"],
    },
)
@_flag_options
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def main(
    click_ctx: click.Context,
    args: tuple[str, ...],
    **values: Any,
) -> None:
    """Device management command line tool.

    ARGS starts with the command name; run "devctl help" to
    list commands. Without a command, an interactive shell
    starts.
    """
    flags = build_flags(click_ctx, values)

    init_result = initialize(flags)
    if isinstance(init_result, IOFailure):
        err = unsafe_perform_io(init_result.failure())
        io_ops.write_stderr(f"Error: {err.message}\n")
        sys.exit(EXIT_FAILURE)
    state_dir = unsafe_perform_io(init_result.unwrap())

    logger = setup_logging(state_dir, verbose=flags.verbose)
    logger.info("devctl %s: %s", __version__, " ".join(args) or "(default)")

    registry = load_registry()
    dispatcher = Dispatcher(
        registry=registry,
        default_command=registry[DEFAULT_COMMAND_NAME],
    )
    sys.exit(run_with_interrupts(dispatcher, args, flags))


if __name__ == "__main__":  # pragma: no cover
    main()
