"""Help command -- usage text rendered from the registry and flags."""
from __future__ import annotations

from typing import TYPE_CHECKING

from devctl.dev_modules import io_ops
from devctl.dev_modules.types import ENV_PREFIX, GlobalFlags

if TYPE_CHECKING:
    from collections.abc import Mapping

    from returns.io import IOResult

    from devctl.dev_modules.commands.types import CommandSpec
    from devctl.dev_modules.connection import DeviceConnection
    from devctl.dev_modules.errors import DevctlError
    from devctl.dev_modules.types import CommandContext

PROG_NAME = "devctl"
TAGLINE = "devctl - device management command line tool"


def short_usage() -> str:
    """Usage lines printed after an unknown command."""
    return (
        f"Usage: {PROG_NAME} [FLAGS] COMMAND [ARGS]...\n"
        f'Run "{PROG_NAME} help" to list commands.\n'
    )


def _command_line(spec: CommandSpec, width: int) -> str:
    line = f"  {spec.name.ljust(width)}  {spec.description}"
    if spec.required:
        needed = ", ".join(f"--{name}" for name in spec.required)
        line += f" (requires {needed})"
    return line


def render_help(
    registry: Mapping[str, CommandSpec],
    *,
    full: bool = False,
) -> str:
    """Render the full help text.

    Advanced commands and flags appear only when full is set.
    """
    # registry imports this module for show_help
    from devctl.dev_modules.commands.registry import (  # noqa: PLC0415
        list_commands,
    )

    commands = list_commands(registry, include_advanced=full)
    flag_specs = [
        spec for spec in GlobalFlags.flag_specs()
        if full or not spec.advanced
    ]

    lines = [TAGLINE, "", short_usage().splitlines()[0], "", "Commands:"]
    width = max((len(spec.name) for spec in commands), default=0)
    lines.extend(_command_line(spec, width) for spec in commands)

    lines.extend(["", "Flags:"])
    flag_width = max((len(spec.name) for spec in flag_specs), default=0) + 2
    for spec in flag_specs:
        default = "" if spec.value_type is bool else f" (default {spec.default!r})"
        lines.append(
            f"  {('--' + spec.name).ljust(flag_width)}  {spec.description}{default}",
        )

    lines.extend([
        "",
        f"Every flag can also be set with an environment variable"
        f" {ENV_PREFIX}_<FLAG>, e.g. {ENV_PREFIX}_PORT.",
    ])
    if not full:
        lines.append(
            f'Run "{PROG_NAME} help --full" to show advanced commands and flags.',
        )
    return "\n".join(lines) + "\n"


def show_help(
    ctx: CommandContext,
    conn: DeviceConnection | None,  # noqa: ARG001
) -> IOResult[None, DevctlError]:
    """Print help for the registry in ctx."""
    return io_ops.write_stdout(
        render_help(ctx.registry, full=ctx.flags.full),
    )
