"""Command registry and lookup functions.

Built-in commands live in COMMAND_REGISTRY. External
collaborators (flashing, OTA, provisioning, ...) register
CommandSpec objects under the "devctl.commands" entry point
group; load_registry() merges them with the built-ins.
"""
from __future__ import annotations

import logging
from importlib.metadata import entry_points
from types import MappingProxyType
from typing import TYPE_CHECKING

from devctl.dev_modules.commands.console import run_console, send_data
from devctl.dev_modules.commands.help import show_help
from devctl.dev_modules.commands.info import (
    probe_device,
    show_ports,
    show_version,
)
from devctl.dev_modules.commands.shell import run_shell
from devctl.dev_modules.commands.types import (
    CommandSpec,
    ConnectionRequirement,
)
from devctl.dev_modules.types import GlobalFlags

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

PLUGIN_GROUP = "devctl.commands"
DEFAULT_COMMAND_NAME = "shell"

logger = logging.getLogger("devctl.registry")

BUILTIN_COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec(
        name=DEFAULT_COMMAND_NAME,
        description="Interactive shell, with or without a device",
        handler=run_shell,
        optional=("port", "baud"),
        connection=ConnectionRequirement.OPTIONAL,
    ),
    CommandSpec(
        name="help",
        description="Show help. Add --full to show advanced commands",
        handler=show_help,
        optional=("full",),
    ),
    CommandSpec(
        name="version",
        description="Show version",
        handler=show_version,
    ),
    CommandSpec(
        name="probe",
        description="Report whether a device can be reached",
        handler=probe_device,
        optional=("port", "baud", "timeout"),
        connection=ConnectionRequirement.OPTIONAL,
    ),
    CommandSpec(
        name="console",
        description="Simple device console",
        handler=run_console,
        optional=("port", "baud", "duration"),
        connection=ConnectionRequirement.REQUIRED,
    ),
    CommandSpec(
        name="send",
        description="Send a line to the device and show its output",
        handler=send_data,
        required=("data",),
        optional=("port", "baud", "duration"),
        connection=ConnectionRequirement.REQUIRED,
    ),
    CommandSpec(
        name="ports",
        description="Show serial ports",
        handler=show_ports,
        advanced=True,
    ),
)


def build_registry(
    specs: Iterable[CommandSpec],
) -> MappingProxyType[str, CommandSpec]:
    """Build an immutable registry from specs.

    Raises ValueError on a duplicate name or on a flag name
    that is not a global flag.
    """
    known_flags = GlobalFlags.flag_names()
    table: dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            msg = f"Duplicate command name: {spec.name!r}"
            raise ValueError(msg)
        unknown = sorted(
            (set(spec.required) | set(spec.optional)) - known_flags,
        )
        if unknown:
            msg = f"Command {spec.name!r} declares unknown flags: {unknown}"
            raise ValueError(msg)
        table[spec.name] = spec
    return MappingProxyType(table)


COMMAND_REGISTRY: MappingProxyType[str, CommandSpec] = build_registry(
    BUILTIN_COMMANDS,
)


def discover_plugin_commands() -> list[CommandSpec]:
    """Load CommandSpec objects from installed entry points.

    Entry points that fail to load or do not yield a
    CommandSpec are logged and skipped.
    """
    found: list[CommandSpec] = []
    for entry in entry_points(group=PLUGIN_GROUP):
        try:
            spec = entry.load()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cannot load command plugin %s: %s", entry.name, exc)
            continue
        if not isinstance(spec, CommandSpec):
            logger.warning(
                "Command plugin %s is not a CommandSpec (%s)",
                entry.name, type(spec).__name__,
            )
            continue
        found.append(spec)
    return found


def load_registry() -> MappingProxyType[str, CommandSpec]:
    """Return built-ins plus installed plugin commands.

    Plugins whose names clash with a built-in, or that
    declare unknown flags, are skipped.
    """
    specs = list(BUILTIN_COMMANDS)
    names = {spec.name for spec in specs}
    known_flags = GlobalFlags.flag_names()
    for spec in discover_plugin_commands():
        if spec.name in names:
            logger.warning("Command plugin %s clashes with an existing command", spec.name)
            continue
        if not (set(spec.required) | set(spec.optional)) <= known_flags:
            logger.warning("Command plugin %s declares unknown flags", spec.name)
            continue
        names.add(spec.name)
        specs.append(spec)
    return build_registry(specs)


def get_command(
    name: str,
    registry: Mapping[str, CommandSpec] = COMMAND_REGISTRY,
) -> CommandSpec | None:
    """Look up a command by exact name. Returns None if not found."""
    return registry.get(name)


def list_commands(
    registry: Mapping[str, CommandSpec] = COMMAND_REGISTRY,
    *,
    include_advanced: bool = True,
) -> list[CommandSpec]:
    """Return registered commands sorted by name."""
    return sorted(
        (
            spec for spec in registry.values()
            if include_advanced or not spec.advanced
        ),
        key=lambda spec: spec.name,
    )
