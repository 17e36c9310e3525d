"""Command type definitions for devctl command dispatch."""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from returns.io import IOResult

    from devctl.dev_modules.connection import DeviceConnection
    from devctl.dev_modules.errors import DevctlError
    from devctl.dev_modules.types import CommandContext

CommandHandler = Callable[
    ["CommandContext", "DeviceConnection | None"],
    "IOResult[None, DevctlError]",
]


class ConnectionRequirement(Enum):
    """How strictly a command needs a device connection.

    OPTIONAL attempts a connection but runs the handler
    without one when no device can be reached.
    """

    REQUIRED = "required"
    OPTIONAL = "optional"
    NOT_NEEDED = "not_needed"


@dataclass(frozen=True)
class CommandSpec:
    """Metadata for a registered command.

    required flags are enforced before the handler runs;
    optional flags are advisory and only shown in help.
    Advanced commands are hidden from help unless --full.
    """

    name: str
    description: str
    handler: CommandHandler
    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()
    connection: ConnectionRequirement = ConnectionRequirement.NOT_NEEDED
    advanced: bool = False
