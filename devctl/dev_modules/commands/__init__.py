"""Commands package -- registry, built-in handlers and dispatch.

Public API for command infrastructure: types, registry,
and the Dispatcher.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from devctl.dev_modules.commands.registry import (
    COMMAND_REGISTRY,
    DEFAULT_COMMAND_NAME,
    build_registry,
    get_command,
    list_commands,
    load_registry,
)
from devctl.dev_modules.commands.types import (
    CommandHandler,
    CommandSpec,
    ConnectionRequirement,
)

# Dispatch pulls in the broker, which imports commands.types;
# load it lazily so the package import stays acyclic.
if TYPE_CHECKING:
    from devctl.dev_modules.commands.dispatch import Dispatcher


def __getattr__(name: str) -> object:
    """Lazy import Dispatcher to keep package import acyclic."""
    if name == "Dispatcher":
        from devctl.dev_modules.commands.dispatch import (  # noqa: PLC0415
            Dispatcher,
        )

        return Dispatcher
    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "COMMAND_REGISTRY",
    "DEFAULT_COMMAND_NAME",
    "CommandHandler",
    "CommandSpec",
    "ConnectionRequirement",
    "Dispatcher",
    "build_registry",
    "get_command",
    "list_commands",
    "load_registry",
]
