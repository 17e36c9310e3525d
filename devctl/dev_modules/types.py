"""Shared type definitions for devctl dispatch."""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from collections.abc import Mapping

    from devctl.dev_modules.commands.types import CommandSpec
    from devctl.dev_modules.relay import ConsoleRelay

ENV_PREFIX = "DEVCTL"
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0
DEFAULT_BAUD_RATE = 115200
DEFAULT_STATE_DIR = "~/.devctl"

_ADVANCED = {"advanced": True}


@dataclass(frozen=True)
class FlagSpec:
    """Definition of one global flag, derived from GlobalFlags.

    name is the CLI spelling ("state-dir"), field_name the
    model attribute ("state_dir").
    """

    name: str
    field_name: str
    default: object
    description: str
    value_type: type
    advanced: bool = False

    @property
    def env_var(self) -> str:
        """Environment variable that mirrors this flag."""
        return f"{ENV_PREFIX}_{self.field_name.upper()}"


class GlobalFlags(BaseModel):
    """Global flags for one devctl invocation.

    Every field except `explicit` is a CLI flag. `explicit`
    records the flags the user supplied on the command line
    or through the environment.
    """

    model_config = ConfigDict(frozen=True)

    port: str = Field(
        default="",
        description=(
            "Device address: serial port path or tcp://host:port;"
            " empty or 'auto' picks the first serial port"
        ),
    )
    baud: int = Field(
        default=DEFAULT_BAUD_RATE,
        description="Serial port baud rate",
        json_schema_extra=_ADVANCED,
    )
    timeout: float = Field(
        default=DEFAULT_CONNECT_TIMEOUT_SECONDS,
        description="Seconds to wait for a device connection attempt",
        json_schema_extra=_ADVANCED,
    )
    duration: float = Field(
        default=0.0,
        description=(
            "Seconds to relay device output;"
            " 0 means until interrupted (console) or one pass (send)"
        ),
    )
    data: str = Field(
        default="",
        description="Text to send to the device",
    )
    chdir: str = Field(
        default="",
        description="Change into this directory first",
    )
    state_dir: str = Field(
        default=DEFAULT_STATE_DIR,
        description="Directory for the devctl debug log",
        json_schema_extra=_ADVANCED,
    )
    verbose: bool = Field(
        default=False,
        description="Verbose output",
    )
    full: bool = Field(
        default=False,
        description="Show full help, including advanced commands and flags",
    )
    explicit: frozenset[str] = Field(default=frozenset(), exclude=True)

    @classmethod
    def flag_specs(cls) -> list[FlagSpec]:
        """Return a FlagSpec for every flag field, in declaration order."""
        specs: list[FlagSpec] = []
        for field_name, info in cls.model_fields.items():
            if field_name == "explicit":
                continue
            extra = info.json_schema_extra
            advanced = bool(
                isinstance(extra, dict) and extra.get("advanced"),
            )
            specs.append(
                FlagSpec(
                    name=field_name.replace("_", "-"),
                    field_name=field_name,
                    default=info.default,
                    description=info.description or "",
                    value_type=info.annotation,  # type: ignore[arg-type]
                    advanced=advanced,
                ),
            )
        return specs

    @classmethod
    def flag_names(cls) -> frozenset[str]:
        """Return the CLI spellings of all flags."""
        return frozenset(spec.name for spec in cls.flag_specs())

    def is_supplied(self, name: str) -> bool:
        """Check whether flag `name` was set or differs from its default.

        Accepts either the CLI spelling or the field name.
        Unknown names are never supplied.
        """
        field_name = name.replace("-", "_")
        info = type(self).model_fields.get(field_name)
        if info is None or field_name == "explicit":
            return False
        if field_name in self.explicit:
            return True
        value = getattr(self, field_name)
        if value is None or value == "":
            return False
        return bool(value != info.default)


@dataclass(frozen=True)
class CommandContext:
    """Execution context handed to a command handler.

    Carries the invocation inputs plus cancellation and
    deadline state. The dispatcher never imposes a deadline;
    handlers opt in via with_deadline().
    """

    command_name: str
    flags: GlobalFlags
    relay: ConsoleRelay
    registry: Mapping[str, CommandSpec] = field(default_factory=dict)
    args: tuple[str, ...] = ()
    cancel_event: threading.Event = field(
        default_factory=threading.Event,
    )
    deadline: float | None = None

    @property
    def cancelled(self) -> bool:
        """True once an external cancellation was requested."""
        return self.cancel_event.is_set()

    def expired(self) -> bool:
        """True when a deadline is set and has passed."""
        return (
            self.deadline is not None
            and time.monotonic() >= self.deadline
        )

    def is_done(self) -> bool:
        """True when the handler should stop working."""
        return self.cancelled or self.expired()

    def with_deadline(self, seconds: float) -> CommandContext:
        """Return new context expiring `seconds` from now.

        A non-positive value leaves the context without a
        deadline.
        """
        if seconds <= 0:
            return replace(self, deadline=None)
        return replace(self, deadline=time.monotonic() + seconds)

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`, waking early on cancellation.

        Never sleeps past the deadline. Returns True when
        cancelled.
        """
        if self.deadline is not None:
            seconds = min(seconds, max(0.0, self.deadline - time.monotonic()))
        return self.cancel_event.wait(seconds)

    def cancel(self) -> None:
        """Request cancellation of the running handler."""
        self.cancel_event.set()
