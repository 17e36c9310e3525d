"""Required flag validation for command dispatch.

Pure check, no I/O. Runs before any connection attempt or
handler invocation so a command with missing flags has no
side effects.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from returns.result import Failure, Result, Success

from devctl.dev_modules.errors import VALIDATION_ERROR, DevctlError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from devctl.dev_modules.types import GlobalFlags


def check_required_flags(
    required: Iterable[str],
    flags: GlobalFlags,
) -> Result[None, DevctlError]:
    """Check that every required flag was supplied.

    Missing names are aggregated in declaration order.
    Returns Success(None) or Failure(ValidationError).
    """
    missing = [
        name for name in required
        if not flags.is_supplied(name)
    ]
    if not missing:
        return Success(None)
    listed = ", ".join(f"--{name}" for name in missing)
    return Failure(
        DevctlError(
            step_name="validate",
            error_type=VALIDATION_ERROR,
            message=f"Required flag(s) not set: {listed}",
            context={"missing": missing},
        ),
    )
