"""Error types for devctl command dispatch."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field

INITIALIZATION_ERROR = "InitializationError"
USAGE_ERROR = "UsageError"
VALIDATION_ERROR = "ValidationError"
CONNECTION_ERROR = "ConnectionError"
HANDLER_ERROR = "HandlerError"


@dataclass(frozen=True)
class DevctlError:
    """Structured error for dispatch and handler failures.

    error_type is one of the module-level taxonomy names for
    dispatch-phase failures. Handlers may use their own
    error_type; the dispatcher wraps those via annotate().
    """

    step_name: str
    error_type: str
    message: str
    context: dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        """Return plain dict suitable for JSON serialization.

        Non-serializable context values are converted to string representations.
        """
        data = asdict(self)

        def make_safe(obj: object) -> object:
            if isinstance(obj, (str, int, float, bool, type(None))):
                return obj
            if isinstance(obj, (list, tuple)):
                return [make_safe(x) for x in obj]
            if isinstance(obj, dict):
                return {str(k): make_safe(v) for k, v in obj.items()}
            return str(obj)

        data["context"] = make_safe(self.context)
        return data

    def annotate(self, command_name: str) -> DevctlError:
        """Wrap this error as a HandlerError for command_name.

        The original message is kept verbatim after the
        "<command> failed:" prefix. The original error is
        preserved under context["cause"].
        """
        return DevctlError(
            step_name=command_name,
            error_type=HANDLER_ERROR,
            message=f"{command_name} failed: {self.message}",
            context={
                "command": command_name,
                "cause": self.to_dict(),
            },
        )

    def __str__(self) -> str:
        """Human-readable error representation for logging."""
        max_len = 500
        base = f"DevctlError[{self.step_name}] {self.error_type}: {self.message}"
        if self.context:
            ctx_str = str(self.context)
            if len(ctx_str) > max_len:
                ctx_str = ctx_str[: max_len - 3] + "..."
            base += f" | context={ctx_str}"
        return base
