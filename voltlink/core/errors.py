# voltlink/core/errors.py
from __future__ import annotations


class VoltLinkError(Exception):
    """
    Operator-facing failure that the CLI reports without a traceback.

    `message` is printed as-is by the CLI; `hint` suggests the next step;
    `details` carries the offending values for logs.
    """

    #: Short identifier, stable across releases
    code: str = "unknown"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuration errors (no device access yet)
# ---------------------------------------------------------------------------

class ConfigError(VoltLinkError):
    """
    Configuration or connection target is invalid.

    Examples:
      - config file missing or not valid YAML
      - port outside 0..65535
      - min_voltage >= max_voltage
    """
    code = "config_error"


# ---------------------------------------------------------------------------
# Command gating (rejected before any network call)
# ---------------------------------------------------------------------------

class CommandNotPermittedError(VoltLinkError):
    """
    A command was rejected synchronously; nothing was sent to the converter.
    """
    code = "command_not_permitted"


class VoltageValidationError(CommandNotPermittedError):
    """
    Requested set-point is not a number or lies outside the allowed range.
    """
    code = "invalid_voltage"


class PreconditionError(CommandNotPermittedError):
    """
    Command is not allowed in the current session state.

    Examples:
      - set voltage while disconnected
      - toggle output before any voltage was applied
      - enable measurement while disconnected
    """
    code = "precondition_failed"


# ---------------------------------------------------------------------------
# Device errors (only raised by blocking convenience paths)
# ---------------------------------------------------------------------------

class ConverterNotRespondingError(VoltLinkError):
    """
    Converter did not answer a request that the caller waited on.

    The device link itself never raises; this is used where a caller
    explicitly blocks on a result (CLI, controller helpers).
    """
    code = "converter_not_responding"
