"""wflens Error Code Registry.

Provides structured error codes with helpful messages and next steps.
Each error has:
- Code: WFL-EXXX format
- Message: Human-readable description
- Next step: Actionable command or instruction
"""
from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """wflens error codes."""

    # Configuration errors (E001-E099)
    E002 = "E002"  # Invalid config value

    # Runtime errors (E100-E199)
    E100 = "E100"  # History fetch failed
    E105 = "E105"  # Fetch timed out
    E106 = "E106"  # Fetch cancelled

    # Validation errors (E200-E299)
    E201 = "E201"  # History document invalid

    # File/IO errors (E300-E399)
    E301 = "E301"  # History file not found
    E302 = "E302"  # Cannot read file
    E303 = "E303"  # Cannot write file


@dataclass
class WflensError:
    """Structured error with code, message, and next step."""

    code: ErrorCode
    message: str
    next_step: str
    details: Optional[str] = None

    def __str__(self) -> str:
        lines = [
            f"WFL-{self.code.value}: {self.message}",
        ]
        if self.details:
            lines.append(f"  Details: {self.details}")
        lines.append(f"  Next step: {self.next_step}")
        return "\n".join(lines)

    def print(self, file=None) -> None:
        """Print the error to stderr (or specified file)."""
        print(str(self), file=file or sys.stderr)


# Pre-defined error templates
ERROR_TEMPLATES: dict[ErrorCode, tuple[str, str]] = {
    # (message_template, next_step)
    ErrorCode.E002: (
        "Invalid configuration value: {details}",
        "Run 'wflens show-config' to inspect the resolved settings",
    ),
    ErrorCode.E100: (
        "Could not load workflow history: {details}",
        "Check the history source and retry; the previous view was kept",
    ),
    ErrorCode.E105: (
        "History fetch timed out: {details}",
        "Increase WFLENS_FETCH_TIMEOUT_SECONDS or check service health",
    ),
    ErrorCode.E106: (
        "History fetch was cancelled",
        "Re-run the command to fetch again",
    ),
    ErrorCode.E201: (
        "History document is invalid: {details}",
        "Run 'wflens validate --history <file>' to see schema errors",
    ),
    ErrorCode.E301: (
        "History file not found: {details}",
        "Check the --history path",
    ),
    ErrorCode.E302: (
        "Cannot read file: {details}",
        "Check file permissions and path",
    ),
    ErrorCode.E303: (
        "Cannot write file: {details}",
        "Check directory permissions or use a different --out path",
    ),
}


def make_error(code: ErrorCode, details: Optional[str] = None) -> WflensError:
    """Create a WflensError from a code with optional details.

    Args:
        code: The error code
        details: Optional details to include in the message

    Returns:
        WflensError instance ready to print
    """
    template = ERROR_TEMPLATES.get(code, ("Unknown error", "Re-run with --verbose"))
    message_template, next_step = template

    if details and "{details}" in message_template:
        message = message_template.format(details=details)
    elif details:
        message = f"{message_template}: {details}"
    else:
        message = message_template.replace(": {details}", "")

    return WflensError(
        code=code,
        message=message,
        next_step=next_step,
        details=details if "{details}" not in message_template else None,
    )


def error_exit(code: ErrorCode, details: Optional[str] = None, exit_code: int = 1) -> None:
    """Print an error and exit with the specified code."""
    err = make_error(code, details)
    err.print()
    sys.exit(exit_code)


# Verbose mode flag (set by CLI)
_verbose_mode: bool = False


def set_verbose(verbose: bool) -> None:
    """Set verbose mode for error output."""
    global _verbose_mode
    _verbose_mode = verbose


def is_verbose() -> bool:
    """Check if verbose mode is enabled."""
    return _verbose_mode


def handle_exception(exc: Exception, code: ErrorCode, details: Optional[str] = None) -> None:
    """Handle an exception with proper error formatting.

    In verbose mode, prints the full traceback.
    Otherwise, prints a formatted error message.
    """
    import traceback

    err = make_error(code, details or str(exc))
    err.print()

    if _verbose_mode:
        print("\n--- Full Traceback ---", file=sys.stderr)
        traceback.print_exception(type(exc), exc, exc.__traceback__)
