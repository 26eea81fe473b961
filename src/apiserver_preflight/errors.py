"""
Exception types for apiserver-preflight.

Invalid option values are never raised: they come back as entries in a
ValidationResults list. These exceptions cover everything else, such as an
unreadable options file or a validator called with the wrong arguments.
"""

__all__ = [
    "PreflightError",
    "InvalidInvocationError",
    "ConfigLoadError",
    "FeatureGateError",
    "format_error",
]


class PreflightError(Exception):
    """Base class for all apiserver-preflight errors."""


class InvalidInvocationError(PreflightError, TypeError):
    """A validator was called with a missing or wrongly typed argument."""


class ConfigLoadError(PreflightError):
    """Options file missing, not valid TOML, or structurally wrong."""


class FeatureGateError(PreflightError, ValueError):
    """Unknown feature gate name or malformed --feature-gates value."""


def format_error(e: BaseException) -> str:
    """Return a short operator-facing message like 'ConfigLoadError: detail'."""
    name = e.__class__.__name__
    msg = str(e).strip()
    return f"{name}: {msg}" if msg else name
