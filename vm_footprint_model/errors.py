"""
Error types raised by the instance footprint model.

Both error kinds derive from ValueError so callers that only care about
"bad input" can catch ValueError, as the rest of the package does.
"""

from typing import Optional


class FootprintModelError(ValueError):
    """Base class for errors raised by the model."""


class InputValidationError(FootprintModelError):
    """A required field is missing or an input has the wrong shape or type."""


class UnsupportedValueError(FootprintModelError):
    """A value is well formed but not supported (vendor, instance type, ...)."""


def error_message(component: str, message: str, scope: Optional[str] = None) -> str:
    """
    Build a user-facing error message naming the responsible component.

    Example:
        error_message("CloudCarbonFootprint", "Vendor ibm not supported", "configure")
        -> "CloudCarbonFootprint(configure): Vendor ibm not supported"
    """
    if scope:
        return f"{component}({scope}): {message}"
    return f"{component}: {message}"
