"""Exception types raised by constraint-lib.

Validation rejections are never raised; they are reported as results. Only
structural misuse (bad rule text, bad handler or type setup) raises.
"""

from typing import Optional


class ConstraintLibError(Exception):
    """Base class for all constraint-lib errors."""


class ExpressionError(ConstraintLibError, ValueError):
    """Malformed rule text, argument list or message expression."""

    def __init__(self, message: str, expression: Optional[str] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.expression = expression
        self.reason = reason or message


class ConfigurationError(ConstraintLibError, RuntimeError):
    """Handler arity mismatch, invalid configuration or invalid type setup."""


class TypeMismatchError(ConfigurationError, TypeError):
    """A fragment argument cannot be converted to the type a handler needs."""
