"""Constraint handlers: the abstract base and the built-in catalog."""

from .base import Arity, ConstraintHandler
from .builtin import builtin_handlers

__all__ = ["Arity", "ConstraintHandler", "builtin_handlers"]
