"""
Abstract base class for constraint handlers.

A handler implements one or more named constraints (``length``, ``max``, ...).
Handlers are stateless singletons registered in a HandlerRegistry; the
dispatcher looks them up by fragment name and calls validate() once per
fragment evaluation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from ..context import Context
from ..metadata import Fragment


@dataclass(frozen=True)
class Arity:
    """Accepted argument count of a handler: exact, closed range or variadic."""

    minimum: int = 0
    maximum: Optional[int] = 0

    @classmethod
    def exact(cls, count: int) -> "Arity":
        return cls(count, count)

    @classmethod
    def between(cls, minimum: int, maximum: int) -> "Arity":
        return cls(minimum, maximum)

    @classmethod
    def variadic(cls) -> "Arity":
        return cls(0, None)

    @property
    def is_variadic(self) -> bool:
        return self.maximum is None

    def accepts(self, count: int) -> bool:
        if self.is_variadic:
            return True
        return self.minimum <= count <= self.maximum

    def template(self, name: str) -> str:
        """Canonical usage, e.g. ``length(?[,?])`` or ``contains(...)``."""
        if self.is_variadic:
            return f"{name}(...)"
        if self.maximum == 0:
            return name
        required = ",".join("?" * self.minimum)
        optional = "".join(
            ("[?]" if not required and i == 0 else "[,?]")
            for i in range(self.maximum - self.minimum)
        )
        return f"{name}({required}{optional})"

    def violation(self, name: str, count: int) -> Optional[str]:
        """Return the error text for count arguments, or None when accepted."""
        if self.accepts(count):
            return None
        usage = self.template(name)
        if self.maximum == 0:
            return f'Handler "{usage}" cannot accept any parameters'
        if count < self.minimum:
            plural = "" if self.minimum == 1 else "s"
            return f'Handler "{usage}" requires at least {self.minimum} parameter{plural}'
        if self.maximum == 1:
            return f'Handler "{usage}" can only process at most 1 parameter'
        return f'Handler "{usage}" can only process up to {self.maximum} parameters'


def type_key(kind: type) -> str:
    """Message-key suffix for a type: ``str`` for builtins, dotted path otherwise."""
    if kind.__module__ == "builtins":
        return kind.__qualname__
    return f"{kind.__module__}.{kind.__qualname__}"


class ConstraintHandler(ABC):
    """
    Base class for all constraint handlers.

    Subclasses set ``NAMES`` (and usually ``ARITY`` / ``SUPPORTED_TYPES``) and
    implement validate(). The dispatcher takes care of type negotiation, the
    argument count check and None handling before validate() is called.
    """

    NAMES: Tuple[str, ...] = ()
    SUPPORTED_TYPES: Optional[Tuple[type, ...]] = None
    ARITY: Arity = Arity.exact(0)
    REQUIRED: bool = False

    def names(self) -> List[str]:
        """Return the fragment names this handler answers to."""
        return list(self.NAMES)

    def supported_types(self) -> Optional[Tuple[type, ...]]:
        """Return the accepted value types, or None for all types."""
        return self.SUPPORTED_TYPES

    def supports(self, kind: type) -> bool:
        types = self.supported_types()
        return types is None or issubclass(kind, types)

    def required_when_null(self) -> bool:
        """Return True if a None value is a rejection rather than a pass."""
        return self.REQUIRED

    def arity(self) -> Arity:
        return self.ARITY

    @abstractmethod
    def validate(self, value: Any, fragment: Fragment, context: Context) -> bool:
        """
        Check one non-None value.

        Args:
            value: Value being validated, already known to be a supported type
            fragment: The fragment being evaluated, with its arguments
            context: Per-evaluation context

        Returns:
            True if the value passes
        """

    def set_message_keys(self, context: Context, fragment: Fragment, suffix: Optional[str] = None) -> None:
        """
        Record message keys for a rejection.

        The keys walk the MRO of the field type (or, for an untyped field, of
        the value), most specific first, and end with the generic key:
        ``max.str``, ``max``.

        Args:
            context: Per-evaluation context
            fragment: The rejected fragment
            suffix: Optional variant appended to the base key, e.g. ``between``
        """
        base = fragment.name if not suffix else f"{fragment.name}.{suffix}"
        kind = object
        element = context.element
        if element is not None and isinstance(element.field_type, type):
            kind = element.field_type
        if kind is object and context.variables.get("value") is not None:
            kind = type(context.variables["value"])
        keys = [f"{base}.{type_key(k)}" for k in kind.__mro__ if k is not object]
        keys.append(base)
        context.set_message_keys(keys)
