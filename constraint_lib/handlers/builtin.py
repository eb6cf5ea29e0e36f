"""
Built-in constraint handlers.

Every handler here is registered by default. Custom handlers subclass
ConstraintHandler and are added with ``ValidationService.add_handler`` (or
listed under ``handlers`` in the configuration); a custom handler registered
under a built-in name replaces the built-in one.
"""

import logging
import numbers
import re
from collections.abc import Sized
from typing import Any, List
from urllib.parse import urlsplit

from ..context import Context
from ..exceptions import ConfigurationError
from ..metadata import Fragment
from .base import Arity, ConstraintHandler

logger = logging.getLogger(__name__)

SIZED = (Sized,)
NUMERIC_OR_SIZED = (numbers.Number, Sized)


def _number(fragment: Fragment, index: int) -> Any:
    value = fragment.argument(index)
    if isinstance(value, numbers.Number):
        return value
    return fragment.argument(index, float)


def _join(arguments) -> str:
    return ", ".join(str(a) for a in arguments)


class RequiredHandler(ConstraintHandler):
    """The value must not be None."""

    NAMES = ("required",)
    REQUIRED = True

    def validate(self, value: Any, fragment: Fragment, context: Context) -> bool:
        return True


class NotEmptyHandler(ConstraintHandler):
    """Strings and collections must not be None or empty."""

    NAMES = ("not-empty",)
    SUPPORTED_TYPES = SIZED
    REQUIRED = True

    def validate(self, value: Any, fragment: Fragment, context: Context) -> bool:
        return len(value) > 0


class NotBlankHandler(ConstraintHandler):
    """Strings must contain at least one non-whitespace character."""

    NAMES = ("not-blank",)
    SUPPORTED_TYPES = (str,)
    REQUIRED = True

    def validate(self, value: Any, fragment: Fragment, context: Context) -> bool:
        return bool(value.strip())


class LengthHandler(ConstraintHandler):
    """``length(n)`` requires an exact size, ``length(min, max)`` an inclusive range."""

    NAMES = ("length",)
    SUPPORTED_TYPES = SIZED
    ARITY = Arity.between(1, 2)

    def validate(self, value: Any, fragment: Fragment, context: Context) -> bool:
        size = len(value)
        if fragment.argument_count == 1:
            return size == fragment.argument(0, int)
        if fragment.argument(0, int) <= size <= fragment.argument(1, int):
            return True
        self.set_message_keys(context, fragment, "range")
        return False


class MinHandler(ConstraintHandler):
    """Numbers must be >= the bound; strings and collections must have at least that size."""

    NAMES = ("min",)
    SUPPORTED_TYPES = NUMERIC_OR_SIZED
    ARITY = Arity.exact(1)

    def validate(self, value: Any, fragment: Fragment, context: Context) -> bool:
        if isinstance(value, numbers.Number):
            return value >= _number(fragment, 0)
        if len(value) >= fragment.argument(0, int):
            return True
        self.set_message_keys(context, fragment, "size")
        return False


class MaxHandler(ConstraintHandler):
    """Numbers must be <= the bound; strings and collections must have at most that size."""

    NAMES = ("max",)
    SUPPORTED_TYPES = NUMERIC_OR_SIZED
    ARITY = Arity.exact(1)

    def validate(self, value: Any, fragment: Fragment, context: Context) -> bool:
        if isinstance(value, numbers.Number):
            return value <= _number(fragment, 0)
        if len(value) <= fragment.argument(0, int):
            return True
        self.set_message_keys(context, fragment, "size")
        return False


class RangeHandler(ConstraintHandler):
    """Inclusive numeric range, or size range for strings and collections."""

    NAMES = ("range",)
    SUPPORTED_TYPES = NUMERIC_OR_SIZED
    ARITY = Arity.exact(2)

    def validate(self, value: Any, fragment: Fragment, context: Context) -> bool:
        if isinstance(value, numbers.Number):
            return _number(fragment, 0) <= value <= _number(fragment, 1)
        if fragment.argument(0, int) <= len(value) <= fragment.argument(1, int):
            return True
        self.set_message_keys(context, fragment, "size")
        return False


class PatternHandler(ConstraintHandler):
    """The whole string must match the regex argument (literal ``/.../`` or string)."""

    NAMES = ("pattern",)
    SUPPORTED_TYPES = (str,)
    ARITY = Arity.exact(1)

    def validate(self, value: Any, fragment: Fragment, context: Context) -> bool:
        pattern = fragment.argument(0)
        if not isinstance(pattern, re.Pattern):
            pattern = re.compile(str(pattern))
        return pattern.fullmatch(value) is not None


class ContainsHandler(ConstraintHandler):
    """The value must be one of the arguments."""

    NAMES = ("contains",)
    ARITY = Arity.variadic()

    def validate(self, value: Any, fragment: Fragment, context: Context) -> bool:
        if value in fragment.arguments:
            return True
        context.set_variable("elements", _join(fragment.arguments))
        return False


class BoundaryHandler(ConstraintHandler):
    """``prefixs(...)`` / ``suffixs(...)``: the string must start / end with one of the arguments."""

    NAMES = ("prefixs", "suffixs")
    SUPPORTED_TYPES = (str,)
    ARITY = Arity.variadic()

    def validate(self, value: Any, fragment: Fragment, context: Context) -> bool:
        if value:
            candidates = tuple(str(a) for a in fragment.arguments)
            if fragment.name == "prefixs" and value.startswith(candidates):
                return True
            if fragment.name == "suffixs" and value.endswith(candidates):
                return True
        context.set_variable("elements", _join(fragment.arguments))
        return False


class EqualsHandler(ConstraintHandler):
    """
    ``equals(x)`` compares against a literal; ``equals('#field')`` against a sibling field.

    An optional second argument set to true makes string comparison case-insensitive.
    """

    NAMES = ("equals",)
    ARITY = Arity.between(1, 2)

    def validate(self, value: Any, fragment: Fragment, context: Context) -> bool:
        target = fragment.argument(0)
        ignore_case = bool(fragment.argument(1, default=False))

        if isinstance(target, str) and target.startswith("#"):
            return self._validate_reference(value, target[1:], fragment, context, ignore_case)

        if self._same(value, target, ignore_case):
            return True
        self.set_message_keys(context, fragment, "specify")
        return False

    def _validate_reference(self, value, name: str, fragment: Fragment, context: Context, ignore_case: bool) -> bool:
        if context.instance is None:
            logger.warning("Reference comparisons are only available for fields of composite objects")
            return True
        if self._same(value, context.sibling_value(name), ignore_case):
            return True
        self.set_message_keys(context, fragment, "related")
        label = name
        if context.engine is not None:
            for element in context.engine.compiler.compile_type(type(context.instance)):
                if element.name == name:
                    label = context.engine.get_resource_message(element.label, context.locale)
                    break
        context.set_variable("target", label)
        return False

    @staticmethod
    def _same(value: Any, target: Any, ignore_case: bool) -> bool:
        if isinstance(value, str):
            if target is None:
                return False
            target = str(target)
            if ignore_case:
                return value.casefold() == target.casefold()
            return value == target
        if target is not None and not isinstance(target, type(value)):
            try:
                target = type(value)(target)
            except (TypeError, ValueError):
                return False
        return value == target


class UrlHandler(ConstraintHandler):
    """``url([protocol[, host[, port]]])``: a well-formed URL, optionally constrained."""

    NAMES = ("url",)
    SUPPORTED_TYPES = (str,)
    ARITY = Arity.between(0, 3)

    def validate(self, value: Any, fragment: Fragment, context: Context) -> bool:
        if not value:
            return True
        try:
            parts = urlsplit(value)
            port = parts.port
        except ValueError:
            return False
        if not parts.scheme or not parts.netloc:
            return False
        protocol = fragment.argument(0, str)
        if protocol and parts.scheme != protocol:
            return False
        host = fragment.argument(1, str)
        if host and parts.hostname != host:
            return False
        expected_port = fragment.argument(2, int)
        return expected_port is None or expected_port == -1 or port == expected_port


PASSWORD_LEVELS = {
    "weak": re.compile(r"^.{6,}$"),
    "medium": re.compile(r"^(?=.*[A-Za-z])(?=.*\d).{8,}$"),
    "strong": re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[^A-Za-z\d]).{10,}$"),
}


class PasswordHandler(ConstraintHandler):
    """``password([level])`` with level weak, medium (default) or strong."""

    NAMES = ("password",)
    SUPPORTED_TYPES = (str,)
    ARITY = Arity.between(0, 1)

    def validate(self, value: Any, fragment: Fragment, context: Context) -> bool:
        if not value:
            return True
        level = (fragment.argument(0, str) or "medium").lower()
        pattern = PASSWORD_LEVELS.get(level)
        if pattern is None:
            raise ConfigurationError(f'Unknown password level "{level}", expected one of {sorted(PASSWORD_LEVELS)}')
        if pattern.fullmatch(value):
            return True
        self.set_message_keys(context, fragment, level)
        return False


COMMON_PATTERNS = {
    "ip": re.compile(r"^((25[0-5]|2[0-4]\d|[01]\d{2}|[1-9]?\d)\.){3}(25[0-5]|2[0-4]\d|[01]\d{2}|[1-9]?\d)$"),
    "email": re.compile(r"^\w+(\.\w+)*@\w+(\.\w{2,})+$"),
    "ascii": re.compile(r"^[\x00-\xFF]+$"),
    "postal-code": re.compile(r"^\d{6}$"),
    "letter": re.compile(r"^[a-zA-Z]+$"),
    "letter-lowercase": re.compile(r"^[a-z]+$"),
    "letter-uppercase": re.compile(r"^[A-Z]+$"),
    "alpha-numeric": re.compile(r"^[a-zA-Z0-9]+$"),
    "chinese": re.compile(r"^[\u4e00-\u9fa5\uf900-\ufa2d]+$"),
    "colour": re.compile(r"^#[a-fA-F0-9]{6}$"),
    "username": re.compile(r"^[\w$.-]*$"),
    "int": re.compile(r"^[+-]?\d+$"),
    "int-negative": re.compile(r"^-\d+$"),
    "int-positive": re.compile(r"^\+?\d+$"),
    "decimal": re.compile(r"^[+-]?\d*\.\d+$"),
    "decimal-negative": re.compile(r"^-\d*\.\d+$"),
    "decimal-positive": re.compile(r"^\+?\d*\.\d+$"),
}


class CommonPatternHandler(ConstraintHandler):
    """Named regex checks (``email``, ``ip``, ``int`` ...). Blank strings pass."""

    NAMES = tuple(COMMON_PATTERNS)
    SUPPORTED_TYPES = (str,)

    def validate(self, value: Any, fragment: Fragment, context: Context) -> bool:
        if not value.strip():
            return True
        return COMMON_PATTERNS[fragment.name].fullmatch(value) is not None


def builtin_handlers() -> List[ConstraintHandler]:
    """Return one instance of every built-in handler."""
    return [
        RequiredHandler(),
        NotEmptyHandler(),
        NotBlankHandler(),
        LengthHandler(),
        MinHandler(),
        MaxHandler(),
        RangeHandler(),
        PatternHandler(),
        ContainsHandler(),
        BoundaryHandler(),
        EqualsHandler(),
        UrlHandler(),
        PasswordHandler(),
        CommonPatternHandler(),
    ]
