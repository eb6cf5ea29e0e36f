"""
Compiled validation plans: Fragment, Element and Conditional.

A Fragment is one constraint invocation parsed from rule text, for example
``length(3,10)<create>``. An Element is one field of a composite type together
with the Fragments that apply to it. Both are produced by the compiler, cached,
and shared across threads, so they are immutable once the compiling pass is
done. The only exceptions are the Element's fragments, label and conditional,
which are set-once: the first write wins and later writes are ignored.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Iterable, List, Optional, Tuple

from .exceptions import TypeMismatchError

DEFAULT_GROUP = "default"


def group_names(group: Any) -> FrozenSet[str]:
    """Return the names a requested group matches against.

    A class matches by its simple and its qualified name; anything else
    matches by its string form.
    """
    if isinstance(group, type):
        return frozenset({group.__name__, f"{group.__module__}.{group.__qualname__}"})
    return frozenset({str(group)})


@dataclass(frozen=True)
class Fragment:
    """One named constraint invocation."""

    name: str
    groups: FrozenSet[str] = frozenset()
    arguments: Tuple[Any, ...] = ()
    message: Optional[str] = None
    template: str = ""

    @property
    def argument_count(self) -> int:
        return len(self.arguments)

    def argument(self, index: int, kind: Optional[type] = None, default: Any = None) -> Any:
        """
        Return the argument at index, optionally converted to kind.

        Args:
            index: Position in the argument list
            kind: Target type; the value is converted with ``kind(value)``
            default: Returned when index is out of range

        Raises:
            TypeMismatchError: If the value cannot be converted to kind
        """
        if index >= len(self.arguments):
            return default
        value = self.arguments[index]
        if kind is None or value is None or isinstance(value, kind):
            return value
        try:
            return kind(value)
        except (TypeError, ValueError) as e:
            raise TypeMismatchError(
                f'Argument {index} of "{self.template}" cannot be converted to '
                f'{kind.__name__}: {value!r}'
            ) from e

    def in_group(self, requested: FrozenSet[str]) -> bool:
        """
        Check whether this fragment is selected by the requested group names.

        A fragment without groups belongs to the default group only.
        """
        if not self.groups:
            return DEFAULT_GROUP in requested
        return not self.groups.isdisjoint(requested)


class FragmentBuilder:
    """Mutable builder the parser fills in before freezing a Fragment."""

    def __init__(self):
        self.name: Optional[str] = None
        self.groups: List[str] = []
        self.arguments: Tuple[Any, ...] = ()
        self.message: Optional[str] = None

    def set_name(self, name: str) -> "FragmentBuilder":
        self.name = name
        return self

    def set_groups(self, groups: Iterable[str]) -> "FragmentBuilder":
        self.groups = [g for g in groups if g]
        return self

    def set_arguments(self, arguments: Iterable[Any]) -> "FragmentBuilder":
        self.arguments = tuple(arguments)
        return self

    def set_message(self, message: str) -> "FragmentBuilder":
        self.message = message
        return self

    def build(self) -> Fragment:
        name = self.name or ""
        template = f"{name}(...)" if self.arguments else name
        return Fragment(
            name=name,
            groups=frozenset(self.groups),
            arguments=self.arguments,
            message=self.message,
            template=template,
        )


class Outcome(enum.Enum):
    """Result a Conditional requires of its sibling fields."""

    PASSED = "passed"
    REJECTED = "rejected"

    @classmethod
    def parse(cls, value: Any) -> "Outcome":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


@dataclass(frozen=True)
class Conditional:
    """Gate an Element on the outcome of sibling fields."""

    fields: Tuple[str, ...]
    outcome: Outcome = Outcome.PASSED

    def is_satisfied_by(self, outcomes: dict) -> Optional[bool]:
        """
        Evaluate the gate against recorded sibling outcomes.

        Args:
            outcomes: Field name -> True (passed) / False (rejected)

        Returns:
            True or False, or None when a referenced sibling has no outcome
        """
        if self.missing_fields(outcomes):
            return None
        expected = self.outcome is Outcome.PASSED
        return all(outcomes[name] is expected for name in self.fields)

    def missing_fields(self, outcomes: dict) -> Tuple[str, ...]:
        """Referenced siblings that have no recorded outcome."""
        return tuple(name for name in self.fields if name not in outcomes)


@dataclass(eq=False)
class Element:
    """One validated field of a composite type."""

    declaring_type: type
    field_type: Any
    name: str
    getter: Callable[[Any], Any]
    setter: Optional[Callable[[Any, Any], None]] = None
    nested: bool = False
    _fragments: Optional[Tuple[Fragment, ...]] = field(default=None, repr=False)
    _label: Optional[str] = field(default=None, repr=False)
    _conditional: Optional[Conditional] = field(default=None, repr=False)

    @property
    def fragments(self) -> Tuple[Fragment, ...]:
        return self._fragments or ()

    def set_fragments(self, fragments: Iterable[Fragment]) -> None:
        if self._fragments is None:
            self._fragments = tuple(fragments)

    @property
    def label(self) -> str:
        return self._label if self._label is not None else self.name

    def set_label(self, label: Optional[str]) -> None:
        if self._label is None and label is not None:
            self._label = label

    @property
    def conditional(self) -> Optional[Conditional]:
        return self._conditional

    def set_conditional(self, conditional: Optional[Conditional]) -> None:
        if self._conditional is None and conditional is not None:
            self._conditional = conditional

    @property
    def is_unconditional(self) -> bool:
        return self._conditional is None

    def get_value(self, instance: Any) -> Any:
        return self.getter(instance)

    def set_value(self, instance: Any, value: Any) -> None:
        if self.setter is None:
            raise AttributeError(f"Field '{self.name}' of {self.declaring_type.__name__} is read-only")
        self.setter(instance, value)
