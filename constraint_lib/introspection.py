"""
Field discovery and accessors for composite types.

The compiler never reflects over objects itself. It asks a TypeIntrospector
for the fields of a type, and each FieldInfo carries its read/write accessors
and the constraint tags attached to it. Tags come from two places:

1. ``typing.Annotated`` metadata on class annotations::

       @dataclass
       class Account:
           username: Annotated[str, Rules("not-blank;length(3,20)"), Label("User name")]

2. An explicit RuleTable filled through the builder API (or loaded from YAML
   by RuleTableLoader), for types whose source cannot be annotated::

       table.register(Account).field("username", rules="not-blank", label="User name")

When both declare the same field, the table entry wins.
"""

import inspect
import sys
import threading
import types
import typing
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .exceptions import ConfigurationError
from .metadata import Conditional, Fragment, FragmentBuilder, Outcome


# ---------------------------------------------------------------------------
# Constraint tags
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Rules:
    """Combined rule text for one member."""

    text: str


@dataclass(frozen=True, init=False)
class Constraint:
    """A single constraint invocation, the tag form of one fragment."""

    name: str
    arguments: Tuple[Any, ...]
    groups: Tuple[str, ...]
    message: Optional[str]

    def __init__(self, name: str, *arguments: Any, groups: Tuple[str, ...] = (), message: Optional[str] = None):
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "arguments", tuple(arguments))
        object.__setattr__(self, "groups", tuple(groups))
        object.__setattr__(self, "message", message)

    def to_fragment(self) -> Fragment:
        builder = FragmentBuilder().set_name(self.name).set_arguments(self.arguments).set_groups(self.groups)
        if self.message is not None:
            builder.set_message(self.message)
        return builder.build()


@dataclass(frozen=True)
class Label:
    """Human-readable field label. An empty label means a resource key."""

    text: str = ""


@dataclass(frozen=True)
class Valid:
    """Marks a field as a nested composite to validate recursively."""


@dataclass(frozen=True, init=False)
class When:
    """Evaluate the field only when every named sibling has the given outcome."""

    fields: Tuple[str, ...]
    outcome: Outcome

    def __init__(self, *fields: str, outcome: Any = Outcome.PASSED):
        object.__setattr__(self, "fields", tuple(fields))
        object.__setattr__(self, "outcome", Outcome.parse(outcome))

    def to_conditional(self) -> Conditional:
        return Conditional(fields=self.fields, outcome=self.outcome)


# ---------------------------------------------------------------------------
# Member descriptors
# ---------------------------------------------------------------------------

class TaggedMember:
    """Tag lookup shared by fields and function parameters."""

    tags: Tuple[Any, ...] = ()

    def tag(self, kind: type) -> Optional[Any]:
        for tag in self.tags:
            if isinstance(tag, kind):
                return tag
        return None

    def tags_of(self, kind: type) -> List[Any]:
        return [tag for tag in self.tags if isinstance(tag, kind)]


@dataclass(frozen=True)
class FieldInfo(TaggedMember):
    """One field of a type, with accessors and tags. Identity is (type, name)."""

    declaring_type: type
    name: str
    field_type: Any = field(default=object, compare=False)
    getter: Optional[Callable[[Any], Any]] = field(default=None, compare=False, repr=False)
    setter: Optional[Callable[[Any, Any], None]] = field(default=None, compare=False, repr=False)
    tags: Tuple[Any, ...] = field(default=(), compare=False)

    @property
    def qualified_name(self) -> str:
        return f"{self.declaring_type.__module__}.{self.declaring_type.__qualname__}.{self.name}"


@dataclass(frozen=True)
class ParameterInfo(TaggedMember):
    """One parameter of a function, with the tags from its Annotated hint."""

    function: Callable
    name: str
    field_type: Any = field(default=object, compare=False)
    tags: Tuple[Any, ...] = field(default=(), compare=False)

    @property
    def qualified_name(self) -> str:
        return f"{self.function.__module__}.{self.function.__qualname__}.{self.name}"


def read_accessor(name: str) -> Callable[[Any], Any]:
    """Default getter: item access for mappings, attribute access otherwise."""

    def getter(instance):
        if isinstance(instance, Mapping):
            return instance.get(name)
        return getattr(instance, name, None)

    return getter


def write_accessor(name: str) -> Callable[[Any, Any], None]:
    """Default setter matching read_accessor."""

    def setter(instance, value):
        if isinstance(instance, Mapping):
            instance[name] = value
        else:
            setattr(instance, name, value)

    return setter


def unwrap_type(hint: Any) -> Any:
    """Reduce a type hint to the runtime class it stands for.

    ``Optional[X]`` and ``X | None`` become X, generics become their origin,
    and anything unresolvable becomes ``object``.
    """
    origin = typing.get_origin(hint)
    if origin is typing.Annotated:
        return unwrap_type(hint.__origin__)
    if origin in (typing.Union, types.UnionType):
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        return unwrap_type(args[0]) if len(args) == 1 else object
    if origin is not None:
        return origin if isinstance(origin, type) else object
    return hint if isinstance(hint, type) else object


def is_opaque_type(kind: Any) -> bool:
    """True for types that cannot be nested composites (builtins, stdlib, typing)."""
    if not isinstance(kind, type) or kind is object:
        return True
    module = kind.__module__ or ""
    return module.split(".")[0] in sys.stdlib_module_names


def annotation_tags(hint: Any) -> Tuple[Any, ...]:
    if typing.get_origin(hint) is typing.Annotated:
        return tuple(hint.__metadata__)
    return ()


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldRule:
    """Constraint descriptors registered for one (type, field) pair."""

    name: str
    rules: Optional[str] = None
    constraints: Tuple[Constraint, ...] = ()
    label: Optional[str] = None
    valid: bool = False
    when: Optional[When] = None
    field_type: Any = None
    getter: Optional[Callable[[Any], Any]] = None
    setter: Optional[Callable[[Any, Any], None]] = None

    def tags(self) -> Tuple[Any, ...]:
        tags: List[Any] = []
        if self.rules is not None:
            tags.append(Rules(self.rules))
        tags.extend(self.constraints)
        if self.label is not None:
            tags.append(Label(self.label))
        if self.valid:
            tags.append(Valid())
        if self.when is not None:
            tags.append(self.when)
        return tuple(tags)


class TypeRules:
    """Builder returned by RuleTable.register for one type."""

    def __init__(self, table: "RuleTable", kind: type):
        self._table = table
        self.kind = kind

    def field(
        self,
        name: str,
        rules: Optional[str] = None,
        *constraints: Constraint,
        label: Optional[str] = None,
        valid: bool = False,
        when: Optional[When] = None,
        field_type: Any = None,
        getter: Optional[Callable[[Any], Any]] = None,
        setter: Optional[Callable[[Any, Any], None]] = None,
    ) -> "TypeRules":
        """
        Register constraints for one field and return self for chaining.

        Args:
            name: Field name
            rules: Rule text, e.g. ``"not-blank;length(3,20)"``
            *constraints: Single Constraint tags, used when rules is omitted
            label: Display label; ``""`` means the ``{module.Type.field}`` resource key
            valid: Validate the field value recursively as a composite
            when: Conditional gate on sibling outcomes
            field_type: Field type, defaults to the class annotation
            getter: Read accessor, defaults to attribute/item access
            setter: Write accessor, defaults to attribute/item assignment
        """
        self._table.add(self.kind, FieldRule(
            name=name,
            rules=rules,
            constraints=tuple(constraints),
            label=label,
            valid=valid,
            when=when,
            field_type=field_type,
            getter=getter,
            setter=setter,
        ))
        return self


class RuleTable:
    """
    Explicit (type, field) -> constraint descriptor registry.

    Populate the table before the first validation of a type; compiled types
    are cached and do not see later registrations.
    """

    def __init__(self):
        self._types: Dict[type, Dict[str, FieldRule]] = {}
        self._lock = threading.Lock()

    def register(self, kind: type) -> TypeRules:
        return TypeRules(self, kind)

    def add(self, kind: type, rule: FieldRule) -> None:
        with self._lock:
            fields = dict(self._types.get(kind, {}))
            fields[rule.name] = rule
            self._types[kind] = fields

    def fields(self, kind: type) -> List[FieldRule]:
        """Rules registered directly on kind, in registration order."""
        return list(self._types.get(kind, {}).values())

    def __contains__(self, kind: type) -> bool:
        return kind in self._types

    def __len__(self) -> int:
        return len(self._types)


# ---------------------------------------------------------------------------
# Introspector
# ---------------------------------------------------------------------------

class TypeIntrospector:
    """Yields the tagged fields of a type from annotations and a RuleTable."""

    def __init__(self, table: Optional[RuleTable] = None):
        self.table = table if table is not None else RuleTable()

    def fields(self, kind: type) -> List[FieldInfo]:
        """
        Return the fields of kind, base classes first.

        Args:
            kind: The composite type

        Returns:
            FieldInfo per annotated or registered field

        Raises:
            ConfigurationError: If the annotations of kind cannot be resolved
        """
        found: Dict[str, FieldInfo] = {}
        for klass in reversed(kind.__mro__):
            if klass is object:
                continue
            hints = self._own_hints(klass)
            for name, hint in hints.items():
                if typing.get_origin(hint) is typing.ClassVar:
                    continue
                found[name] = FieldInfo(
                    declaring_type=klass,
                    name=name,
                    field_type=unwrap_type(hint),
                    getter=read_accessor(name),
                    setter=write_accessor(name),
                    tags=annotation_tags(hint),
                )
            for rule in self.table.fields(klass):
                previous = found.get(rule.name)
                field_type = rule.field_type
                if field_type is None:
                    field_type = previous.field_type if previous is not None else object
                found[rule.name] = FieldInfo(
                    declaring_type=klass,
                    name=rule.name,
                    field_type=unwrap_type(field_type),
                    getter=rule.getter or read_accessor(rule.name),
                    setter=rule.setter or write_accessor(rule.name),
                    tags=rule.tags(),
                )
        return list(found.values())

    @staticmethod
    def parameter(function: Callable, name: str) -> ParameterInfo:
        """Describe one parameter of function from its Annotated hint."""
        if name not in inspect.signature(function).parameters:
            raise ConfigurationError(f"{function.__qualname__} has no parameter '{name}'")
        try:
            hints = typing.get_type_hints(function, include_extras=True)
        except (NameError, TypeError) as e:
            raise ConfigurationError(f"Cannot resolve annotations of {function.__qualname__}: {e}") from e
        hint = hints.get(name, object)
        return ParameterInfo(
            function=function,
            name=name,
            field_type=unwrap_type(hint),
            tags=annotation_tags(hint),
        )

    @staticmethod
    def _own_hints(klass: type) -> Dict[str, Any]:
        own = inspect.get_annotations(klass)
        if not own:
            return {}
        try:
            hints = typing.get_type_hints(klass, include_extras=True)
        except (NameError, TypeError) as e:
            raise ConfigurationError(f"Cannot resolve annotations of {klass.__qualname__}: {e}") from e
        return {name: hints[name] for name in own if name in hints}
