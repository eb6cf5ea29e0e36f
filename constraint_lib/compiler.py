"""
Element Compiler - turns rule text, members and types into cached plans.

Three entry points, each backed by its own CompilationCache:

- ``compile_template(text)``: rule text -> Fragments, keyed by normalized text
- ``compile_annotated_member(member)``: FieldInfo / ParameterInfo -> Fragments
- ``compile_type(kind)``: composite type -> Elements, keyed by the type

Nested composite types are compiled after their parent's plan is published,
so types that reference each other (or themselves) never wait on their own
in-flight compilation.
"""

import logging
from typing import Any, Optional, Tuple

from .cache import CompilationCache
from .exceptions import ConfigurationError
from .introspection import (
    Constraint,
    FieldInfo,
    Label,
    Rules,
    TypeIntrospector,
    Valid,
    When,
    is_opaque_type,
)
from .metadata import Element, Fragment
from .parser import TemplateRuleParser

logger = logging.getLogger(__name__)


class ElementCompiler:
    """Compiles and caches Fragments and Elements."""

    def __init__(self, parser: TemplateRuleParser, introspector: Optional[TypeIntrospector] = None):
        """
        Initialize the compiler.

        Args:
            parser: Rule text parser (strict or loose)
            introspector: Field discovery and accessors; defaults to annotations only
        """
        self.parser = parser
        self.introspector = introspector or TypeIntrospector()
        self.template_cache = CompilationCache("template-cache")
        self.member_cache = CompilationCache("member-cache")
        self.type_cache = CompilationCache("type-cache")

    def compile_template(self, text: Optional[str]) -> Tuple[Fragment, ...]:
        """
        Compile rule text into Fragments.

        Raises:
            ExpressionError: If the text is empty or malformed
        """
        key = TemplateRuleParser.clean(text)
        return self.template_cache.get_or_compute(key, lambda k: tuple(self.parser.parse(k)))

    def compile_annotated_member(self, member: Any) -> Tuple[Fragment, ...]:
        """
        Compile the constraint tags of a field or parameter into Fragments.

        A ``Rules`` tag takes precedence; otherwise each ``Constraint`` tag
        becomes one Fragment.
        """
        return self.member_cache.get_or_compute(member, self._compile_member)

    def compile_type(self, kind: type) -> Tuple[Element, ...]:
        """
        Compile a composite type into its Elements, in declaration order.

        Raises:
            ConfigurationError: If a conditional references a conditional field
        """
        elements = self.type_cache.get_or_compute(kind, self._compile_type)
        for element in elements:
            if element.nested and not self.type_cache.contains(element.field_type):
                self.compile_type(element.field_type)
        return elements

    def _compile_member(self, member: Any) -> Tuple[Fragment, ...]:
        rules = member.tag(Rules)
        if rules is not None:
            return self.compile_template(rules.text)
        return tuple(c.to_fragment() for c in member.tags_of(Constraint))

    def _compile_type(self, kind: type) -> Tuple[Element, ...]:
        elements = []
        for member in self.introspector.fields(kind):
            element = self._compile_field(kind, member)
            if element is not None:
                elements.append(element)
        self._check_conditionals(kind, elements)
        logger.debug(
            "Type compiled",
            extra={'type': kind.__qualname__, 'elements': len(elements)}
        )
        return tuple(elements)

    def _compile_field(self, kind: type, member: FieldInfo) -> Optional[Element]:
        fragments = self.compile_annotated_member(member)
        nested = member.tag(Valid) is not None
        if nested and is_opaque_type(member.field_type):
            logger.warning(
                "Skip nested validation, field type cannot be validated",
                extra={
                    'type': kind.__qualname__,
                    'field': member.name,
                    'field_type': getattr(member.field_type, '__qualname__', str(member.field_type)),
                }
            )
            nested = False
        if not nested and not fragments:
            return None

        element = Element(
            declaring_type=member.declaring_type,
            field_type=member.field_type,
            name=member.name,
            getter=member.getter,
            setter=member.setter,
            nested=nested,
        )
        element.set_fragments(fragments)
        element.set_label(self._label(member))
        when = member.tag(When)
        if when is not None:
            element.set_conditional(when.to_conditional())
        return element

    @staticmethod
    def _label(member: FieldInfo) -> Optional[str]:
        label = member.tag(Label)
        if label is None:
            return member.name
        if not label.text:
            return "{" + member.qualified_name + "}"
        return label.text

    @staticmethod
    def _check_conditionals(kind: type, elements) -> None:
        gated = {e.name for e in elements if not e.is_unconditional}
        for element in elements:
            if element.is_unconditional:
                continue
            nested = [name for name in element.conditional.fields if name in gated]
            if nested:
                raise ConfigurationError(
                    f"Field '{element.name}' of {kind.__qualname__} depends on conditional "
                    f"field(s) {', '.join(nested)}; conditions cannot be nested"
                )
