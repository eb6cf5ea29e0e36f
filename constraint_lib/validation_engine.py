"""
Validation Engine - runs compiled plans against objects and values.

For a composite object the engine:

1. Compiles the object's type to Elements (cached)
2. Evaluates every unconditional Element, recording pass/reject per field
3. Evaluates the conditional Elements in declaration order, skipping (and
   counting as ignored) those whose gate is not satisfied by the recorded
   outcomes
4. Recurses into nested composite Elements

Within an Element every Fragment selected by the requested groups is
evaluated; there is no fail-fast between Fragments. With single-failure mode
enabled the engine returns as soon as one Element is rejected.
"""

import logging
from typing import Any, Callable, FrozenSet, Iterable, List, Optional, Sequence

from .compiler import ElementCompiler
from .context import Context
from .dispatcher import Dispatcher
from .expressions import ExpressionResolver
from .introspection import Label, Valid
from .messages import EMPTY_ELEMENTS, MISSING_VALUE, TEST_PASSED, TEST_REJECTED, MessageResolver
from .metadata import DEFAULT_GROUP, Element, Fragment, group_names
from .results import ElementResult, FragmentResult, ValidatedResult

logger = logging.getLogger(__name__)

VALUE_FIELD = "target"


def requested_groups(groups: Any) -> Optional[FrozenSet[str]]:
    """
    Normalize requested groups to a set of names.

    Returns None (no filtering) when no groups or the default group is requested.
    """
    if groups is None:
        return None
    if isinstance(groups, (str, type)):
        groups = (groups,)
    groups = tuple(groups)
    if not groups:
        return None
    names = frozenset().union(*(group_names(g) for g in groups))
    if DEFAULT_GROUP in names:
        return None
    return names


def select_fragments(fragments: Iterable[Fragment], requested: Optional[FrozenSet[str]]) -> List[Fragment]:
    """Fragments applicable to the requested groups, in declaration order.

    Under a group filter, repeated fragments are evaluated once.
    """
    if requested is None:
        return list(fragments)
    selected: List[Fragment] = []
    for fragment in fragments:
        if fragment.in_group(requested) and fragment not in selected:
            selected.append(fragment)
    return selected


class ValidationEngine:
    """Core validation logic, independent of configuration and wiring."""

    def __init__(
        self,
        compiler: ElementCompiler,
        dispatcher: Dispatcher,
        messages: MessageResolver,
        expressions: ExpressionResolver,
        single_failure_mode: bool = False,
    ):
        """
        Initialize validation engine.

        Args:
            compiler: Compiles rule text and types into cached plans
            dispatcher: Evaluates fragments with the registered handlers
            messages: Resolves message keys per locale
            expressions: Interpolates message templates
            single_failure_mode: Return at the first rejected field
        """
        self.compiler = compiler
        self.dispatcher = dispatcher
        self.messages = messages
        self.expressions = expressions
        self.single_failure_mode = single_failure_mode

    def validate(self, obj: Any, groups: Sequence[Any] = (), locale: Optional[str] = None) -> ValidatedResult:
        """
        Validate a composite object.

        Args:
            obj: The object; None yields a trivial passed result
            groups: Groups selecting which fragments apply
            locale: Message locale (None for the configured default)

        Returns:
            Aggregate result; rejections are reported, never raised

        Raises:
            ExpressionError: If rule text attached to the type is malformed
            ConfigurationError: On handler or type misconfiguration
        """
        if obj is None:
            return ValidatedResult.empty(self._message(MISSING_VALUE, locale))

        elements = self.compiler.compile_type(type(obj))
        if not elements:
            return ValidatedResult.empty(self._message(EMPTY_ELEMENTS, locale))

        requested = requested_groups(groups)
        result = ValidatedResult(total_count=len(elements))
        outcomes = {}
        conditional: List[Element] = []

        for element in elements:
            if not element.is_unconditional:
                conditional.append(element)
                continue
            element_result = self._validate_element(obj, element, groups, requested, locale)
            outcomes[element.name] = element_result.passed
            if self._accumulate(result, element_result) and self.single_failure_mode:
                return self._finish(result, locale)

        for element in conditional:
            for missing in element.conditional.missing_fields(outcomes):
                logger.warning(
                    "Target condition judgment field does not exist",
                    extra={'type': type(obj).__qualname__, 'field': element.name, 'missing_field': missing}
                )
            satisfied = element.conditional.is_satisfied_by(outcomes)
            if not satisfied:
                result.ignored_accumulation()
                continue
            element_result = self._validate_element(obj, element, groups, requested, locale)
            if self._accumulate(result, element_result) and self.single_failure_mode:
                return self._finish(result, locale)

        return self._finish(result, locale)

    def validate_value(
        self,
        value: Any,
        rules: str,
        label: Optional[str] = None,
        groups: Sequence[Any] = (),
        locale: Optional[str] = None,
    ) -> ValidatedResult:
        """
        Validate a single value against rule text.

        The value is reported under the field name ``target``.
        """
        fragments = self.compiler.compile_template(rules)
        return self._validate_standalone(value, fragments, VALUE_FIELD, label or VALUE_FIELD, False, groups, locale)

    def validate_parameter(
        self,
        value: Any,
        function: Callable,
        name: str,
        groups: Sequence[Any] = (),
        locale: Optional[str] = None,
    ) -> ValidatedResult:
        """Validate a value against the Annotated tags of a function parameter."""
        member = self.compiler.introspector.parameter(function, name)
        fragments = self.compiler.compile_annotated_member(member)
        label_tag = member.tag(Label)
        if label_tag is None:
            label = name
        else:
            label = label_tag.text or "{" + member.qualified_name + "}"
        nested = member.tag(Valid) is not None
        return self._validate_standalone(value, fragments, name, label, nested, groups, locale)

    def get_resource_message(self, text: Optional[str], locale: Optional[str] = None) -> Optional[str]:
        """
        Resolve text that is a whole ``{key}`` reference through the message bundles.

        Other text, and keys no bundle defines, are returned unchanged.
        """
        if text and text.startswith("{") and text.endswith("}") and text.count("{") == 1:
            return self.messages.resolve(text[1:-1].strip(), locale, default=text)
        return text

    def _validate_standalone(self, value, fragments, field_name, label, nested, groups, locale) -> ValidatedResult:
        requested = requested_groups(groups)
        resolved_label = self.get_resource_message(label, locale)
        failures = self._validate_fragments(value, fragments, requested, None, None, resolved_label, locale)

        element_result = ElementResult(field_name, resolved_label)
        element_result.set_field_value(value)
        if nested and not failures:
            element_result.set_nested_result(self.validate(value, groups, locale))
        else:
            element_result.set_fragment_results(failures)

        result = ValidatedResult(total_count=1)
        self._accumulate(result, element_result)
        return self._finish(result, locale)

    def _validate_element(self, instance, element: Element, groups, requested, locale) -> ElementResult:
        value = element.get_value(instance)
        label = self.get_resource_message(element.label, locale)
        failures = self._validate_fragments(value, element.fragments, requested, element, instance, label, locale)

        element_result = ElementResult(element.name, label)
        element_result.set_field_value(value)
        if element.nested and not failures:
            element_result.set_nested_result(self.validate(value, groups, locale))
        else:
            element_result.set_fragment_results(failures)
        return element_result

    def _validate_fragments(self, value, fragments, requested, element, instance, label, locale) -> List[FragmentResult]:
        failures = []
        for fragment in select_fragments(fragments, requested):
            context = Context(engine=self, element=element, instance=instance, locale=locale)
            context.set_variable("label", label)
            context.set_variable("value", value)
            if not self.dispatcher.dispatch(value, fragment, context):
                failures.append(self._fragment_result(fragment, context))
        return failures

    def _fragment_result(self, fragment: Fragment, context: Context) -> FragmentResult:
        keys = context.message_keys or [fragment.name]
        return FragmentResult(
            name=fragment.name,
            error_code=keys[-1],
            message=self._fragment_message(fragment, context, keys),
            arguments=fragment.arguments,
        )

    def _fragment_message(self, fragment: Fragment, context: Context, keys: List[str]) -> str:
        if fragment.message:
            template = self.get_resource_message(fragment.message, context.locale)
            return self.expressions.resolve_message(template, context.variables, fragment.arguments)
        for key in keys:
            text = self.messages.resolve(self.messages.message_key(key), context.locale)
            if text is not None:
                return self.expressions.resolve_message(text, context.variables, fragment.arguments)
        return "{" + self.messages.message_key(keys[0]) + "}"

    def _message(self, short_key: str, locale: Optional[str]) -> Optional[str]:
        text = self.messages.resolve(self.messages.message_key(short_key), locale)
        if text is None:
            return None
        return self.expressions.resolve_message(text)

    @staticmethod
    def _accumulate(result: ValidatedResult, element_result: ElementResult) -> bool:
        """Count element_result into result; return True if it was rejected."""
        if element_result.passed:
            result.passed_accumulation()
            return False
        result.add_rejected_result(element_result)
        return True

    def _finish(self, result: ValidatedResult, locale: Optional[str]) -> ValidatedResult:
        result.message = self._message(TEST_PASSED if result.passed else TEST_REJECTED, locale)
        return result
