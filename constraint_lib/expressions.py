"""
Argument and message expression resolution.

Argument lists in rule text, e.g. ``range(1, 10)`` or ``contains('a', "b")``,
and the ``{...}`` placeholders of message templates are evaluated with Jinja2's
sandboxed expression compiler. Compiled expressions are memoized in a
CompilationCache, since the same rule text is compiled once but messages are
rendered on every rejection.
"""

import logging
import re
from typing import Any, Dict, Optional, Sequence, Tuple

from jinja2 import StrictUndefined, TemplateError, TemplateSyntaxError, Undefined, UndefinedError
from jinja2.sandbox import SandboxedEnvironment

from .cache import CompilationCache
from .exceptions import ExpressionError

logger = logging.getLogger(__name__)


def render_value(value: Any) -> str:
    """Render a resolved value for inclusion in a message."""
    if value is None or isinstance(value, Undefined):
        return ""
    if isinstance(value, re.Pattern):
        return value.pattern
    return str(value)


class ExpressionResolver:
    """Evaluates argument lists and interpolates message templates."""

    def __init__(self):
        self._argument_env = SandboxedEnvironment(undefined=StrictUndefined)
        self._message_env = SandboxedEnvironment()
        self._argument_cache = CompilationCache("argument-expressions")
        self._message_cache = CompilationCache("message-expressions")

    def resolve_arguments(self, text: str, variables: Optional[Dict[str, Any]] = None) -> Tuple[Any, ...]:
        """
        Evaluate a comma-separated argument list.

        The text is wrapped as a list literal so the result is always a tuple,
        whatever the number of arguments.

        Args:
            text: Argument list without the surrounding parentheses
            variables: Names visible to the expression (regex placeholders)

        Returns:
            Tuple of evaluated argument values

        Raises:
            ExpressionError: On a syntax error or an unknown name
        """
        if not text.strip():
            return ()
        expression = self._argument_cache.get_or_compute(text, self._compile_arguments)
        try:
            values = expression(**(variables or {}))
        except UndefinedError as e:
            raise ExpressionError(
                f'Arguments expression error : "{text}", {e}', expression=text, reason=str(e)
            ) from e
        for value in values:
            if isinstance(value, Undefined):
                raise ExpressionError(
                    f'Arguments expression error : "{text}", unknown name in argument list',
                    expression=text,
                )
        return tuple(values)

    def resolve(self, expression: str, variables: Optional[Dict[str, Any]] = None) -> Any:
        """
        Evaluate a single placeholder expression against variables.

        Unknown names evaluate to None; other evaluation errors propagate.
        """
        compiled = self._message_cache.get_or_compute(expression, self._compile_expression)
        return compiled(**(variables or {}))

    def resolve_message(
        self,
        template: Optional[str],
        variables: Optional[Dict[str, Any]] = None,
        arguments: Sequence[Any] = (),
    ) -> str:
        """
        Interpolate ``{...}`` placeholders in a message template.

        A numeric placeholder such as ``{0}`` indexes into arguments; any other
        placeholder is evaluated as an expression against variables. Anything
        that does not resolve renders as an empty string.

        Args:
            template: Message text, possibly containing placeholders
            variables: Context variables for named placeholders
            arguments: Positional fragment arguments

        Returns:
            The interpolated message
        """
        if not template:
            return ""
        if "{" not in template:
            return template

        parts = []
        index = 0
        length = len(template)
        while index < length:
            char = template[index]
            if char != "{":
                parts.append(char)
                index += 1
                continue
            end = self._closing_brace(template, index)
            if end < 0:
                parts.append(template[index:])
                break
            placeholder = template[index + 1:end].strip()
            parts.append(self._render_placeholder(placeholder, variables, arguments))
            index = end + 1
        return "".join(parts)

    def _render_placeholder(self, placeholder: str, variables, arguments: Sequence[Any]) -> str:
        if not placeholder:
            return ""
        if placeholder.isdigit():
            position = int(placeholder)
            if position < len(arguments):
                return render_value(arguments[position])
            return ""
        try:
            return render_value(self.resolve(placeholder, variables))
        except (ExpressionError, TemplateError, TypeError, ValueError, ArithmeticError, LookupError) as e:
            logger.debug(
                "Message placeholder did not resolve",
                extra={'placeholder': placeholder, 'error': str(e)}
            )
            return ""

    @staticmethod
    def _closing_brace(template: str, start: int) -> int:
        depth = 0
        for index in range(start, len(template)):
            if template[index] == "{":
                depth += 1
            elif template[index] == "}":
                depth -= 1
                if depth == 0:
                    return index
        return -1

    def _compile_arguments(self, text: str):
        try:
            return self._argument_env.compile_expression(f"[{text}]", undefined_to_none=False)
        except TemplateSyntaxError as e:
            raise ExpressionError(
                f'Arguments expression error : "{text}", {e.message}', expression=text, reason=e.message
            ) from e

    def _compile_expression(self, expression: str):
        try:
            return self._message_env.compile_expression(expression, undefined_to_none=True)
        except TemplateSyntaxError as e:
            raise ExpressionError(
                f'Message expression error : "{{{expression}}}", {e.message}',
                expression=expression,
                reason=e.message,
            ) from e
