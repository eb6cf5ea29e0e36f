"""
Rule Text Parser - turns rule text into Fragments.

## Grammar

Rule text is a ``;``-separated list of fragment invocations::

    fragment := name [ "(" arguments ")" ] [ "<" groups ">" ] [ "<<" message ">>" ]

    not-blank;length(3,10)<create,update>;pattern(/^[a-z]+$/)<<lowercase only>>

- ``name`` is made of letters, digits, ``_``, ``-`` and ``$``.
- ``arguments`` is a comma-separated expression list. Strings may be single or
  double quoted with backslash escapes. ``/.../`` is a regex literal that is
  compiled up front and handed to the expression as an opaque variable.
- ``groups`` is a comma-separated list of group names.
- ``message`` is literal text up to the closing ``>>``.

## How It Works

The parser makes a single left-to-right pass. At each position the first
part-parser in the table whose lookahead claims the current character consumes
its part and returns the next index. On ``;`` the fragment built so far is
frozen. In strict mode the parts that fired for the fragment are then checked
against canonical order (name, arguments, groups, message); loose mode accepts
any order.
"""

import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .exceptions import ExpressionError
from .expressions import ExpressionResolver
from .metadata import Fragment, FragmentBuilder

FRAGMENT_DELIMITER = ";"
QUOTES = ("'", '"')


def is_word_char(char: str) -> bool:
    return char.isalnum() or char in "_-$"


class PartParser(ABC):
    """One structural part of a fragment invocation."""

    order: int = 0
    example: str = ""

    @abstractmethod
    def supports(self, text: str, index: int) -> bool:
        """Return True if this parser claims the character at index."""

    @abstractmethod
    def consume(self, text: str, index: int, builder: FragmentBuilder) -> int:
        """Consume the part starting at index and return the next scan index."""


class NameParser(PartParser):
    order = 1
    example = ""

    def supports(self, text: str, index: int) -> bool:
        return is_word_char(text[index])

    def consume(self, text: str, index: int, builder: FragmentBuilder) -> int:
        start = index
        while index < len(text):
            char = text[index]
            if is_word_char(char):
                index += 1
                continue
            if char in "<(;":
                break
            if char.isspace():
                following = index
                while following < len(text) and text[following].isspace():
                    following += 1
                if following < len(text) and text[following] in "<(;":
                    break
            raise ExpressionError(
                f'Fragment naming exception: "{text[:index + 1]}", '
                f'illegal character {char!r} in fragment name',
                expression=text,
            )
        builder.set_name(text[start:index].strip())
        return index


class ArgumentParser(PartParser):
    order = 2
    example = "(...)"

    def __init__(self, resolver: ExpressionResolver):
        self.resolver = resolver

    def supports(self, text: str, index: int) -> bool:
        return text[index] == "("

    def consume(self, text: str, index: int, builder: FragmentBuilder) -> int:
        buffer: List[str] = []
        patterns: Dict[str, re.Pattern] = {}
        regex: List[str] = []
        in_regex = False
        quote: Optional[str] = None
        escape = False

        index += 1
        while index < len(text):
            char = text[index]
            if in_regex:
                if char == "\\" and index + 1 < len(text) and text[index + 1] == "/":
                    regex.append("/")
                    index += 2
                    continue
                if char == "/":
                    placeholder = f"regex_{len(patterns)}"
                    patterns[placeholder] = self._compile_pattern("".join(regex), text, index)
                    buffer.append(placeholder)
                    regex = []
                    in_regex = False
                else:
                    regex.append(char)
                index += 1
                continue

            if quote is not None:
                buffer.append(char)
                if escape:
                    escape = False
                elif char == "\\":
                    escape = True
                elif char == quote:
                    quote = None
                elif char in QUOTES:
                    raise ExpressionError(
                        f'Arguments expression error : "{text[:index + 1]}", '
                        f'unescaped {char} inside a {quote}-quoted string',
                        expression=text,
                    )
                index += 1
                continue

            if char == ")":
                builder.set_arguments(self.resolver.resolve_arguments("".join(buffer), patterns))
                return index + 1
            if char == "/":
                in_regex = True
            elif char in QUOTES:
                quote = char
                buffer.append(char)
            elif not char.isspace():
                buffer.append(char)
            index += 1

        raise ExpressionError(
            f'Arguments expression error : "{text.rstrip(FRAGMENT_DELIMITER)}", missing ")"',
            expression=text,
        )

    @staticmethod
    def _compile_pattern(source: str, text: str, index: int) -> re.Pattern:
        try:
            return re.compile(source)
        except re.error as e:
            raise ExpressionError(
                f'Regular expression error : "{text[:index + 1]}", {e}', expression=text
            ) from e


class GroupParser(PartParser):
    order = 3
    example = "<...>"

    def __init__(self, strict: bool):
        self.strict = strict

    def supports(self, text: str, index: int) -> bool:
        return text[index] == "<" and not text.startswith("<<", index)

    def consume(self, text: str, index: int, builder: FragmentBuilder) -> int:
        groups: List[str] = []
        current: List[str] = []
        gap = False

        index += 1
        while index < len(text):
            char = text[index]
            if char in ",>":
                groups.append("".join(current).strip())
                current = []
                gap = False
                if char == ">":
                    builder.set_groups(groups)
                    return index + 1
            elif char.isspace():
                if current:
                    gap = True
                    current.append(char)
            else:
                if gap and self.strict:
                    raise ExpressionError(
                        f'Fragment group exception: "{text[:index]}", '
                        f'group names cannot contain whitespace',
                        expression=text,
                    )
                current.append(char)
            index += 1

        raise ExpressionError(
            f'Fragment group exception: "{text.rstrip(FRAGMENT_DELIMITER)}", missing ">"',
            expression=text,
        )


class MessageParser(PartParser):
    order = 4
    example = "<<...>>"

    def supports(self, text: str, index: int) -> bool:
        return text.startswith("<<", index)

    def consume(self, text: str, index: int, builder: FragmentBuilder) -> int:
        end = text.find(">>", index + 2)
        if end < 0:
            raise ExpressionError(
                f'Fragment message exception: "{text.rstrip(FRAGMENT_DELIMITER)}", missing ">>"',
                expression=text,
            )
        builder.set_message(text[index + 2:end])
        return end + 2


class TemplateRuleParser:
    """Parses rule text into an ordered list of Fragments."""

    def __init__(self, strict: bool = False, resolver: Optional[ExpressionResolver] = None):
        """
        Initialize the parser.

        Args:
            strict: Verify canonical part order and forbid whitespace in group names
            resolver: Evaluates argument lists; a private one is created if omitted
        """
        self.strict = strict
        self.resolver = resolver or ExpressionResolver()
        self.parts: List[PartParser] = [
            NameParser(),
            ArgumentParser(self.resolver),
            GroupParser(strict),
            MessageParser(),
        ]

    @staticmethod
    def clean(text: Optional[str]) -> str:
        """Validate, trim and terminate rule text with a delimiter."""
        if text is None:
            raise ExpressionError("Expression cannot be empty")
        if not text.strip():
            raise ExpressionError("Expression cannot be blank", expression=text)
        text = text.strip()
        if not text.endswith(FRAGMENT_DELIMITER):
            text += FRAGMENT_DELIMITER
        return text

    def parse(self, text: Optional[str]) -> List[Fragment]:
        """
        Parse rule text.

        Args:
            text: Rule text, e.g. ``"not-blank;length(3,10)"``

        Returns:
            Fragments in declaration order

        Raises:
            ExpressionError: If the text is empty or malformed
        """
        expression = self.clean(text)
        fragments: List[Fragment] = []
        builder: Optional[FragmentBuilder] = None
        fired: List[PartParser] = []

        index = 0
        while index < len(expression):
            if expression[index] == FRAGMENT_DELIMITER:
                if builder is not None:
                    fragments.append(self._finish(builder, fired, expression))
                builder = None
                fired = []
                index += 1
                continue

            part = self._claim(expression, index)
            if part is None:
                index += 1
                continue
            if builder is None:
                builder = FragmentBuilder()
            fired.append(part)
            index = part.consume(expression, index, builder)

        return fragments

    def _claim(self, text: str, index: int) -> Optional[PartParser]:
        for part in self.parts:
            if part.supports(text, index):
                return part
        return None

    def _finish(self, builder: FragmentBuilder, fired: List[PartParser], expression: str) -> Fragment:
        if not builder.name:
            raise ExpressionError(
                f'Fragment naming exception: "{expression}", fragment name is missing',
                expression=expression,
            )
        if self.strict:
            canonical = sorted(fired, key=lambda p: p.order)
            if [p.order for p in fired] != [p.order for p in canonical]:
                expected = builder.name + "".join(p.example for p in canonical)
                raise ExpressionError(
                    f'The format of the expression "{builder.name}" is incorrect, '
                    f'it should be: "{expected}"',
                    expression=expression,
                )
        return builder.build()
