"""
Tests for ExpressionResolver

Covers argument list evaluation and message interpolation.
"""
import re

import pytest

from constraint_lib import ExpressionError
from constraint_lib.expressions import ExpressionResolver, render_value


@pytest.fixture
def resolver():
    """Create an ExpressionResolver."""
    return ExpressionResolver()


class TestResolveArguments:
    """Test ExpressionResolver.resolve_arguments()."""

    def test_argument_list(self, resolver):
        """Test that an argument list evaluates to a tuple."""
        assert resolver.resolve_arguments("1,'a',true") == (1, "a", True)

    def test_single_argument(self, resolver):
        """Test that a single argument still yields a tuple."""
        assert resolver.resolve_arguments("5") == (5,)

    def test_empty_argument_list(self, resolver):
        """Test that empty text yields no arguments."""
        assert resolver.resolve_arguments("") == ()

    def test_variables(self, resolver):
        """Test that variables are visible to the expression."""
        pattern = re.compile("a+")
        assert resolver.resolve_arguments("regex_0", {"regex_0": pattern}) == (pattern,)

    def test_unknown_name(self, resolver):
        """Test that an unknown name is an error."""
        with pytest.raises(ExpressionError):
            resolver.resolve_arguments("missing_name")

    def test_syntax_error(self, resolver):
        """Test that a syntax error is reported as ExpressionError."""
        with pytest.raises(ExpressionError, match="Arguments expression error"):
            resolver.resolve_arguments("1,,2")


class TestResolveMessage:
    """Test ExpressionResolver.resolve_message()."""

    def test_positional_arguments(self, resolver):
        """Test that numeric placeholders index into the arguments."""
        assert resolver.resolve_message("must be {0} to {1}", {}, (1, 2)) == "must be 1 to 2"

    def test_out_of_range_argument(self, resolver):
        """Test that a placeholder beyond the arguments renders empty."""
        assert resolver.resolve_message("[{5}]", {}, (1,)) == "[]"

    def test_named_variables(self, resolver):
        """Test that named placeholders come from the variables."""
        assert resolver.resolve_message("{label} is required", {"label": "Name"}) == "Name is required"

    def test_missing_variable(self, resolver):
        """Test that an unknown variable renders empty."""
        assert resolver.resolve_message("{label} x", {}) == " x"

    def test_expression_placeholder(self, resolver):
        """Test that placeholders are evaluated as expressions."""
        assert resolver.resolve_message("{value * 2}", {"value": 3}) == "6"

    def test_nested_braces(self, resolver):
        """Test that braces inside a placeholder are matched."""
        assert resolver.resolve_message("{ {'k': 'v'}['k'] }") == "v"

    def test_unterminated_placeholder(self, resolver):
        """Test that an unterminated placeholder is kept verbatim."""
        assert resolver.resolve_message("a {b") == "a {b"

    def test_regex_argument(self, resolver):
        """Test that compiled patterns render as their source."""
        assert resolver.resolve_message("{0}", {}, (re.compile("a+"),)) == "a+"

    def test_plain_text(self, resolver):
        """Test that text without placeholders is returned unchanged."""
        assert resolver.resolve_message("nothing to do") == "nothing to do"
        assert resolver.resolve_message(None) == ""

    @pytest.mark.parametrize("template, expected", [
        ("{a-z} letters", " letters"),
        ("{value + 1} bad", " bad"),
        ("{oops oops} here", " here"),
        ("{value.nope.deeper}", ""),
    ])
    def test_failing_placeholder_renders_empty(self, resolver, template, expected):
        """Test that a placeholder that fails to evaluate renders as an empty string."""
        assert resolver.resolve_message(template, {"value": "ab"}) == expected


class TestRenderValue:
    """Test render_value()."""

    def test_none(self):
        """Test that None renders empty."""
        assert render_value(None) == ""

    def test_number(self):
        """Test that other values render with str()."""
        assert render_value(1.5) == "1.5"
