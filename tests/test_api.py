"""
Tests for ValidationService API

Tests the public API methods with various scenarios.
"""
import pytest

from constraint_lib import ConfigurationError, ConstraintHandler, ExpressionError, ValidationService, __version__
from sample_models import Account, EvenHandler, Product


class ShoutHandler(ConstraintHandler):
    """Replacement for the built-in not-blank handler."""

    NAMES = ("not-blank",)
    SUPPORTED_TYPES = (str,)
    REQUIRED = True

    def validate(self, value, fragment, context):
        return value.isupper()


class TestInitialization:
    """Test ValidationService initialization."""

    def test_create_service(self):
        """Test that service can be created."""
        service = ValidationService()
        assert service is not None

    def test_service_has_engine(self, service):
        """Test that service has validation engine."""
        assert service.engine is not None

    def test_service_has_config_loader(self, service):
        """Test that service has config loader."""
        assert service.config_loader is not None

    def test_builtin_handlers(self, service):
        """Test that the built-in handlers are registered."""
        for name in ("required", "length", "pattern", "email", "prefixs", "suffixs"):
            assert name in service.registry

    def test_explicit_config(self, make_service):
        """Test that a ready configuration skips config file loading."""
        service = make_service(strict_dispatch=True)
        assert service.config_loader is None
        assert service.dispatcher.strict

    def test_version(self):
        """Test that the package exposes its version."""
        assert __version__ == "0.1.0"


class TestCompile:
    """Test compile() and compile_type()."""

    def test_compile(self, service):
        """Test that rule text compiles to cached fragments."""
        fragments = service.compile("not-blank;length(3,20)")
        assert [f.name for f in fragments] == ["not-blank", "length"]
        assert service.compile("not-blank;length(3,20)") is fragments

    def test_compile_error(self, service):
        """Test that malformed rule text raises ExpressionError."""
        with pytest.raises(ExpressionError):
            service.compile("length(3")

    def test_compile_type(self, service):
        """Test that a type compiles to its elements."""
        assert [e.name for e in service.compile_type(Account)] == ["username", "email", "age", "address"]


class TestHandlers:
    """Test add_handler()."""

    def test_add_handler_class(self, service):
        """Test that a handler class is instantiated and registered."""
        service.add_handler(EvenHandler)
        assert service.validate_value(4, "even").passed
        assert not service.validate_value(3, "even").passed

    def test_add_handler_path(self, service):
        """Test that a module:Class path is imported and registered."""
        handler = service.add_handler("sample_models:EvenHandler")
        assert isinstance(handler, EvenHandler)
        assert "even" in service.registry

    def test_replace_builtin(self, service):
        """Test that a custom handler can replace a built-in one."""
        service.add_handler(ShoutHandler())
        assert service.validate_value("ABC", "not-blank").passed
        assert not service.validate_value("abc", "not-blank").passed

    def test_reject_non_handler_class(self, service):
        """Test that a class that is not a handler is rejected."""
        with pytest.raises(ConfigurationError, match="is not a ConstraintHandler subclass"):
            service.add_handler(Product)

    def test_strict_dispatch(self, make_service):
        """Test that strict dispatch rejects rules without a handler."""
        service = make_service(strict_dispatch=True)
        with pytest.raises(ConfigurationError, match="did not find a suitable handler"):
            service.validate_value("x", "no-such-rule")


class TestRegister:
    """Test the rule table builder API."""

    def test_register(self, service):
        """Test that fields registered in code are validated."""
        service.register(Product).field("code", "not-blank;length(4)", label="Product code")

        result = service.validate(Product(code="AB"))

        assert not result.passed
        assert result.first_rejected.fragment_results[0].message == "Product code must be exactly 4 characters long"


class TestValidate:
    """Test validate() and validate_value()."""

    def test_validate_returns_result(self, service):
        """Test that validate returns a ValidatedResult dict form."""
        data = service.validate(Account(username="alice", email="bad", age=30)).to_dict()
        assert data["passed"] is False
        assert data["rejected"][0]["field"] == "email"
        assert data["rejected"][0]["result"][0]["message"] == "email is not a valid email address"

    def test_validate_with_groups(self, service):
        """Test that groups are passed as positional arguments."""
        result = service.validate(Account(username="", email="bad", age=10), "create")
        assert [r.field_name for r in result.rejected_results] == ["email", "age"]

    def test_validate_value(self, service):
        """Test that single values are validated."""
        assert service.validate_value("abc", "not-blank;length(3)").passed
        assert not service.validate_value("", "not-blank").passed

    def test_validate_value_groups(self, service):
        """Test that groups filter single-value fragments."""
        assert service.validate_value("", "not-blank<create>", groups=["update"]).passed
        assert not service.validate_value("", "not-blank<create>", groups=["create"]).passed
