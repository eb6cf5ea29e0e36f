"""
Public API for constraint-lib

This is the "front door": it wires configuration, handlers, message bundles,
the compiler and the validation engine together.
"""

import logging
from typing import Any, Callable, Optional, Sequence, Tuple, Union

from .compiler import ElementCompiler
from .config_loader import ConfigLoader, ValidatorConfig
from .dispatcher import Dispatcher, HandlerRegistry
from .exceptions import ConfigurationError
from .expressions import ExpressionResolver
from .handlers import ConstraintHandler, builtin_handlers
from .introspection import RuleTable, TypeIntrospector, TypeRules
from .messages import MessageResolver
from .metadata import Element, Fragment
from .parser import TemplateRuleParser
from .results import ValidatedResult
from .rule_table_loader import RuleTableLoader
from .validation_engine import ValidationEngine

logger = logging.getLogger(__name__)


class ValidationService:
    """
    Main validation service class.

    Example:
        from typing import Annotated
        from dataclasses import dataclass
        from constraint_lib import ValidationService, Rules, Label

        @dataclass
        class Account:
            username: Annotated[str, Rules("not-blank;length(3,20)"), Label("User name")]

        service = ValidationService()
        result = service.validate(Account(username="ab"))
        result.passed                            # False
        result.first_rejected.fragment_results[0].message
        # 'User name must be between 3 and 20 characters long'

        service.validate_value("ab", "length(3,10);pattern(/^[a-z]+$/)")
    """

    def __init__(
        self,
        config_uri: Optional[str] = None,
        config: Optional[ValidatorConfig] = None,
        rule_table: Optional[RuleTable] = None,
    ):
        """
        Initialize validation service.

        The service:
        1. Loads bundled local-config.yaml, plus config_uri on top of it
           (unless a ready ValidatorConfig is passed)
        2. Registers the built-in handlers and any configured handler classes
        3. Registers the configured message bundles
        4. Loads the configured rule tables

        Args:
            config_uri: Optional override config (path, file:// or http(s)://)
            config: Ready-made configuration, used instead of loading files
            rule_table: Shared rule table; a new empty one is created if omitted

        Raises:
            ConfigurationError: If configuration, handlers or rule tables are invalid
        """
        if config is None:
            self.config_loader: Optional[ConfigLoader] = ConfigLoader(config_uri)
            self.config = self.config_loader.get_config()
        else:
            self.config_loader = None
            self.config = config

        self.fetcher = self.config.fetcher()
        self.rule_table = rule_table if rule_table is not None else RuleTable()

        self.registry = HandlerRegistry()
        for handler in builtin_handlers():
            self.registry.register(handler)

        self.expressions = ExpressionResolver()
        self.messages = MessageResolver(
            fetcher=self.fetcher,
            key_prefix=self.config.key_prefix,
            default_locale=self.config.default_locale,
        )
        for bundle in self.config.bundles:
            self.messages.add_bundle(bundle.base_name, bundle.preload)

        self.parser = TemplateRuleParser(strict=self.config.strict_mode, resolver=self.expressions)
        self.compiler = ElementCompiler(self.parser, TypeIntrospector(self.rule_table))
        self.dispatcher = Dispatcher(
            self.registry,
            strict=self.config.strict_dispatch,
            warning_log=self.config.warning_log,
        )
        self.engine = ValidationEngine(
            compiler=self.compiler,
            dispatcher=self.dispatcher,
            messages=self.messages,
            expressions=self.expressions,
            single_failure_mode=self.config.single_failure_mode,
        )

        self.table_loader = RuleTableLoader(self.rule_table, self.registry, self.fetcher)
        for path in self.config.handlers:
            self.add_handler(path)
        for uri in self.config.rule_tables:
            self.table_loader.load(uri)

        logger.info(
            "Validation service initialized",
            extra={
                'strict_mode': self.config.strict_mode,
                'single_failure_mode': self.config.single_failure_mode,
                'handlers': len(self.registry),
            }
        )

    def add_handler(self, handler: Union[ConstraintHandler, type, str]) -> ConstraintHandler:
        """
        Register a custom handler.

        Args:
            handler: Handler instance, handler class, or ``module:Class`` path

        Returns:
            The registered handler instance
        """
        if isinstance(handler, str):
            handler = self.table_loader.load_handler(handler)
        elif isinstance(handler, type):
            if not issubclass(handler, ConstraintHandler):
                raise ConfigurationError(f"{handler.__qualname__} is not a ConstraintHandler subclass")
            handler = handler()
        self.registry.register(handler)
        return handler

    def register(self, kind: type) -> TypeRules:
        """Start registering field constraints for kind in the rule table."""
        return self.rule_table.register(kind)

    def load_rule_table(self, uri: str):
        """Load a YAML rule table; returns the types it registered."""
        return self.table_loader.load(uri)

    def compile(self, rules: str) -> Tuple[Fragment, ...]:
        """Compile rule text into Fragments (cached)."""
        return self.compiler.compile_template(rules)

    def compile_type(self, kind: type) -> Tuple[Element, ...]:
        """Compile a composite type into Elements (cached)."""
        return self.compiler.compile_type(kind)

    def validate(self, obj: Any, *groups: Any, locale: Optional[str] = None) -> ValidatedResult:
        """
        Validate a composite object.

        Args:
            obj: Object whose type carries Annotated tags or rule table entries
            *groups: Groups selecting which fragments apply (none = all)
            locale: Message locale, e.g. ``"de"`` or ``"zh_TW"``

        Returns:
            ValidatedResult with counters and rejected fields
        """
        return self.engine.validate(obj, groups, locale)

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

        Args:
            value: The value
            rules: Rule text, e.g. ``"not-blank;length(3,10)"``
            label: Display label used in messages (default ``target``)
            groups: Groups selecting which fragments apply
            locale: Message locale

        Returns:
            ValidatedResult for the single field ``target``
        """
        return self.engine.validate_value(value, rules, label, groups, locale)

    def validate_parameter(
        self,
        value: Any,
        function: Callable,
        name: str,
        groups: Sequence[Any] = (),
        locale: Optional[str] = None,
    ) -> ValidatedResult:
        """Validate value against the Annotated tags of function's parameter name."""
        return self.engine.validate_parameter(value, function, name, groups, locale)

    def get_resource_message(self, text: str, locale: Optional[str] = None) -> Optional[str]:
        """Resolve a ``{key}`` reference through the message bundles."""
        return self.engine.get_resource_message(text, locale)
