"""
Rule Table Loader - declarative constraints from YAML.

Rule tables attach constraints to types that cannot (or should not) carry
``Annotated`` metadata. A table names each type by its import path and lists
the constrained fields:

```yaml
types:
  billing.models:Customer:
    fields:
      name:
        rules: "not-blank;length(2,40)"
        label: Customer name
      address:
        valid: true
      vat_number:
        rules: "not-blank"
        when: {fields: [country], is: passed}
      tags:
        constraints:
          - {name: length, arguments: [1, 5], groups: [create]}

handlers:
  - billing.validation:VatNumberHandler
```

## How It Works

1. The table is fetched through ResourceFetcher (path, file:// or http(s)://)
2. Its structure is checked against TABLE_SCHEMA with jsonschema
3. Each ``module:Qualname`` is imported and the class cached
4. Fields are registered into the shared RuleTable; handlers are
   instantiated and registered into the HandlerRegistry
"""

import importlib
import logging
from typing import Any, Dict, List, Optional

import jsonschema
import yaml

from .dispatcher import HandlerRegistry
from .exceptions import ConfigurationError
from .handlers.base import ConstraintHandler
from .introspection import Constraint, RuleTable, When
from .resource_fetcher import ResourceFetcher

logger = logging.getLogger(__name__)

IMPORT_PATH = "^[\\w.]+:[\\w.]+$"

TABLE_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "types": {
            "type": "object",
            "propertyNames": {"pattern": IMPORT_PATH},
            "additionalProperties": {
                "type": "object",
                "required": ["fields"],
                "properties": {
                    "fields": {
                        "type": "object",
                        "additionalProperties": {"$ref": "#/definitions/field"},
                    },
                },
            },
        },
        "handlers": {"type": "array", "items": {"type": "string", "pattern": IMPORT_PATH}},
    },
    "definitions": {
        "field": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "rules": {"type": "string"},
                "label": {"type": "string"},
                "valid": {"type": "boolean"},
                "when": {
                    "type": "object",
                    "required": ["fields"],
                    "additionalProperties": False,
                    "properties": {
                        "fields": {"type": "array", "items": {"type": "string"}, "minItems": 1},
                        "is": {"enum": ["passed", "rejected"]},
                    },
                },
                "constraints": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "required": ["name"],
                        "additionalProperties": False,
                        "properties": {
                            "name": {"type": "string"},
                            "arguments": {"type": "array"},
                            "groups": {"type": "array", "items": {"type": "string"}},
                            "message": {"type": "string"},
                        },
                    },
                },
            },
        },
    },
}


class RuleTableLoader:
    """Loads YAML rule tables into a RuleTable and a HandlerRegistry."""

    def __init__(self, table: RuleTable, registry: Optional[HandlerRegistry] = None,
                 fetcher: Optional[ResourceFetcher] = None):
        """
        Initialize rule table loader.

        Args:
            table: RuleTable the fields are registered into
            registry: HandlerRegistry for handlers listed in tables (optional)
            fetcher: ResourceFetcher for table URIs (optional)
        """
        self.table = table
        self.registry = registry
        self.fetcher = fetcher or ResourceFetcher()
        self.loaded_classes = {}  # Cache: import path -> class

    def load(self, uri: str) -> List[type]:
        """
        Load one rule table.

        Args:
            uri: Table path or URI

        Returns:
            The types registered by the table

        Raises:
            ConfigurationError: If the table is missing, malformed or names
                types or handlers that cannot be imported
        """
        try:
            data = self.fetcher.load_yaml(uri)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in rule table {uri}: {e}") from e
        if data is None:
            raise ConfigurationError(f"Rule table not found: {uri}")
        return self.load_data(data, source=uri)

    def load_data(self, data: Dict[str, Any], source: str = "<memory>") -> List[type]:
        """Register an already parsed rule table document."""
        try:
            jsonschema.validate(data, TABLE_SCHEMA)
        except jsonschema.ValidationError as e:
            location = "/".join(str(p) for p in e.absolute_path) or "<root>"
            raise ConfigurationError(f"Invalid rule table {source} at {location}: {e.message}") from e

        registered = []
        for path, spec in (data.get("types") or {}).items():
            kind = self.resolve_class(path)
            builder = self.table.register(kind)
            for name, field_spec in spec["fields"].items():
                builder.field(name, field_spec.get("rules"), *self._constraints(field_spec),
                              label=field_spec.get("label"),
                              valid=field_spec.get("valid", False),
                              when=self._when(field_spec))
            registered.append(kind)

        for path in data.get("handlers") or ():
            handler = self.load_handler(path)
            if self.registry is None:
                raise ConfigurationError(f"Rule table {source} lists handlers but no registry was given")
            self.registry.register(handler)

        logger.info(
            "Rule table loaded",
            extra={'source': source, 'types': [k.__qualname__ for k in registered]}
        )
        return registered

    def resolve_class(self, path: str) -> type:
        """
        Import ``module:Qualname`` and return the class.

        Raises:
            ConfigurationError: If the module or attribute cannot be found
        """
        # Check cache first
        if path in self.loaded_classes:
            return self.loaded_classes[path]

        module_name, _, qualname = path.partition(":")
        if not module_name or not qualname:
            raise ConfigurationError(f"Import path must look like 'module:Class', got '{path}'")
        try:
            target = importlib.import_module(module_name)
        except ImportError as e:
            raise ConfigurationError(f"Failed to import {module_name} for '{path}': {e}") from e
        for attribute in qualname.split("."):
            if not hasattr(target, attribute):
                raise ConfigurationError(f"'{qualname}' not found in module {module_name}")
            target = getattr(target, attribute)
        if not isinstance(target, type):
            raise ConfigurationError(f"'{path}' is not a class")

        self.loaded_classes[path] = target
        return target

    def load_handler(self, path: str) -> ConstraintHandler:
        """Import and instantiate a handler class."""
        handler_class = self.resolve_class(path)
        if not issubclass(handler_class, ConstraintHandler):
            raise ConfigurationError(f"'{path}' is not a ConstraintHandler subclass")
        return handler_class()

    @staticmethod
    def _constraints(field_spec: Dict[str, Any]) -> List[Constraint]:
        return [
            Constraint(c["name"], *c.get("arguments", ()), groups=tuple(c.get("groups", ())),
                       message=c.get("message"))
            for c in field_spec.get("constraints") or ()
        ]

    @staticmethod
    def _when(field_spec: Dict[str, Any]) -> Optional[When]:
        when = field_spec.get("when")
        if not when:
            return None
        return When(*when["fields"], outcome=when.get("is", "passed"))
