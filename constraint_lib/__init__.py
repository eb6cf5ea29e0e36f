"""
constraint-lib: Declarative constraint validation with a compact rule language

This library provides:
- A rule mini-language (``not-blank;length(3,20)<create>;pattern(/^\\w+$/)<<...>>``)
- Compiled, cached validation plans per rule text, field and type
- Pluggable constraint handlers with type and arity checks
- Group filtering, conditional fields and nested composites
- Localized messages from YAML bundles

Example:
    from constraint_lib import ValidationService

    service = ValidationService()
    result = service.validate_value("ab", "length(3,10)", label="Code")
    result.passed   # False
"""

from .api import ValidationService
from .config_loader import ConfigLoader, ValidatorConfig
from .exceptions import ConfigurationError, ConstraintLibError, ExpressionError, TypeMismatchError
from .handlers import Arity, ConstraintHandler
from .introspection import Constraint, Label, RuleTable, Rules, Valid, When
from .metadata import DEFAULT_GROUP, Outcome
from .results import ElementResult, FragmentResult, ValidatedResult

__version__ = "0.1.0"
__all__ = [
    "ValidationService",
    "ConfigLoader",
    "ValidatorConfig",
    "ConstraintLibError",
    "ConfigurationError",
    "ExpressionError",
    "TypeMismatchError",
    "Arity",
    "ConstraintHandler",
    "Constraint",
    "Label",
    "RuleTable",
    "Rules",
    "Valid",
    "When",
    "DEFAULT_GROUP",
    "Outcome",
    "ElementResult",
    "FragmentResult",
    "ValidatedResult",
]
