"""Validation results: FragmentResult, ElementResult and ValidatedResult."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union


@dataclass(frozen=True)
class FragmentResult:
    """One rejected fragment."""

    name: str
    error_code: str
    message: str
    arguments: Tuple[Any, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "error_code": self.error_code,
            "message": self.message,
            "arguments": list(self.arguments),
        }


_UNSET = object()


class ElementResult:
    """
    Outcome of one field.

    Holds either the list of rejected fragments of the field itself, or the
    nested ValidatedResult when the field is a composite. Field value and
    result are set-once.
    """

    def __init__(self, field_name: str, label: str):
        self.field_name = field_name
        self.label = label
        self.nested = False
        self._value: Any = _UNSET
        self._result: Union[List[FragmentResult], "ValidatedResult", None] = None

    @property
    def field_value(self) -> Any:
        return None if self._value is _UNSET else self._value

    def set_field_value(self, value: Any) -> None:
        if self._value is _UNSET:
            self._value = value

    @property
    def result(self) -> Union[List[FragmentResult], "ValidatedResult", None]:
        return self._result

    def set_fragment_results(self, results: List[FragmentResult]) -> None:
        if self._result is None:
            self._result = list(results)

    def set_nested_result(self, result: "ValidatedResult") -> None:
        if self._result is None:
            self._result = result
            self.nested = True

    @property
    def fragment_results(self) -> List[FragmentResult]:
        if isinstance(self._result, list):
            return self._result
        return []

    @property
    def nested_result(self) -> Optional["ValidatedResult"]:
        if isinstance(self._result, ValidatedResult):
            return self._result
        return None

    @property
    def passed(self) -> bool:
        nested = self.nested_result
        if nested is not None:
            return nested.passed
        return not self.fragment_results

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "field": self.field_name,
            "label": self.label,
            "value": self.field_value,
            "nested": self.nested,
        }
        nested = self.nested_result
        if nested is not None:
            data["result"] = nested.to_dict()
        else:
            data["result"] = [r.to_dict() for r in self.fragment_results]
        return data

    def __repr__(self) -> str:
        return f"ElementResult(field={self.field_name!r}, passed={self.passed})"


@dataclass
class ValidatedResult:
    """Aggregate outcome of validating one object or value."""

    passed: bool = True
    total_count: int = 0
    passed_count: int = 0
    error_count: int = 0
    ignored_count: int = 0
    message: Optional[str] = None
    rejected_results: List[ElementResult] = field(default_factory=list)

    @classmethod
    def empty(cls, message: Optional[str] = None) -> "ValidatedResult":
        """Trivial passed result for a missing value or a type with no fields."""
        return cls(message=message)

    def passed_accumulation(self) -> None:
        self.passed_count += 1

    def ignored_accumulation(self) -> None:
        self.ignored_count += 1

    def add_rejected_result(self, result: ElementResult) -> None:
        self.passed = False
        self.error_count += 1
        self.rejected_results.append(result)

    def merge(self, other: "ValidatedResult") -> "ValidatedResult":
        """
        Combine two results into a new one.

        Neither operand is modified. Merging is associative: flags are ANDed,
        counters summed, rejected lists concatenated and the first non-empty
        message kept.
        """
        return ValidatedResult(
            passed=self.passed and other.passed,
            total_count=self.total_count + other.total_count,
            passed_count=self.passed_count + other.passed_count,
            error_count=self.error_count + other.error_count,
            ignored_count=self.ignored_count + other.ignored_count,
            message=self.message or other.message,
            rejected_results=list(self.rejected_results) + list(other.rejected_results),
        )

    @property
    def first_rejected(self) -> Optional[ElementResult]:
        return self.rejected_results[0] if self.rejected_results else None

    @property
    def last_rejected(self) -> Optional[ElementResult]:
        return self.rejected_results[-1] if self.rejected_results else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "total_count": self.total_count,
            "passed_count": self.passed_count,
            "error_count": self.error_count,
            "ignored_count": self.ignored_count,
            "message": self.message,
            "rejected": [r.to_dict() for r in self.rejected_results],
        }
