"""Per-fragment evaluation context handed to handlers."""

from typing import Any, Dict, List, Optional

from .introspection import read_accessor
from .metadata import Element


class Context:
    """
    State visible to a handler while it evaluates one fragment.

    A fresh Context is created for every fragment evaluation, so handlers may
    record message keys and variables without coordinating with other threads.
    """

    def __init__(
        self,
        engine: Any = None,
        element: Optional[Element] = None,
        instance: Any = None,
        locale: Optional[str] = None,
    ):
        self.engine = engine
        self.element = element
        self.instance = instance
        self.locale = locale
        self.variables: Dict[str, Any] = {}
        self._message_keys: List[str] = []

    @property
    def message_keys(self) -> List[str]:
        return list(self._message_keys)

    def set_message_keys(self, keys: List[str]) -> None:
        self._message_keys = [k for k in keys if k]

    def has_message_keys(self) -> bool:
        return bool(self._message_keys)

    def set_variable(self, name: str, value: Any) -> None:
        self.variables[name] = value

    def sibling_value(self, name: str) -> Any:
        """Read another field of the instance being validated."""
        if self.instance is None or self.engine is None:
            return None
        for element in self.engine.compiler.compile_type(type(self.instance)):
            if element.name == name:
                return element.get_value(self.instance)
        return read_accessor(name)(self.instance)
