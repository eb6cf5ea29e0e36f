"""
Handler registry and fragment dispatch.

Dispatch of one fragment against one value runs these steps in order:

1. Look up the handler by fragment name. A miss is logged and passes
   (or raises ConfigurationError when strict dispatch is enabled).
2. A non-None value whose type the handler does not support is logged and
   passes: the constraint does not apply to it.
3. The fragment's argument count is checked against the handler's arity.
   A mismatch is a ConfigurationError.
4. None passes unless the handler declares the value required.
5. Otherwise the handler's validate() decides. On rejection the handler's
   message keys are recorded on the context, defaulting to the fragment name.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

from .context import Context
from .exceptions import ConfigurationError
from .handlers.base import ConstraintHandler
from .metadata import Fragment

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """
    Name -> handler map.

    Reads never lock. Registration is serialized and publishes a fresh copy of
    the map, so validations running during a late registration see either the
    old or the new map, never a partial one.
    """

    def __init__(self):
        self._handlers: Dict[str, ConstraintHandler] = {}
        self._lock = threading.Lock()

    def register(self, handler: ConstraintHandler) -> None:
        """
        Register handler under each of its names. The last registration wins.

        Raises:
            ConfigurationError: If handler is not a ConstraintHandler or has no names
        """
        if not isinstance(handler, ConstraintHandler):
            raise ConfigurationError(f"{handler!r} is not a ConstraintHandler")
        names = handler.names()
        if not names:
            raise ConfigurationError(f"{type(handler).__name__} does not declare any names")

        with self._lock:
            handlers = dict(self._handlers)
            for name in names:
                previous = handlers.get(name)
                if previous is not None and previous is not handler:
                    logger.warning(
                        "Handler name already registered, replacing it",
                        extra={'handler_name': name, 'handler': type(handler).__name__}
                    )
                handlers[name] = handler
            self._handlers = handlers

        logger.debug(
            "Handler registered",
            extra={'handler': type(handler).__name__, 'names': names}
        )

    def get(self, name: str) -> Optional[ConstraintHandler]:
        return self._handlers.get(name)

    def names(self) -> List[str]:
        return sorted(self._handlers)

    def __contains__(self, name: str) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


class Dispatcher:
    """Evaluates one fragment against one value using the registered handlers."""

    def __init__(self, registry: HandlerRegistry, strict: bool = False, warning_log: bool = True):
        """
        Initialize the dispatcher.

        Args:
            registry: Handlers to dispatch to
            strict: Raise on fragments without a handler instead of passing them
            warning_log: Log dispatch misses at WARNING (otherwise DEBUG)
        """
        self.registry = registry
        self.strict = strict
        self.warning_log = warning_log

    def dispatch(self, value: Any, fragment: Fragment, context: Context) -> bool:
        """
        Evaluate fragment against value.

        Args:
            value: Value being validated (may be None)
            fragment: Fragment to evaluate
            context: Fresh per-evaluation context

        Returns:
            True if the value passes (or the fragment does not apply)

        Raises:
            ConfigurationError: On an arity mismatch, or a missing handler in strict mode
        """
        handler = self.registry.get(fragment.name)
        if handler is None:
            if self.strict:
                raise ConfigurationError(f'Fragment "{fragment.name}" did not find a suitable handler')
            self._miss("Fragment did not find a suitable handler", {'fragment': fragment.name})
            return True

        if value is not None and not handler.supports(type(value)):
            self._miss(
                "Handler cannot handle parameter type",
                {'fragment': fragment.name, 'value_type': type(value).__name__}
            )
            return True

        problem = handler.arity().violation(fragment.name, fragment.argument_count)
        if problem:
            raise ConfigurationError(problem)

        if value is None:
            passed = not handler.required_when_null()
        else:
            passed = bool(handler.validate(value, fragment, context))

        if not passed:
            if not context.has_message_keys():
                handler.set_message_keys(context, fragment, None)
            if not context.has_message_keys():
                context.set_message_keys([fragment.name])
        return passed

    def _miss(self, message: str, extra: dict) -> None:
        if self.warning_log:
            logger.warning(message, extra=extra)
        else:
            logger.debug(message, extra=extra)
