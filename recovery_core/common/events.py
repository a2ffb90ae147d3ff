# recovery_core/common/events.py
"""
In-process domain events.

Apps publish ID-based payloads ("form.completed", "protocol.assigned") and
other apps subscribe from their AppConfig.ready(), so that e.g. forms never
calls task services directly. Handlers run synchronously inside the publisher's transaction;
a failing handler fails the publishing operation.
"""
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], None]

_registry: Dict[str, List[Handler]] = defaultdict(list)


def subscribe(event_name: str):
    """
    Decorator registering a handler for event_name.
    Registering the same function twice is a no-op (ready() may run more than once).
    """
    def _decorator(fn: Handler) -> Handler:
        handlers = _registry[event_name]
        if fn not in handlers:
            handlers.append(fn)
        return fn
    return _decorator


def handlers_for(event_name: str) -> List[Handler]:
    return list(_registry.get(event_name, []))


def publish(event_name: str, payload: Dict[str, Any]) -> int:
    """
    Deliver payload to every subscriber, in registration order.
    Returns the number of handlers called.
    """
    handlers = handlers_for(event_name)
    logger.debug("Publishing %s to %d handler(s)", event_name, len(handlers))
    for handler in handlers:
        handler(payload)
    return len(handlers)
