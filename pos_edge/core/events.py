import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]


class EventBus:
    """In-process publish/subscribe registry.

    Handlers run synchronously in registration order. A handler that raises is
    logged and skipped; it never reaches the other handlers or the emitter.
    """

    def __init__(self):
        self._listeners: Dict[str, List[Handler]] = {}

    def on(self, event_name: str, handler: Handler) -> Callable[[], None]:
        handlers = self._listeners.setdefault(event_name, [])
        if handler not in handlers:
            handlers.append(handler)
        return lambda: self.off(event_name, handler)

    def off(self, event_name: str, handler: Handler) -> None:
        handlers = self._listeners.get(event_name)
        if not handlers:
            return
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event_name: str, payload: Any = None) -> None:
        # copy so handlers may unsubscribe while we iterate
        for handler in list(self._listeners.get(event_name, ())):
            try:
                handler(payload)
            except Exception:
                logger.exception("Event handler error for %r", event_name)
