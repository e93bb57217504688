# ============================================================================
#  File: event_bus.py
#  Purpose: Lifecycle event listener registry for the workflow engine and
#           streaming generator
#  Created: 02OCT26
# ============================================================================
# SECTION 1: Global Variable Definitions & Imports
# ============================================================================

import inspect
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

# Wildcard subscription receives every event
ANY_EVENT = "*"

# ============================================================================
# SECTION 2: Class Definition - EventBus
# ============================================================================

class EventBus:
    """
    Strictly side-channel event delivery. Listener failures are logged and
    never reach the emitter, so results are identical with or without
    subscribers.
    """
    def __init__(self):
        self._listeners: Dict[str, List[Callable[..., Any]]] = {}

    # ========================================================================
    # Function 2.1: on
    # ========================================================================
    def on(self, event: str, listener: Callable[..., Any]) -> Callable[[], None]:
        """
        Register a listener for an event name (or ``"*"`` for all events).

        Args:
            event: Event name such as ``step:complete``
            listener: Callable taking ``(event, payload)``; may be async

        Returns:
            A zero-argument callable that unregisters the listener
        """
        self._listeners.setdefault(event, []).append(listener)
        logger.debug(f"[EventBus] Listener registered for '{event}'")
        return lambda: self.off(event, listener)

    # =========================================================================
    # Function 2.2: off
    # =========================================================================
    def off(self, event: str, listener: Optional[Callable[..., Any]] = None) -> None:
        """Remove one listener, or every listener of ``event`` when omitted."""
        if listener is None:
            self._listeners.pop(event, None)
            return
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    # =========================================================================
    # Function 2.3: clear
    # =========================================================================
    def clear(self) -> None:
        self._listeners.clear()

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is None:
            return sum(len(items) for items in self._listeners.values())
        return len(self._listeners.get(event, []))

    # =========================================================================
    # Async Function 2.4: emit
    # =========================================================================
    async def emit(self, event: str, payload: Optional[Dict[str, Any]] = None) -> None:
        """
        Deliver an event to its listeners and to wildcard listeners.

        Args:
            event: The event name
            payload: Event data
        """
        listeners = list(self._listeners.get(event, [])) + list(self._listeners.get(ANY_EVENT, []))
        if not listeners:
            return

        payload = payload or {}
        for listener in listeners:
            try:
                result = listener(event, payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"[EventBus] Listener for '{event}' failed: {str(e)}")

#
#
## End of Script
