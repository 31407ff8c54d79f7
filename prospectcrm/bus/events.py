"""
Event Bus - Decoupled Module Communication
Engine modules emit events after each write; views and editors listen to
refresh what they display. No direct imports between listeners and emitters.
"""

from typing import Callable, Dict, List, Any
import logging

logger = logging.getLogger(__name__)


class EventBus:
    """
    Simple synchronous event bus.
    Handlers run in registration order; a failing handler never stops the others.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, handler: Callable):
        """Register a handler that receives the event_data dict."""
        self._handlers.setdefault(event_name, []).append(handler)
        logger.debug(f"Registered handler for event '{event_name}': {getattr(handler, '__name__', handler)}")

    def off(self, event_name: str, handler: Callable):
        """Unregister a handler. Unknown handlers are ignored."""
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event_name: str, event_data: Dict[str, Any] = None):
        """Emit an event to all registered handlers."""
        if event_data is None:
            event_data = {}

        logger.debug(f"Emitting event '{event_name}' with data: {event_data}")

        for handler in list(self._handlers.get(event_name, [])):
            try:
                handler(event_data)
            except Exception as e:
                logger.error(f"Error in handler {getattr(handler, '__name__', handler)} for event '{event_name}': {e}")

    def clear(self):
        """Clear all handlers (useful for testing)."""
        self._handlers.clear()


# Singleton instance
bus = EventBus()


# =============================================================================
# STANDARD EVENTS
# =============================================================================

# Establishments
EVENT_ESTABLISHMENT_CREATED = 'establishment_created'
EVENT_ESTABLISHMENT_UPDATED = 'establishment_updated'
EVENT_ESTABLISHMENT_ARCHIVED = 'establishment_archived'
EVENT_ESTABLISHMENT_REACTIVATED = 'establishment_reactivated'
EVENT_ESTABLISHMENT_AUTOSAVED = 'establishment_autosaved'

# Contacts
EVENT_CONTACT_ADDED = 'contact_added'
EVENT_CONTACT_DEACTIVATED = 'contact_deactivated'

# Actions
EVENT_ACTION_CREATED = 'action_created'
EVENT_ACTION_UPDATED = 'action_updated'
EVENT_ACTION_DELETED = 'action_deleted'

# Competitor intelligence
EVENT_COMPETITOR_RECORDED = 'competitor_recorded'
EVENT_COMPETITOR_DELETED = 'competitor_deleted'

# Suggestions
EVENT_SUGGESTION_CREATED = 'suggestion_created'
EVENT_SUGGESTION_UPDATED = 'suggestion_updated'
EVENT_SUGGESTION_DELETED = 'suggestion_deleted'

# Reference lists
EVENT_PARAMETRAGE_CHANGED = 'parametrage_changed'

# Session
EVENT_SIGNED_IN = 'signed_in'
EVENT_SIGNED_OUT = 'signed_out'
