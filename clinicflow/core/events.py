"""
Domain event bus.

Workflow services publish an event after a successful commit. Delivery is
fire-and-forget: a subscriber that raises is logged and skipped, and the
publishing operation's result is unaffected.
"""
import enum
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

EventHandler = Callable[["DomainEvent", Any], None]


class DomainEvent(str, enum.Enum):
    """Enum for events emitted by the workflow core"""
    VISIT_REGISTERED = "visit_registered"
    PRESCRIPTION_RECORDED = "prescription_recorded"
    STOCK_ADDED = "stock_added"
    MEDICINES_DISPENSED = "medicines_dispensed"
    BILL_FINALIZED = "bill_finalized"
    BED_ADDED = "bed_added"
    PATIENT_ADMITTED = "patient_admitted"
    PATIENT_DISCHARGED = "patient_discharged"
    BED_CLEANED = "bed_cleaned"


class EventBus:
    """
    In-process publish/subscribe registry.

    Handlers are called synchronously in subscription order with
    (event_type, entity_id).
    """
    def __init__(self):
        self._handlers: Dict[DomainEvent, List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: DomainEvent, handler: EventHandler) -> None:
        """
        Register a handler for an event type.

        Args:
            event_type: Event to listen for
            handler: Callable receiving (event_type, entity_id)
        """
        self._handlers[DomainEvent(event_type)].append(handler)

    def unsubscribe(self, event_type: DomainEvent, handler: EventHandler) -> None:
        """Remove a previously registered handler, if present."""
        handlers = self._handlers.get(DomainEvent(event_type), [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event_type: DomainEvent, entity_id: Any) -> int:
        """
        Deliver an event to every subscriber.

        Args:
            event_type: Event being published
            entity_id: ID of the entity the event is about

        Returns:
            int: Number of handlers that completed without raising
        """
        event_type = DomainEvent(event_type)
        delivered = 0
        for handler in list(self._handlers.get(event_type, [])):
            try:
                handler(event_type, entity_id)
                delivered += 1
            except Exception:
                logger.exception(f"Subscriber {handler!r} failed for {event_type.value} ({entity_id})")
        logger.debug(f"Published {event_type.value} for {entity_id} to {delivered} subscriber(s)")
        return delivered

    def clear(self) -> None:
        """Drop all subscriptions."""
        self._handlers.clear()


# Process-wide notifier used by the services unless one is passed explicitly
notifier = EventBus()
