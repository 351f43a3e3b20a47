"""
In-process publisher for booking lifecycle events.

Notification and socket layers subscribe here; delivery is their concern.
Events fire after the change is committed, and a failing subscriber never
undoes or fails the booking operation.
"""

import logging
from collections import defaultdict
from typing import Callable

from ...constants import BookingStatus
from ...models import Booking

logger = logging.getLogger(__name__)

BOOKING_CREATED = "booking.created"
BOOKING_CONFIRMED = "booking.confirmed"
BOOKING_CANCELLED = "booking.cancelled"
BOOKING_COMPLETED = "booking.completed"
BOOKING_NO_SHOW = "booking.no_show"
BOOKING_UPDATED = "booking.updated"

STATUS_EVENTS = {
    BookingStatus.CONFIRMED: BOOKING_CONFIRMED,
    BookingStatus.CANCELLED: BOOKING_CANCELLED,
    BookingStatus.COMPLETED: BOOKING_COMPLETED,
    BookingStatus.NO_SHOW: BOOKING_NO_SHOW,
}

Handler = Callable[[str, Booking], None]


class BookingEventPublisher:
    def __init__(self):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event: str, handler: Handler) -> None:
        self._handlers[event].append(handler)

    def unsubscribe(self, event: str, handler: Handler) -> None:
        if handler in self._handlers.get(event, []):
            self._handlers[event].remove(handler)

    def publish(self, event: str, booking: Booking) -> None:
        handlers = list(self._handlers.get(event, []))
        logger.info(f"📣 {event} for booking {booking.id} ({len(handlers)} subscriber(s))")
        for handler in handlers:
            try:
                handler(event, booking)
            except Exception as e:
                logger.error(f"❌ Subscriber {handler!r} failed on {event} for booking {booking.id}: {e}")

    def publish_status_change(self, booking: Booking) -> None:
        event = STATUS_EVENTS.get(BookingStatus(booking.status))
        if event:
            self.publish(event, booking)


publisher = BookingEventPublisher()
