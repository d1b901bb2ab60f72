"""Booking lifecycle notifications.

| event   | condition                              | recipient | type              |
|---------|----------------------------------------|-----------|-------------------|
| created | booking has a driver                   | driver    | booking_created   |
| updated | status became ``confirmed``            | passenger | booking_confirmed |
| updated | status became ``canceled``             | driver    | booking_canceled  |
| deleted | booking has a passenger                | passenger | booking_deleted   |

Handlers are best-effort: a missing id, user record or token set skips the
send, and no failure propagates to the event source.
"""
import functools
import logging
from enum import Enum
from typing import Any, List, Mapping, Optional
from carpal.schemas.schemas import BookingRecord, NotificationContent
from carpal.services.notification_service import NotificationDispatcher, DispatchSummary, build_data_payload
from carpal.services.token_store import UserTokenStore

logger = logging.getLogger(__name__)

PASSENGER_FALLBACK = "راكب"
TRIP_DETAILS_ROUTE = "trip_details"

class BookingEvent(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"

class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELED = "canceled"

class NotificationType(str, Enum):
    BOOKING_CREATED = "booking_created"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELED = "booking_canceled"
    BOOKING_DELETED = "booking_deleted"

def string_from(value: Any, fallback: str = "") -> str:
    if value is None:
        return fallback
    if isinstance(value, str):
        return value.strip() or fallback
    if isinstance(value, Mapping):
        # Serialized document reference
        return string_from(value.get("id"), fallback)
    return str(value)

def resolve_trip_id(booking: BookingRecord) -> str:
    explicit = string_from(booking.trip_id)
    if explicit:
        return explicit
    ref = booking.trip_ref
    if isinstance(ref, str):
        return ref.strip().rstrip("/").rsplit("/", 1)[-1]
    return string_from(ref)

def resolve_passenger_id(booking: BookingRecord) -> str:
    raw = booking.passenger_id if booking.passenger_id is not None else booking.user_id
    return string_from(raw)

def status_of(booking: Optional[BookingRecord]) -> str:
    if booking is None:
        return ""
    return string_from(booking.status).lower()

def new_booking_message(passenger_name: str) -> NotificationContent:
    return NotificationContent(title="حجز جديد", body=f"قام {passenger_name} بحجز رحلتك.")

def confirmed_message() -> NotificationContent:
    return NotificationContent(title="تم تأكيد رحلتك", body="السائق أكد رحلتك")

def canceled_message(passenger_name: str) -> NotificationContent:
    body = f"قام {passenger_name} بإلغاء الحجز." if passenger_name else "قام أحد الركاب بإلغاء الحجز."
    return NotificationContent(title="تم إلغاء الحجز", body=body)

def deleted_message() -> NotificationContent:
    return NotificationContent(title="تم إلغاء رحلتك", body="قام السائق بإلغاء الحجز.")

def best_effort(handler):
    @functools.wraps(handler)
    async def wrapper(self, *args, **kwargs) -> List[DispatchSummary]:
        try:
            return await handler(self, *args, **kwargs)
        except Exception:
            logger.exception("Booking event handler %s failed", handler.__name__)
            return []
    return wrapper

class BookingEventRouter:
    def __init__(self, dispatcher: NotificationDispatcher, token_store: UserTokenStore):
        self.dispatcher = dispatcher
        self.token_store = token_store

    async def handle(
        self,
        event: BookingEvent,
        before: Optional[BookingRecord] = None,
        after: Optional[BookingRecord] = None,
    ) -> List[DispatchSummary]:
        if event == BookingEvent.CREATED:
            return await self.on_booking_created(after)
        if event == BookingEvent.UPDATED:
            return await self.on_booking_updated(before, after)
        return await self.on_booking_deleted(before)

    async def _notify(self, user_id: str, notification: NotificationContent, data: Mapping[str, Any]) -> List[DispatchSummary]:
        record = await self.token_store.get_user_tokens(user_id)
        if record is None or not record.tokens:
            logger.debug("No device tokens for user %r; skipping %s", user_id, data.get("type"))
            return []
        summary = await self.dispatcher.send_to_tokens(
            record.tokens,
            notification,
            build_data_payload(data),
            owner_id=record.user_id,
        )
        return [summary]

    @best_effort
    async def on_booking_created(self, booking: Optional[BookingRecord]) -> List[DispatchSummary]:
        if booking is None:
            return []

        driver_id = string_from(booking.driver_id)
        if not driver_id:
            logger.info("Booking created without driverId; skipping notification")
            return []

        return await self._notify(
            driver_id,
            new_booking_message(string_from(booking.passenger_name, PASSENGER_FALLBACK)),
            {
                "type": NotificationType.BOOKING_CREATED.value,
                "tripId": resolve_trip_id(booking),
                "route": TRIP_DETAILS_ROUTE,
                "passengerId": resolve_passenger_id(booking),
            },
        )

    @best_effort
    async def on_booking_updated(self, before: Optional[BookingRecord], after: Optional[BookingRecord]) -> List[DispatchSummary]:
        if after is None:
            return []

        previous_status = status_of(before)
        next_status = status_of(after)
        trip_id = resolve_trip_id(after)
        driver_id = string_from(after.driver_id)
        passenger_id = resolve_passenger_id(after)
        summaries: List[DispatchSummary] = []

        if next_status == BookingStatus.CONFIRMED.value and previous_status != BookingStatus.CONFIRMED.value:
            summaries += await self._notify(
                passenger_id,
                confirmed_message(),
                {
                    "type": NotificationType.BOOKING_CONFIRMED.value,
                    "tripId": trip_id,
                    "route": TRIP_DETAILS_ROUTE,
                    "driverId": driver_id,
                },
            )

        if next_status == BookingStatus.CANCELED.value and previous_status != BookingStatus.CANCELED.value:
            summaries += await self._notify(
                driver_id,
                canceled_message(string_from(after.passenger_name, PASSENGER_FALLBACK)),
                {
                    "type": NotificationType.BOOKING_CANCELED.value,
                    "tripId": trip_id,
                    "route": TRIP_DETAILS_ROUTE,
                    "passengerId": passenger_id,
                },
            )

        return summaries

    @best_effort
    async def on_booking_deleted(self, booking: Optional[BookingRecord]) -> List[DispatchSummary]:
        if booking is None:
            return []

        passenger_id = resolve_passenger_id(booking)
        if not passenger_id:
            return []

        return await self._notify(
            passenger_id,
            deleted_message(),
            {
                "type": NotificationType.BOOKING_DELETED.value,
                "tripId": resolve_trip_id(booking),
                "route": TRIP_DETAILS_ROUTE,
                "driverId": string_from(booking.driver_id),
            },
        )
