import logging
from typing import Annotated
from fastapi import APIRouter, Depends, status
from carpal.api.deps import get_booking_router, verify_event_secret
from carpal.schemas.schemas import BookingEventPayload, BookingEventResponse
from carpal.services.booking_events import BookingEvent, BookingEventRouter

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_event_secret)])

@router.post("/bookings/{event}", response_model=BookingEventResponse, status_code=status.HTTP_202_ACCEPTED)
async def booking_event(
    event: BookingEvent,
    payload: BookingEventPayload,
    booking_router: Annotated[BookingEventRouter, Depends(get_booking_router)],
):
    summaries = await booking_router.handle(event, before=payload.before, after=payload.after)
    logger.info("Booking %s event handled; %d notification(s) dispatched", event.value, len(summaries))
    return BookingEventResponse(event=event.value, dispatched=len(summaries))
