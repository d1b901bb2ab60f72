import secrets
from typing import Annotated, Optional
from fastapi import Depends, Header, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from carpal.core.exceptions import Unauthenticated, Forbidden
from carpal.schemas.schemas import CurrentUser
from carpal.services.booking_events import BookingEventRouter
from carpal.services.notification_service import NotificationDispatcher
from carpal.services.token_store import UserTokenStore
from carpal.services.trip_service import TripRepository

bearer_scheme = HTTPBearer(auto_error=False)

def get_trip_repository(request: Request) -> TripRepository:
    return request.app.state.trip_repository

def get_token_store(request: Request) -> UserTokenStore:
    return request.app.state.token_store

def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher

def get_booking_router(request: Request) -> BookingEventRouter:
    return request.app.state.booking_router

async def get_current_user(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> CurrentUser:
    if credentials is None or not credentials.credentials.strip():
        raise Unauthenticated("Authentication token is missing")

    verifier = request.app.state.token_verifier
    return await verifier.verify(credentials.credentials.strip())

def verify_event_secret(
    request: Request,
    x_event_secret: Annotated[Optional[str], Header()] = None,
):
    expected = request.app.state.settings.EVENT_WEBHOOK_SECRET
    if not expected:
        return
    if not x_event_secret or not secrets.compare_digest(x_event_secret, expected):
        raise Forbidden("Invalid event secret")

TripRepositoryDep = Annotated[TripRepository, Depends(get_trip_repository)]
CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]
