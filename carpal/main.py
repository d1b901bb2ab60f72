import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from carpal.core.config import Settings, settings
from carpal.core.database import build_engine, build_session_factory, create_tables
from carpal.core.exceptions import AppError
from carpal.core.firebase import check_firebase_settings, initialize_firebase
from carpal.core.log_config import setup_logging
from carpal.core.security import FirebaseTokenVerifier, MockTokenVerifier, check_event_secret_settings
from carpal.services.booking_events import BookingEventRouter
from carpal.services.notification_service import NotificationDispatcher
from carpal.services.push_client import PushClient, FcmPushClient, LoggingPushClient
from carpal.services.token_store import InMemoryUserTokenStore, SqlUserTokenStore
from carpal.services.trip_service import InMemoryTripStore, InMemoryTripRepository, SqlTripRepository

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    app_settings: Settings = app.state.settings
    setup_logging(app_settings.LOG_LEVEL)
    check_event_secret_settings(app_settings)
    firebase_enabled = check_firebase_settings(app_settings)

    # Trip and token stores: database when configured, process memory otherwise
    engine = None
    if app_settings.DATABASE_URL:
        engine = build_engine(app_settings.DATABASE_URL)
        await create_tables(engine)
        session_factory = build_session_factory(engine)
        app.state.trip_repository = SqlTripRepository(session_factory)
        app.state.token_store = SqlUserTokenStore(session_factory)
    else:
        logger.warning("DATABASE_URL not set; trips are kept in memory")
        app.state.trip_store = InMemoryTripStore()
        app.state.trip_repository = InMemoryTripRepository(app.state.trip_store)
        app.state.token_store = InMemoryUserTokenStore()

    push_client: Optional[PushClient] = app.state.push_client
    if firebase_enabled:
        firebase_app = initialize_firebase(app_settings)
        app.state.token_verifier = FirebaseTokenVerifier(firebase_app)
        push_client = push_client or FcmPushClient(firebase_app)
    else:
        app.state.token_verifier = MockTokenVerifier()
        push_client = push_client or LoggingPushClient()

    app.state.dispatcher = NotificationDispatcher(push_client, app.state.token_store)
    app.state.booking_router = BookingEventRouter(app.state.dispatcher, app.state.token_store)

    yield
    # Shutdown: Dispose engine
    if engine is not None:
        await engine.dispose()

def error_path(loc) -> str:
    return ".".join(str(part) for part in loc if part not in ("body", "query", "path"))

def error_message(error: dict) -> str:
    message = error.get("msg", "Invalid value")
    return message.removeprefix("Value error, ")

async def validation_error_handler(request: Request, exc: RequestValidationError):
    issues = [{"path": error_path(e.get("loc", ())), "message": error_message(e)} for e in exc.errors()]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Validation failed", "errors": issues},
    )

async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unexpected error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal server error"},
    )

def create_app(app_settings: Optional[Settings] = None, push_client: Optional[PushClient] = None) -> FastAPI:
    app_settings = app_settings or settings

    app = FastAPI(
        title="Carpal API",
        version="1.0",
        description="Carpool trips and booking notifications",
        lifespan=lifespan
    )
    app.state.settings = app_settings
    app.state.push_client = push_client

    # CORS (credentials only with an explicit origin list)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.BACKEND_CORS_ORIGINS or ["*"],
        allow_credentials=bool(app_settings.BACKEND_CORS_ORIGINS),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Include Routers
    from carpal.api.v1 import health, trips, notifications, events

    app.include_router(health.router, prefix="/api/v1", tags=["Health"])
    app.include_router(trips.router, prefix="/api/v1/trips", tags=["Trips"])
    app.include_router(notifications.router, prefix="/api/v1/notifications", tags=["Notifications"])
    app.include_router(events.router, prefix="/api/v1/events", tags=["Events"])
    return app

app = create_app()

def run():
    import uvicorn
    uvicorn.run("carpal.main:app", host="0.0.0.0", port=settings.PORT)
