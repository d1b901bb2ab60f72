"""Trip repository with interchangeable database and in-memory stores.

Listing is ordered by ``created_at`` descending (ties broken by id) and
paginated with an opaque cursor: the id of the last trip the client saw.
A ``next_cursor`` is returned only when a page comes back full, so a result
set that ends exactly on a page boundary yields one extra, empty page.
"""
import logging
import math
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from carpal.core.exceptions import InvalidArgument, InvalidCursor, NotFound, Forbidden, InternalError
from carpal.models.models import Trip
from carpal.schemas.schemas import CurrentUser, TripCreate, TripUpdate, TripResponse
from carpal.services.seat_ledger import apply_seat_update

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100

def parse_limit(value: Any, default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default

    try:
        parsed = float(value)
    except (TypeError, ValueError):
        raise InvalidArgument("limit must be a positive number")

    if math.isnan(parsed) or parsed <= 0:
        raise InvalidArgument("limit must be a positive number")

    return max(1, int(min(parsed, maximum)))

def clean_filter(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

@dataclass
class TripQuery:
    limit: int = DEFAULT_LIMIT
    from_city: Optional[str] = None
    to_city: Optional[str] = None
    driver_id: Optional[str] = None
    cursor: Optional[str] = None

@dataclass
class TripPage:
    trips: List[TripResponse] = field(default_factory=list)
    next_cursor: Optional[str] = None

def to_page(trips: List[TripResponse], limit: int) -> TripPage:
    next_cursor = trips[-1].id if trips and len(trips) == limit else None
    return TripPage(trips=trips, next_cursor=next_cursor)

def snapshot(record: Any) -> TripResponse:
    try:
        return TripResponse.model_validate(record)
    except PydanticValidationError:
        logger.exception("Stored trip record is corrupt")
        raise InternalError("Trip data is missing")

def new_trip_record(payload: TripCreate, driver: CurrentUser) -> Dict[str, Any]:
    now = utcnow()
    record = payload.model_dump()
    record.update(
        id=uuid.uuid4().hex,
        driver_id=driver.uid,
        driver_name=driver.name or "",
        available_seats=payload.total_seats,
        booked_users=[],
        created_at=now,
        updated_at=now,
    )
    return record

def check_owner(current: TripResponse, driver_id: str, action: str):
    if current.driver_id != driver_id:
        raise Forbidden(f"You are not allowed to {action} this trip")

def plan_update(current: TripResponse, patch: TripUpdate) -> Dict[str, Any]:
    """Changes to write for ``patch``, with seat counts reconciled."""
    changes = patch.field_patch()
    seats = apply_seat_update(
        current.total_seats,
        current.available_seats,
        current.booked_users,
        total_seats=patch.total_seats,
        available_seats=patch.available_seats,
    )
    changes["total_seats"] = seats.total_seats
    changes["available_seats"] = seats.available_seats
    changes["updated_at"] = utcnow()
    return changes

class TripRepository(ABC):
    """Common contract for both trip stores."""

    async def list(
        self,
        from_city: Optional[str] = None,
        to_city: Optional[str] = None,
        limit: int = DEFAULT_LIMIT,
        cursor: Optional[str] = None,
    ) -> TripPage:
        query = TripQuery(
            limit=limit,
            from_city=clean_filter(from_city),
            to_city=clean_filter(to_city),
            cursor=cursor or None,
        )
        return to_page(await self._query(query), limit)

    async def list_by_driver(self, driver_id: str, limit: int = DEFAULT_LIMIT, cursor: Optional[str] = None) -> TripPage:
        query = TripQuery(limit=limit, driver_id=driver_id, cursor=cursor or None)
        return to_page(await self._query(query), limit)

    @abstractmethod
    async def _query(self, query: TripQuery) -> List[TripResponse]:
        ...

    @abstractmethod
    async def create(self, payload: TripCreate, driver: CurrentUser) -> TripResponse:
        ...

    @abstractmethod
    async def update(self, trip_id: str, patch: TripUpdate, driver_id: str) -> TripResponse:
        ...

    @abstractmethod
    async def delete(self, trip_id: str, driver_id: str) -> None:
        ...

# --- In-memory store ---

class InMemoryTripStore:
    """Trip records held in process memory.

    Owned by the application lifespan. Only touched from the event loop, so
    no locking.
    """

    def __init__(self):
        self.records: Dict[str, Dict[str, Any]] = {}

    def get(self, trip_id: str) -> Optional[Dict[str, Any]]:
        record = self.records.get(trip_id)
        return dict(record) if record is not None else None

    def put(self, record: Dict[str, Any]):
        self.records[record["id"]] = dict(record)

    def remove(self, trip_id: str):
        self.records.pop(trip_id, None)

    def values(self) -> List[Dict[str, Any]]:
        return [dict(record) for record in self.records.values()]

    def clear(self):
        self.records.clear()

def sort_key(record: Dict[str, Any]):
    return (record["created_at"], record["id"])

class InMemoryTripRepository(TripRepository):
    def __init__(self, store: InMemoryTripStore):
        self.store = store

    async def _query(self, query: TripQuery) -> List[TripResponse]:
        records = self.store.values()
        if query.from_city:
            records = [r for r in records if r.get("from_city") == query.from_city]
        if query.to_city:
            records = [r for r in records if r.get("to_city") == query.to_city]
        if query.driver_id:
            records = [r for r in records if r.get("driver_id") == query.driver_id]

        records.sort(key=sort_key, reverse=True)

        if query.cursor:
            cursor_record = self.store.get(query.cursor)
            if cursor_record is None:
                raise InvalidCursor()
            boundary = sort_key(cursor_record)
            records = [r for r in records if sort_key(r) < boundary]

        return [snapshot(r) for r in records[:query.limit]]

    async def create(self, payload: TripCreate, driver: CurrentUser) -> TripResponse:
        record = new_trip_record(payload, driver)
        self.store.put(record)
        logger.info("Trip %s created by driver %s", record["id"], driver.uid)
        return snapshot(record)

    def _load(self, trip_id: str) -> Dict[str, Any]:
        record = self.store.get(trip_id)
        if record is None:
            raise NotFound("Trip not found")
        return record

    async def update(self, trip_id: str, patch: TripUpdate, driver_id: str) -> TripResponse:
        record = self._load(trip_id)
        current = snapshot(record)
        check_owner(current, driver_id, "modify")

        record.update(plan_update(current, patch))
        self.store.put(record)
        return snapshot(record)

    async def delete(self, trip_id: str, driver_id: str) -> None:
        current = snapshot(self._load(trip_id))
        check_owner(current, driver_id, "delete")
        self.store.remove(trip_id)
        logger.info("Trip %s deleted by driver %s", trip_id, driver_id)

# --- Database store ---

class SqlTripRepository(TripRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _query(self, query: TripQuery) -> List[TripResponse]:
        async with self.session_factory() as session:
            stmt = select(Trip).order_by(Trip.created_at.desc(), Trip.id.desc())
            if query.from_city:
                stmt = stmt.where(Trip.from_city == query.from_city)
            if query.to_city:
                stmt = stmt.where(Trip.to_city == query.to_city)
            if query.driver_id:
                stmt = stmt.where(Trip.driver_id == query.driver_id)

            if query.cursor:
                cursor_trip = await session.get(Trip, query.cursor)
                if cursor_trip is None:
                    raise InvalidCursor()
                stmt = stmt.where(or_(
                    Trip.created_at < cursor_trip.created_at,
                    and_(Trip.created_at == cursor_trip.created_at, Trip.id < cursor_trip.id),
                ))

            result = await session.execute(stmt.limit(query.limit))
            return [snapshot(trip) for trip in result.scalars().all()]

    async def create(self, payload: TripCreate, driver: CurrentUser) -> TripResponse:
        trip = Trip(**new_trip_record(payload, driver))
        async with self.session_factory() as session:
            session.add(trip)
            await session.commit()
        logger.info("Trip %s created by driver %s", trip.id, driver.uid)
        return snapshot(trip)

    async def _load(self, session: AsyncSession, trip_id: str) -> Trip:
        trip = await session.get(Trip, trip_id, with_for_update=True)
        if trip is None:
            raise NotFound("Trip not found")
        return trip

    async def update(self, trip_id: str, patch: TripUpdate, driver_id: str) -> TripResponse:
        async with self.session_factory() as session:
            trip = await self._load(session, trip_id)
            current = snapshot(trip)
            check_owner(current, driver_id, "modify")

            for key, value in plan_update(current, patch).items():
                setattr(trip, key, value)
            await session.commit()
            await session.refresh(trip)
            return snapshot(trip)

    async def delete(self, trip_id: str, driver_id: str) -> None:
        async with self.session_factory() as session:
            trip = await self._load(session, trip_id)
            check_owner(snapshot(trip), driver_id, "delete")
            await session.delete(trip)
            await session.commit()
        logger.info("Trip %s deleted by driver %s", trip_id, driver_id)
