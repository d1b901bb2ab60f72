import re
from datetime import datetime, timezone
from typing import Optional, List, Any
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
PHONE_PATTERN = re.compile(r"^\+?[0-9\s-]{8,20}$")

# --- Shared Config ---
class BaseSchema(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

def check_date(value: Optional[str]) -> Optional[str]:
    if value is not None and not ISO_DATE_PATTERN.match(value):
        raise PydanticCustomError("date_format", "date must be in YYYY-MM-DD format")
    return value

def check_time(value: Optional[str]) -> Optional[str]:
    if value is not None and not TIME_PATTERN.match(value):
        raise PydanticCustomError("time_format", "time must be in HH:mm format")
    return value

def check_phone(value: Optional[str]) -> Optional[str]:
    if value is not None and not PHONE_PATTERN.match(value):
        raise PydanticCustomError("phone_format", "phoneNumber must be a valid phone number")
    return value

def to_iso(value: datetime) -> str:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

# --- Auth ---
class CurrentUser(BaseSchema):
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None

# --- Trip ---
class TripFields(BaseSchema):
    @field_validator("date", check_fields=False)
    @classmethod
    def validate_date(cls, value):
        return check_date(value)

    @field_validator("time", check_fields=False)
    @classmethod
    def validate_time(cls, value):
        return check_time(value)

    @field_validator("phone_number", check_fields=False)
    @classmethod
    def validate_phone(cls, value):
        return check_phone(value)

class TripCreate(TripFields):
    from_city: str = Field(min_length=1)
    to_city: str = Field(min_length=1)
    date: str
    time: str
    price: float = Field(gt=0, strict=True)
    car_model: str = Field(min_length=1)
    car_color: str = Field(min_length=1)
    phone_number: str
    notes: Optional[str] = None
    total_seats: int = Field(ge=1, strict=True)

class TripUpdate(TripFields):
    from_city: Optional[str] = Field(default=None, min_length=1)
    to_city: Optional[str] = Field(default=None, min_length=1)
    date: Optional[str] = None
    time: Optional[str] = None
    price: Optional[float] = Field(default=None, gt=0, strict=True)
    car_model: Optional[str] = Field(default=None, min_length=1)
    car_color: Optional[str] = Field(default=None, min_length=1)
    phone_number: Optional[str] = None
    notes: Optional[str] = None
    total_seats: Optional[int] = Field(default=None, ge=1, strict=True)
    available_seats: Optional[int] = Field(default=None, ge=0, strict=True)

    @model_validator(mode="after")
    def check_patch(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided to update")

        # Only notes may be cleared
        for name in self.model_fields_set - {"notes"}:
            if getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")

        if self.total_seats is not None and self.available_seats is not None:
            if self.available_seats > self.total_seats:
                raise ValueError("availableSeats cannot exceed totalSeats")
        return self

    def field_patch(self) -> dict:
        """Non-seat fields the caller supplied, keyed by attribute name."""
        return self.model_dump(
            exclude_unset=True,
            exclude={"total_seats", "available_seats"},
        )

class TripResponse(BaseSchema):
    id: str
    driver_id: str
    driver_name: str = ""
    from_city: str
    to_city: str
    date: str
    time: str
    price: float
    car_model: str
    car_color: str
    phone_number: str
    notes: Optional[str] = None
    total_seats: int
    available_seats: int
    booked_users: List[str] = []
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    def serialize_timestamp(self, value: datetime) -> str:
        return to_iso(value)

class TripListResponse(BaseSchema):
    trips: List[TripResponse]
    next_cursor: Optional[str] = None

class TripCreatedResponse(BaseSchema):
    message: str
    trip: TripResponse

# --- Booking events ---
class BookingRecord(BaseSchema):
    # Booking documents are written by the mobile app; values are loosely typed
    model_config = ConfigDict(extra="allow", str_strip_whitespace=False)

    booking_id: Optional[Any] = None
    trip_id: Optional[Any] = None
    trip_ref: Optional[Any] = None
    driver_id: Optional[Any] = None
    passenger_id: Optional[Any] = None
    user_id: Optional[Any] = None
    passenger_name: Optional[Any] = None
    status: Optional[Any] = None

class BookingEventPayload(BaseSchema):
    before: Optional[BookingRecord] = None
    after: Optional[BookingRecord] = None

class BookingEventResponse(BaseSchema):
    event: str
    dispatched: int

# --- Notifications ---
class NotificationContent(BaseSchema):
    title: str
    body: str

class DeviceTokenRequest(BaseSchema):
    token: str = Field(min_length=1)

class DeliveryCountsResponse(BaseSchema):
    target_count: int
    success_count: int
    failure_count: int
