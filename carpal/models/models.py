from datetime import datetime
from typing import Optional, List
from sqlalchemy import String, Integer, Float, JSON, Text, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from carpal.core.database import Base

# --- MODELS ---

class Trip(Base):
    __tablename__ = "trips"
    __table_args__ = (
        Index("ix_trips_created_at_id", "created_at", "id"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    driver_id: Mapped[str] = mapped_column(String(128), index=True, nullable=False)
    driver_name: Mapped[str] = mapped_column(String(255), default="")
    from_city: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    to_city: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    time: Mapped[str] = mapped_column(String(5), nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    car_model: Mapped[str] = mapped_column(String(255), nullable=False)
    car_color: Mapped[str] = mapped_column(String(255), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    available_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    booked_users: Mapped[List[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

class UserDevice(Base):
    """Push registration for one user: display name plus FCM device tokens."""
    __tablename__ = "user_devices"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(255), default="")
    fcm_tokens: Mapped[List[str]] = mapped_column(JSON, default=list)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
