"""Seat accounting for trips.

A trip has ``total_seats`` of capacity, a set of ``booked_users`` and an
``available_seats`` counter. After any change the following must hold::

    booked  = len(set(booked_users))
    total_seats >= booked
    0 <= available_seats <= total_seats - booked

Both trip stores go through :func:`apply_seat_update` so they agree exactly.
"""
from dataclasses import dataclass
from typing import Iterable, Optional
from carpal.core.exceptions import InvalidSeatCount, NegativeSeatCount, SeatOverflow

@dataclass(frozen=True)
class SeatState:
    total_seats: int
    available_seats: int

def booked_count(booked_users: Optional[Iterable[str]]) -> int:
    return len(set(booked_users or ()))

def apply_seat_update(
    current_total: int,
    current_available: int,
    booked_users: Optional[Iterable[str]],
    total_seats: Optional[int] = None,
    available_seats: Optional[int] = None,
) -> SeatState:
    """Compute the seat state after a driver's update.

    An explicit ``available_seats`` that does not fit is rejected; when it
    is omitted the current value is clamped to the remaining capacity.

    Raises:
        InvalidSeatCount: ``total_seats`` would drop below the booked count.
        NegativeSeatCount: the resulting ``available_seats`` is negative.
        SeatOverflow: an explicit ``available_seats`` exceeds capacity.
    """
    booked = booked_count(booked_users)

    next_total = current_total if total_seats is None else total_seats
    if next_total < booked:
        raise InvalidSeatCount(
            f"totalSeats cannot be less than the number of booked seats ({booked})"
        )

    max_available = next_total - booked

    explicit = available_seats is not None
    requested = available_seats if explicit else current_available
    if requested < 0:
        raise NegativeSeatCount()

    if requested > max_available:
        if explicit:
            raise SeatOverflow(f"availableSeats cannot exceed {max_available}")
        requested = max_available

    return SeatState(total_seats=next_total, available_seats=requested)
