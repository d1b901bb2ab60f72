"""Application error taxonomy.

Every error carries the HTTP status it maps to; the handlers registered in
``carpal.main`` turn them into ``{"message": ...}`` responses.
"""
from typing import Optional

class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

class ValidationError(AppError):
    status_code = 400
    default_message = "Validation failed"

class InvalidArgument(ValidationError):
    default_message = "Invalid argument"

class InvalidCursor(ValidationError):
    default_message = "Invalid cursor provided"

class InvalidSeatCount(ValidationError):
    default_message = "totalSeats cannot be less than the number of booked seats"

class NegativeSeatCount(ValidationError):
    default_message = "availableSeats cannot be negative"

class SeatOverflow(ValidationError):
    default_message = "availableSeats exceeds the remaining capacity"

class Unauthenticated(AppError):
    status_code = 401
    default_message = "Authentication required"

class Forbidden(AppError):
    status_code = 403
    default_message = "Forbidden"

class NotFound(AppError):
    status_code = 404
    default_message = "Not found"

class InternalError(AppError):
    status_code = 500
