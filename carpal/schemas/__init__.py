from carpal.schemas.schemas import (
    CurrentUser,
    TripCreate, TripUpdate, TripResponse, TripListResponse, TripCreatedResponse,
    BookingRecord, BookingEventPayload, BookingEventResponse,
    NotificationContent, DeviceTokenRequest, DeliveryCountsResponse
)
