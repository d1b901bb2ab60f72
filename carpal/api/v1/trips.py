from typing import Optional
from fastapi import APIRouter, Query, Request, Response, status
from carpal.api.deps import TripRepositoryDep, CurrentUserDep
from carpal.schemas.schemas import TripCreate, TripUpdate, TripResponse, TripListResponse, TripCreatedResponse
from carpal.services.trip_service import parse_limit

router = APIRouter()

def limit_from(request: Request, limit: Optional[str]) -> int:
    settings = request.app.state.settings
    return parse_limit(limit, default=settings.DEFAULT_PAGE_LIMIT, maximum=settings.MAX_PAGE_LIMIT)

@router.get("", response_model=TripListResponse)
async def list_trips(
    request: Request,
    repo: TripRepositoryDep,
    from_city: Optional[str] = Query(None, alias="fromCity"),
    to_city: Optional[str] = Query(None, alias="toCity"),
    limit: Optional[str] = None,
    cursor: Optional[str] = None,
):
    page = await repo.list(
        from_city=from_city,
        to_city=to_city,
        limit=limit_from(request, limit),
        cursor=cursor,
    )
    return TripListResponse(trips=page.trips, next_cursor=page.next_cursor)

@router.get("/mine", response_model=TripListResponse)
async def list_my_trips(
    request: Request,
    repo: TripRepositoryDep,
    current_user: CurrentUserDep,
    limit: Optional[str] = None,
    cursor: Optional[str] = None,
):
    page = await repo.list_by_driver(current_user.uid, limit=limit_from(request, limit), cursor=cursor)
    return TripListResponse(trips=page.trips, next_cursor=page.next_cursor)

@router.post("", response_model=TripCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(trip_in: TripCreate, repo: TripRepositoryDep, current_user: CurrentUserDep):
    trip = await repo.create(trip_in, current_user)
    return TripCreatedResponse(message="Trip created successfully", trip=trip)

@router.patch("/{trip_id}", response_model=TripResponse)
async def update_trip(trip_id: str, trip_in: TripUpdate, repo: TripRepositoryDep, current_user: CurrentUserDep):
    return await repo.update(trip_id, trip_in, current_user.uid)

@router.delete("/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trip(trip_id: str, repo: TripRepositoryDep, current_user: CurrentUserDep):
    await repo.delete(trip_id, current_user.uid)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
