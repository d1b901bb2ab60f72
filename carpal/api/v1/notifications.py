from typing import Annotated
from fastapi import APIRouter, Depends, status
from carpal.api.deps import CurrentUserDep, get_dispatcher, get_token_store
from carpal.schemas.schemas import DeviceTokenRequest, DeliveryCountsResponse, NotificationContent
from carpal.services.display_name import resolve_display_name, FALLBACK_DISPLAY_NAME
from carpal.services.notification_service import NotificationDispatcher, build_data_payload
from carpal.services.token_store import UserTokenStore

router = APIRouter()

@router.post("/tokens", status_code=status.HTTP_201_CREATED)
async def register_device_token(
    token_in: DeviceTokenRequest,
    current_user: CurrentUserDep,
    token_store: Annotated[UserTokenStore, Depends(get_token_store)],
):
    await token_store.register_token(current_user.uid, token_in.token, display_name=current_user.name)
    return {"registered": True}

@router.post("/test", response_model=DeliveryCountsResponse)
async def send_test_notification(
    token_in: DeviceTokenRequest,
    current_user: CurrentUserDep,
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
):
    name = resolve_display_name(current_user.name, fallback=FALLBACK_DISPLAY_NAME)
    summary = await dispatcher.send_to_tokens(
        [token_in.token],
        NotificationContent(title="إشعار تجريبي", body=f"مرحباً {name}، الإشعارات تعمل بنجاح."),
        build_data_payload({"type": "test", "route": "home", "userId": current_user.uid}),
        owner_id=current_user.uid,
    )
    return DeliveryCountsResponse(
        target_count=summary.target_count,
        success_count=summary.success_count,
        failure_count=summary.failure_count,
    )
