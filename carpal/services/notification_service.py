import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence
from carpal.schemas.schemas import NotificationContent
from carpal.services.push_client import PushClient, INVALID_TOKEN_CODES
from carpal.services.token_store import UserTokenStore

logger = logging.getLogger(__name__)

@dataclass
class DispatchSummary:
    target_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    invalid_tokens: List[str] = field(default_factory=list)
    cleaned_up: bool = False

def build_data_payload(values: Mapping[str, Any]) -> Dict[str, str]:
    # FCM data values must be strings
    return {key: str(value) for key, value in values.items() if value is not None}

class NotificationDispatcher:
    """Best-effort multicast push with invalid-token cleanup.

    ``send_to_tokens`` never raises: delivery and cleanup failures are logged
    and reflected in the returned summary.
    """

    def __init__(self, push_client: PushClient, token_store: UserTokenStore):
        self.push_client = push_client
        self.token_store = token_store

    async def send_to_tokens(
        self,
        tokens: Sequence[str],
        notification: NotificationContent,
        data: Dict[str, str],
        owner_id: Optional[str] = None,
    ) -> DispatchSummary:
        tokens = list(tokens)
        if not tokens:
            logger.debug("Skipping send; no tokens available: %s", notification.title)
            return DispatchSummary()

        summary = DispatchSummary(target_count=len(tokens))
        try:
            results = await self.push_client.send_multicast(tokens, notification, data)
        except Exception:
            logger.error("Push send failed for %d token(s)", len(tokens), exc_info=True)
            summary.failure_count = len(tokens)
            return summary

        for result in results:
            if result.success:
                summary.success_count += 1
                continue

            summary.failure_count += 1
            logger.warning("Failed to deliver notification: %s %s %s", result.error_code, result.token, result.error)
            if result.error_code in INVALID_TOKEN_CODES:
                summary.invalid_tokens.append(result.token)

        if summary.invalid_tokens and owner_id:
            try:
                await self.token_store.remove_tokens(owner_id, summary.invalid_tokens)
                summary.cleaned_up = True
            except Exception:
                logger.error("Token cleanup failed for user %s", owner_id, exc_info=True)

        return summary
