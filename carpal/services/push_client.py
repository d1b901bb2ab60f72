import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
from firebase_admin import messaging
from firebase_admin.exceptions import FirebaseError, InvalidArgumentError
from starlette.concurrency import run_in_threadpool
from carpal.schemas.schemas import NotificationContent

logger = logging.getLogger(__name__)

UNREGISTERED = "messaging/registration-token-not-registered"
INVALID_TOKEN = "messaging/invalid-registration-token"

# Failure codes meaning the token will never work again
INVALID_TOKEN_CODES = frozenset({UNREGISTERED, INVALID_TOKEN})

@dataclass
class TokenResult:
    token: str
    success: bool
    error_code: Optional[str] = None
    error: Optional[Exception] = None

def error_code_for(exc: Optional[Exception]) -> str:
    if isinstance(exc, messaging.UnregisteredError):
        return UNREGISTERED
    if isinstance(exc, InvalidArgumentError):
        if "registration token" in str(exc).lower():
            return INVALID_TOKEN
        return "messaging/invalid-argument"
    if isinstance(exc, messaging.SenderIdMismatchError):
        return "messaging/mismatched-credential"
    if isinstance(exc, messaging.QuotaExceededError):
        return "messaging/message-rate-exceeded"
    if isinstance(exc, messaging.ThirdPartyAuthError):
        return "messaging/third-party-auth-error"
    if isinstance(exc, FirebaseError):
        return "messaging/" + str(exc.code).lower().replace("_", "-")
    return "unknown"

class PushClient(ABC):
    @abstractmethod
    async def send_multicast(
        self,
        tokens: Sequence[str],
        notification: NotificationContent,
        data: Dict[str, str],
    ) -> List[TokenResult]:
        """Send one message to every token; one result per token, in order."""

class FcmPushClient(PushClient):
    """Firebase Cloud Messaging through the Admin SDK."""

    def __init__(self, app=None):
        self.app = app

    async def send_multicast(self, tokens, notification, data):
        message = messaging.MulticastMessage(
            tokens=list(tokens),
            notification=messaging.Notification(title=notification.title, body=notification.body),
            data=data,
        )
        response = await run_in_threadpool(messaging.send_each_for_multicast, message, False, self.app)
        return [
            TokenResult(
                token=token,
                success=result.success,
                error_code=None if result.success else error_code_for(result.exception),
                error=result.exception,
            )
            for token, result in zip(tokens, response.responses)
        ]

class LoggingPushClient(PushClient):
    """Development client used when Firebase is not configured."""

    async def send_multicast(self, tokens, notification, data):
        logger.info("Push (not sent) to %d token(s): %s | %s %s", len(tokens), notification.title, notification.body, data)
        return [TokenResult(token=token, success=True) for token in tokens]
