import base64
import json
import logging
from typing import Any, Dict
from firebase_admin import auth
from firebase_admin.exceptions import FirebaseError
from starlette.concurrency import run_in_threadpool
from carpal.core.config import Settings
from carpal.core.exceptions import Unauthenticated
from carpal.schemas.schemas import CurrentUser
from carpal.services.display_name import resolve_display_name

logger = logging.getLogger(__name__)

INVALID_TOKEN = "Invalid or expired token"

def check_event_secret_settings(settings: Settings) -> bool:
    """Report whether the booking event webhook is protected; fatal in production."""
    if (settings.EVENT_WEBHOOK_SECRET or "").strip():
        return True

    if settings.is_production:
        raise RuntimeError("Missing required environment variables: EVENT_WEBHOOK_SECRET")

    logger.warning("EVENT_WEBHOOK_SECRET not set; booking event webhook accepts unauthenticated requests")
    return False

def user_from_claims(claims: Dict[str, Any]) -> CurrentUser:
    email = claims.get("email")
    return CurrentUser(
        uid=str(claims["uid"]),
        email=email if isinstance(email, str) and email else None,
        name=resolve_display_name(claims),
    )

class FirebaseTokenVerifier:
    """Verifies Firebase ID tokens with the Admin SDK."""

    def __init__(self, app=None):
        self.app = app

    async def verify(self, token: str) -> CurrentUser:
        try:
            decoded = await run_in_threadpool(auth.verify_id_token, token, self.app)
        except (ValueError, FirebaseError) as e:
            logger.info("Rejected ID token: %s", e)
            raise Unauthenticated(INVALID_TOKEN)
        return user_from_claims(decoded)

class MockTokenVerifier:
    """Development verifier used when Firebase is not configured.

    Accepts ``mock:<uid>[:<email>[:<name>]]`` or a base64url encoded JSON
    object with at least a ``uid`` key.
    """

    @staticmethod
    def decode(token: str) -> Dict[str, Any]:
        if not token:
            raise Unauthenticated(INVALID_TOKEN)

        if token.startswith("mock:"):
            parts = token.split(":")
            uid = parts[1] if len(parts) > 1 else ""
            if not uid:
                raise Unauthenticated(INVALID_TOKEN)
            return {
                "uid": uid,
                "email": parts[2] if len(parts) > 2 and parts[2] else None,
                "name": parts[3] if len(parts) > 3 else None,
            }

        try:
            raw = base64.urlsafe_b64decode(token + "=" * (-len(token) % 4))
            parsed = json.loads(raw.decode("utf-8"))
        except ValueError:
            raise Unauthenticated(INVALID_TOKEN)

        if not isinstance(parsed, dict) or not parsed.get("uid"):
            raise Unauthenticated(INVALID_TOKEN)
        return parsed

    async def verify(self, token: str) -> CurrentUser:
        return user_from_claims(self.decode(token))
