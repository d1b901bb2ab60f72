import logging
import firebase_admin
from firebase_admin import credentials, initialize_app
from carpal.core.config import Settings

logger = logging.getLogger(__name__)

def check_firebase_settings(settings: Settings) -> bool:
    """Report missing Firebase variables; fatal in production."""
    missing = settings.missing_firebase_vars
    if not missing:
        logger.info("Firebase credentials loaded")
        return True

    if settings.is_production:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    logger.warning("Firebase credentials not found: %s", ", ".join(missing))
    logger.warning("Continuing with mock authentication and logged push delivery")
    return False

def initialize_firebase(settings: Settings):
    if firebase_admin._apps:
        return firebase_admin.get_app()

    cred = credentials.Certificate({
        "type": "service_account",
        "project_id": settings.FIREBASE_PROJECT_ID,
        "private_key": settings.firebase_private_key,
        "client_email": settings.FIREBASE_CLIENT_EMAIL,
        "token_uri": "https://oauth2.googleapis.com/token",
    })
    app = initialize_app(cred)
    logger.info("Firebase Admin initialized for project %s", settings.FIREBASE_PROJECT_ID)
    return app
