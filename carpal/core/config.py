from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

FIREBASE_VARS = ("FIREBASE_PROJECT_ID", "FIREBASE_CLIENT_EMAIL", "FIREBASE_PRIVATE_KEY")

class Settings(BaseSettings):
    ENVIRONMENT: str = "development"
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    # Database (in-memory trip store when unset)
    DATABASE_URL: Optional[str] = None

    # Firebase Admin
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CLIENT_EMAIL: Optional[str] = None
    FIREBASE_PRIVATE_KEY: Optional[str] = None

    # CORS (empty list allows every origin)
    BACKEND_CORS_ORIGINS: List[str] = []

    # Booking event webhook
    EVENT_WEBHOOK_SECRET: Optional[str] = None

    # Pagination
    DEFAULT_PAGE_LIMIT: int = 20
    MAX_PAGE_LIMIT: int = 100

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore"
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def missing_firebase_vars(self) -> List[str]:
        return [name for name in FIREBASE_VARS if not (getattr(self, name) or "").strip()]

    @property
    def firebase_enabled(self) -> bool:
        return not self.missing_firebase_vars

    @property
    def firebase_private_key(self) -> Optional[str]:
        if self.FIREBASE_PRIVATE_KEY is None:
            return None
        return self.FIREBASE_PRIVATE_KEY.replace("\\n", "\n")

settings = Settings()
