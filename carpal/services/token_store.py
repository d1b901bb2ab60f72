import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from carpal.models.models import UserDevice

logger = logging.getLogger(__name__)

@dataclass
class UserTokens:
    user_id: str
    tokens: List[str] = field(default_factory=list)
    display_name: str = ""

def usable_tokens(tokens: Optional[Iterable[str]]) -> List[str]:
    seen = []
    for token in tokens or ():
        if isinstance(token, str) and token.strip() and token not in seen:
            seen.append(token)
    return seen

class UserTokenStore(ABC):
    """Device tokens registered per user for push delivery."""

    async def get_user_tokens(self, user_id: Optional[str]) -> Optional[UserTokens]:
        user_id = (user_id or "").strip()
        if not user_id:
            return None
        return await self._get(user_id)

    @abstractmethod
    async def _get(self, user_id: str) -> UserTokens:
        ...

    @abstractmethod
    async def remove_tokens(self, user_id: str, tokens: Iterable[str]) -> None:
        ...

    @abstractmethod
    async def register_token(self, user_id: str, token: str, display_name: Optional[str] = None) -> None:
        ...

class InMemoryUserTokenStore(UserTokenStore):
    def __init__(self):
        self.users: Dict[str, UserTokens] = {}

    async def _get(self, user_id: str) -> UserTokens:
        record = self.users.get(user_id)
        if record is None:
            return UserTokens(user_id=user_id)
        return UserTokens(user_id=user_id, tokens=usable_tokens(record.tokens), display_name=record.display_name)

    async def remove_tokens(self, user_id: str, tokens: Iterable[str]) -> None:
        record = self.users.get(user_id)
        if record is None:
            return
        stale = set(tokens)
        record.tokens = [t for t in record.tokens if t not in stale]

    async def register_token(self, user_id: str, token: str, display_name: Optional[str] = None) -> None:
        record = self.users.setdefault(user_id, UserTokens(user_id=user_id))
        if token not in record.tokens:
            record.tokens.append(token)
        if display_name:
            record.display_name = display_name

class SqlUserTokenStore(UserTokenStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _get(self, user_id: str) -> UserTokens:
        async with self.session_factory() as session:
            device = await session.get(UserDevice, user_id)
            if device is None:
                return UserTokens(user_id=user_id)
            return UserTokens(
                user_id=user_id,
                tokens=usable_tokens(device.fcm_tokens),
                display_name=device.display_name or "",
            )

    async def remove_tokens(self, user_id: str, tokens: Iterable[str]) -> None:
        stale = set(tokens)
        if not stale:
            return
        async with self.session_factory() as session:
            # Row lock so a concurrent registration is not lost
            device = await session.get(UserDevice, user_id, with_for_update=True)
            if device is None:
                return
            device.fcm_tokens = [t for t in (device.fcm_tokens or []) if t not in stale]
            device.updated_at = datetime.now(timezone.utc)
            await session.commit()
        logger.info("Removed %d invalid token(s) for user %s", len(stale), user_id)

    async def register_token(self, user_id: str, token: str, display_name: Optional[str] = None) -> None:
        async with self.session_factory() as session:
            device = await session.get(UserDevice, user_id, with_for_update=True)
            if device is None:
                device = UserDevice(user_id=user_id, display_name="", fcm_tokens=[])
                session.add(device)
            if token not in (device.fcm_tokens or []):
                device.fcm_tokens = [*(device.fcm_tokens or []), token]
            if display_name:
                device.display_name = display_name
            device.updated_at = datetime.now(timezone.utc)
            await session.commit()
