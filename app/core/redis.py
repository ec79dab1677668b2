import redis.asyncio as redis
from app.core.config import settings

class SessionStore:
    """
    Read-only view of the identity service's session store. A token is only
    honoured while its key exists; logout and expiry remove it.
    """

    def __init__(self, url: str = settings.REDIS_URL, prefix: str = settings.SESSION_KEY_PREFIX):
        self.redis = redis.from_url(url, encoding="utf-8", decode_responses=True)
        self.prefix = prefix

    def _key(self, token: str) -> str:
        return f"{self.prefix}{token}"

    async def get_token(self, token: str) -> str | None:
        return await self.redis.get(self._key(token))

    async def close(self):
        await self.redis.aclose()

redis_client = SessionStore()
