# creator_match/infrastructure/code_ledger.py
import hashlib

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from creator_match.errors import PersistenceError

logger = structlog.get_logger(__name__)

DEFAULT_CODE_TTL = 600


class AuthorizationCodeLedger:
    """
    Records authorization codes as they are exchanged so a replayed code is
    refused locally. Only a SHA-256 of the code is stored.
    """

    def __init__(self, redis_client: Redis, ttl: int = DEFAULT_CODE_TTL):
        self.redis = redis_client
        self.ttl = ttl

    @staticmethod
    def _key(code: str) -> str:
        digest = hashlib.sha256(code.encode()).hexdigest()
        return f"oauth_code:{digest}"

    async def claim(self, code: str) -> bool:
        """Returns False when the code was already claimed."""
        try:
            claimed = await self.redis.set(self._key(code), "1", ex=self.ttl, nx=True)
        except RedisError as exc:
            logger.exception("oauth_code_ledger_unavailable")
            raise PersistenceError("authorization code ledger unavailable") from exc
        if not claimed:
            logger.info("oauth_code_replayed")
        return bool(claimed)
