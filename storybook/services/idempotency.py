"""
Replay guard for client-supplied Idempotency-Key headers.

A key is claimed with a single SET NX EX, so two concurrent submissions with
the same key cannot both pass; the claim lapses after `idempotency_ttl`.
"""
import redis

from storybook.core.config import settings

KEY_PREFIX = "storybook:idempotency:"


class IdempotencyStore:
    def __init__(self, client: redis.Redis | None = None) -> None:
        self.client = client or redis.Redis.from_url(settings.redis_url, decode_responses=True)
        self.ttl_seconds = settings.idempotency_ttl

    def check_and_set(self, key: str, ttl_seconds: int | None = None) -> bool:
        """True for the first claim of `key`; False while an earlier claim is live."""
        claimed = self.client.set(
            KEY_PREFIX + key,
            "1",
            nx=True,
            ex=ttl_seconds if ttl_seconds is not None else self.ttl_seconds,
        )
        return bool(claimed)
