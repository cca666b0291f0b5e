"""
Bearer tokens for API callers, signed with itsdangerous.
The payload carries the user id as "sub"; expiry is checked on load.
"""
from typing import Any

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from storybook.core.config import settings


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.auth_secret_key, salt="access-token")


def create_access_token(user_id: str) -> str:
    return _serializer().dumps({"sub": user_id})


def verify_token(token: str) -> dict[str, Any] | None:
    """Returns the payload, or None when the token is forged or expired."""
    try:
        data = _serializer().loads(token, max_age=settings.auth_token_max_age_seconds)
    except (BadSignature, SignatureExpired):
        return None
    return data if isinstance(data, dict) else None
