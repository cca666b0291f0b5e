"""
FastAPI dependencies: caller identity, internal key check and the
collaborators the routes need (overridden in tests).
"""
from fastapi import Header, HTTPException, status

from storybook.core.config import settings
from storybook.services.auth.tokens import verify_token
from storybook.services.generation.dispatch import RenderDispatcher, celery_render_dispatcher
from storybook.services.idempotency import IdempotencyStore
from storybook.services.rendering.client import RenderClient
from storybook.services.story.client import StoryClient
from storybook.services.story.factory import StoryWriterFactory
from storybook.storage import Storage, get_storage


def get_current_user_id(authorization: str | None = Header(default=None)) -> str:
    token = None
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:].strip()
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = verify_token(token)
    if not payload or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return str(payload["sub"])


def require_internal_key(x_internal_key: str | None = Header(default=None)) -> None:
    if settings.internal_api_key and x_internal_key != settings.internal_api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid internal key")


def get_story_client() -> StoryClient:
    return StoryClient(StoryWriterFactory.create_from_settings(settings))


def get_render_dispatcher() -> RenderDispatcher:
    return celery_render_dispatcher


def get_render_client() -> RenderClient:
    return RenderClient.from_settings(settings)


def get_book_storage() -> Storage:
    return get_storage()


def get_idempotency_store() -> IdempotencyStore:
    return IdempotencyStore()
