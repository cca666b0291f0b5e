from fastapi import APIRouter, Depends, Response
import redis
from sqlalchemy import text
from sqlalchemy.orm import Session

from storybook.core.config import settings
from storybook.db.session import get_db


router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Liveness: 200 whenever the process serves requests."""
    return {"status": "ok"}


@router.get("/ready")
def readiness(response: Response, db: Session = Depends(get_db)) -> dict:
    """Readiness: 503 until both the database and the Celery broker answer."""
    checks = {}
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = str(e)
    try:
        redis.Redis.from_url(settings.redis_url).ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = str(e)

    if any(value != "ok" for value in checks.values()):
        response.status_code = 503
        return {"status": "not_ready", "checks": checks}
    return {"status": "ready", "checks": checks}
