"""
Celery beat task: fail or complete books stuck in a non-terminal state.
Text stage stuck -> failed and refunded. Image stage stuck -> completed if
every unit is done, otherwise failed without refund.
"""
import logging

from sqlalchemy.exc import ProgrammingError

from storybook.core.celery_app import celery_app
from storybook.db.session import SessionLocal
from storybook.services.generation.reconcile import reconcile_stuck_books

logger = logging.getLogger(__name__)


@celery_app.task(
    name="storybook.workers.tasks.watchdog_books.fail_stuck_books",
    time_limit=120,
    soft_time_limit=110,
)
def fail_stuck_books() -> dict:
    db = SessionLocal()
    try:
        result = reconcile_stuck_books(db)
        if result["failed_text"] or result["failed_images"] or result["completed"]:
            logger.warning("watchdog_stuck_books", extra={"status": str(result)})
        return result
    except ProgrammingError as e:
        msg = str(e.orig) if getattr(e, "orig", None) else str(e)
        db.rollback()
        if "does not exist" in msg or "UndefinedTable" in msg:
            return {"ok": True, "skipped": "table_not_found"}
        logger.exception("watchdog_books_error")
        return {"ok": False}
    except Exception:
        logger.exception("watchdog_books_error")
        db.rollback()
        return {"ok": False}
    finally:
        db.close()
