"""
Celery task: render one page (or the cover, page_number=-1) of a book.
Enqueued by the orchestrator: send_task("storybook.workers.tasks.render_page.render_page",
args=[book_id, page_number, image_prompt], countdown=...).
"""
import logging

from storybook.core.celery_app import celery_app
from storybook.core.config import settings
from storybook.db.session import SessionLocal
from storybook.services.rendering.client import RenderClient
from storybook.services.rendering.worker import PageRenderWorker
from storybook.storage import get_storage

logger = logging.getLogger(__name__)


def run_render_unit(book_id: str, page_number: int, image_prompt: str) -> dict:
    db = SessionLocal()
    try:
        worker = PageRenderWorker(db, RenderClient.from_settings(settings), get_storage())
        final_status = worker.run(book_id, int(page_number), image_prompt)
        return {"ok": True, "final_status": final_status}
    except Exception:
        logger.exception("render_page_error", extra={"book_id": book_id, "page_number": page_number})
        db.rollback()
        return {"ok": False, "final_status": "error"}
    finally:
        db.close()


@celery_app.task(
    name="storybook.workers.tasks.render_page.render_page",
    time_limit=1800,
    soft_time_limit=1780,
)
def render_page(book_id: str, page_number: int, image_prompt: str) -> dict:
    return run_render_unit(book_id, page_number, image_prompt)
