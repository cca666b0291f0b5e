"""
Internal render endpoint: runs one page/cover render synchronously.
Reports 200 whenever the worker ran; the unit's outcome is in finalStatus.
"""
import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from storybook.api.deps import get_book_storage, get_render_client, require_internal_key
from storybook.db.session import get_db
from storybook.schemas.books import RenderUnitIn
from storybook.services.rendering.client import RenderClient
from storybook.services.rendering.worker import PageRenderWorker
from storybook.storage import Storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["internal"], dependencies=[Depends(require_internal_key)])


@router.post("/render")
def render_unit(
    body: RenderUnitIn,
    db: Session = Depends(get_db),
    client: RenderClient = Depends(get_render_client),
    storage: Storage = Depends(get_book_storage),
):
    image_prompt = (body.image_prompt or "").strip()
    if not body.book_id or body.page_number is None or not image_prompt:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "error": "Missing required parameters: book_id, page_number, image_prompt",
            },
        )
    try:
        final_status = PageRenderWorker(db, client, storage).run(body.book_id, body.page_number, image_prompt)
    except Exception as e:
        logger.exception("internal_render_error", extra={"book_id": body.book_id, "page_number": body.page_number})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": str(e) or "Internal error"},
        )
    return {"success": True, "finalStatus": final_status}
