import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from storybook.api.deps import (
    get_book_storage,
    get_current_user_id,
    get_idempotency_store,
    get_render_dispatcher,
    get_story_client,
)
from storybook.core.config import settings
from storybook.db.session import get_db
from storybook.schemas.books import (
    BookDiagnosisOut,
    BookOut,
    BookProgressOut,
    BookWithPagesOut,
    PageStatusOut,
    ShareLinkOut,
    SubmitBookIn,
)
from storybook.services.books.diagnosis import diagnose_book
from storybook.services.books.service import BookService
from storybook.services.generation import (
    BookGenerationError,
    BookGenerationService,
    InsufficientCreditsError,
)
from storybook.services.idempotency import IdempotencyStore
from storybook.services.progress import ProgressService
from storybook.services.story.client import StoryClient
from storybook.storage import Storage, StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/books", tags=["books"])


def _error(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, **extra})


@router.post("", status_code=status.HTTP_202_ACCEPTED)
def submit_book(
    body: SubmitBookIn,
    user_id: str = Depends(get_current_user_id),
    idempotency_key: str | None = Header(default=None),
    db: Session = Depends(get_db),
    story_client: StoryClient = Depends(get_story_client),
    dispatcher=Depends(get_render_dispatcher),
    idempotency: IdempotencyStore = Depends(get_idempotency_store),
):
    """Admit a book: debit credits, write the story, enqueue page renders."""
    story_idea = (body.story_idea or "").strip()
    if not story_idea:
        return _error(status.HTTP_400_BAD_REQUEST, "Story idea is required.")
    if len(story_idea) > settings.story_idea_max_length:
        return _error(
            status.HTTP_400_BAD_REQUEST,
            f"Story idea must be at most {settings.story_idea_max_length} characters.",
        )
    if idempotency_key and not idempotency.check_and_set(f"submit:{user_id}:{idempotency_key}"):
        return _error(status.HTTP_409_CONFLICT, "Duplicate request.")

    service = BookGenerationService(db, story_client, dispatcher)
    try:
        book_id = service.submit(user_id, story_idea)
    except InsufficientCreditsError as e:
        return _error(status.HTTP_402_PAYMENT_REQUIRED, "Insufficient credits", bookId=e.book_id)
    except BookGenerationError as e:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e), bookId=e.book_id)
    except Exception as e:
        logger.exception("submit_book_error", extra={"user_id": user_id})
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e) or "Internal error")

    return {
        "success": True,
        "bookId": book_id,
        "message": "Book generation started. Images will be generated in the background.",
    }


@router.get("", response_model=list[BookOut])
def list_books(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return BookService(db).list_for_user(user_id)


@router.get("/{book_id}", response_model=BookWithPagesOut)
def get_book(book_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    book = BookService(db).get_for_user(book_id, user_id)
    if book is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return book


@router.get("/{book_id}/status", response_model=BookProgressOut)
def get_book_status(book_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    book = BookService(db).get_for_user(book_id, user_id)
    if book is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    progress = ProgressService(db).get_progress(book)
    return BookProgressOut(
        overall_status=progress.overall_status,
        message=progress.message,
        progress_percentage=progress.progress_percentage,
        current_page=progress.current_page,
        total_pages=progress.total_pages,
        cover_status=progress.cover_status,
        page_statuses=[
            PageStatusOut(page_number=p["page_number"], status=p["status"])
            for p in progress.page_statuses
        ],
        error=progress.error,
    )


@router.delete("/{book_id}")
def delete_book(
    book_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    storage: Storage = Depends(get_book_storage),
):
    """Remove stored images, then the book (pages cascade)."""
    service = BookService(db)
    book = service.get_for_user(book_id, user_id)
    if book is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    try:
        removed = storage.delete(service.storage_keys(book))
    except StorageError as e:
        logger.exception("delete_book_storage_error", extra={"book_id": book_id})
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))
    service.delete_book(book)
    logger.info("book_deleted", extra={"book_id": book_id, "user_id": user_id})
    return {"success": True, "removedImages": removed}


@router.post("/{book_id}/share", response_model=ShareLinkOut)
def share_book(book_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    """Owner-only: returns the book's public link, creating it on first call."""
    service = BookService(db)
    book = service.get_for_user(book_id, user_id)
    if book is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    share_id = service.get_or_create_share_id(book)
    share_url = f"{settings.share_base_url.rstrip('/')}/book/{share_id}"
    return ShareLinkOut(share_id=share_id, share_url=share_url)


@router.get("/{book_id}/diagnosis", response_model=BookDiagnosisOut)
def get_book_diagnosis(book_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    service = BookService(db)
    book = service.get_for_user(book_id, user_id)
    if book is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return diagnose_book(book, service.get_pages(book_id))
