"""
Reconciliation of books whose workers died or never ran.
Every book eventually reaches completed or failed.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from storybook.core.config import settings
from storybook.models.book import Book, BookPage
from storybook.services.books.service import BookService
from storybook.services.books.states import BookStatus
from storybook.services.completion.service import CompletionService
from storybook.services.credits.service import CreditService, refund_description
from storybook.utils.metrics import books_failed_total

logger = logging.getLogger(__name__)

TEXT_STAGE_TIMEOUT_MESSAGE = "Generation timed out before images were started."
IMAGE_STAGE_TIMEOUT_MESSAGE = "Image generation timed out."


def reconcile_stuck_books(db: Session, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    books = BookService(db)
    credits = CreditService(db)
    completion = CompletionService(db)
    failed_text = 0
    failed_images = 0
    completed = 0

    text_cutoff = now - timedelta(minutes=settings.watchdog_text_stage_minutes)
    stuck_text = (
        db.query(Book)
        .filter(
            Book.status.in_([BookStatus.PENDING.value, BookStatus.GENERATING_TEXT.value]),
            Book.updated_at < text_cutoff,
        )
        .all()
    )
    for book in stuck_text:
        book_id, user_id, cost = book.id, book.user_id, book.credits_cost
        if books.fail_book(book_id, TEXT_STAGE_TIMEOUT_MESSAGE):
            failed_text += 1
            books_failed_total.labels(stage="watchdog").inc()
            logger.warning("watchdog_text_stage_failed", extra={"book_id": book_id})
        # no-op unless debited and not yet refunded
        credits.refund(user_id, book_id, cost, refund_description(book_id))

    image_cutoff = now - timedelta(minutes=settings.watchdog_image_stage_minutes)
    stuck_images = (
        db.query(Book.id)
        .filter(
            Book.status == BookStatus.GENERATING_IMAGES.value,
            Book.updated_at < image_cutoff,
        )
        .all()
    )
    for (book_id,) in stuck_images:
        recent_pages = (
            db.query(func.count(BookPage.id))
            .filter(BookPage.book_id == book_id, BookPage.updated_at >= image_cutoff)
            .scalar()
        )
        if recent_pages:
            continue
        if completion.check_and_complete(book_id):
            completed += 1
            continue
        books.fail_unfinished_units(book_id, IMAGE_STAGE_TIMEOUT_MESSAGE)
        if books.fail_book(book_id, IMAGE_STAGE_TIMEOUT_MESSAGE):
            failed_images += 1
            books_failed_total.labels(stage="watchdog").inc()
            logger.warning("watchdog_image_stage_failed", extra={"book_id": book_id})

    return {
        "ok": True,
        "failed_text": failed_text,
        "failed_images": failed_images,
        "completed": completed,
    }
