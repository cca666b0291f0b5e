"""
Book generation orchestrator: admission (credit debit), story synthesis,
page persistence and render fan-out. Any failure before fan-out is issued
fails the book and refunds the debit.
"""
import logging
from typing import Any

from sqlalchemy.orm import Session

from storybook.core.config import settings as default_settings
from storybook.models.book import Book, BookPage
from storybook.services.books.service import BookService
from storybook.services.books.states import COVER_PAGE_NUMBER, BookStatus
from storybook.services.credits.service import CreditService, debit_description, refund_description
from storybook.services.generation.dispatch import RenderDispatcher
from storybook.services.generation.errors import BookGenerationError, InsufficientCreditsError
from storybook.services.story.client import StoryClient
from storybook.utils.metrics import balance_rejected_total, books_failed_total, books_submitted_total

logger = logging.getLogger(__name__)

INSUFFICIENT_CREDITS_MESSAGE = "Insufficient credits."


def failure_stage(book: Book | None) -> str:
    """Metric label for a failure before fan-out finished: text, or dispatch once images started."""
    if book is not None and book.status == BookStatus.GENERATING_IMAGES.value:
        return "dispatch"
    return "text"


class BookGenerationService:
    def __init__(
        self,
        db: Session,
        story_client: StoryClient,
        dispatcher: RenderDispatcher,
        settings: Any = default_settings,
    ):
        self.db = db
        self.story_client = story_client
        self.dispatcher = dispatcher
        self.settings = settings
        self.books = BookService(db)
        self.credits = CreditService(db)

    def submit(self, user_id: str, story_idea: str) -> str:
        """
        Admit and start one book. Returns the book id once render units are
        enqueued. Raises InsufficientCreditsError (no debit made) or
        BookGenerationError (book failed, debit refunded).
        """
        cost = self.settings.book_generation_cost
        book = self.books.create_book(user_id, story_idea, cost)
        book_id = book.id
        log_extra = {"book_id": book_id, "user_id": user_id}

        balance = self.credits.get_balance(user_id)
        if balance is None or balance.total < cost or not self.credits.debit(
            user_id, book_id, cost, debit_description(story_idea, book_id)
        ):
            self.books.fail_book(book_id, INSUFFICIENT_CREDITS_MESSAGE)
            balance_rejected_total.inc()
            books_failed_total.labels(stage="admission").inc()
            logger.info("book_rejected_insufficient_credits", extra=log_extra)
            raise InsufficientCreditsError(book_id)

        try:
            self.books.transition(book_id, BookStatus.GENERATING_TEXT.value)
            story = self.story_client.synthesize(story_idea, book_id=book_id)
            pages = self.books.save_story(book_id, story)
            if not self.books.transition(book_id, BookStatus.GENERATING_IMAGES.value):
                raise BookGenerationError("Book left the text stage before images were started.", book_id)
            self._fan_out(book_id, story.cover_image_prompt, pages)
        except Exception as e:
            self._handle_failure(user_id, book_id, cost, e)
            if isinstance(e, BookGenerationError):
                raise
            raise BookGenerationError(str(e) or type(e).__name__, book_id) from e

        books_submitted_total.inc()
        logger.info("book_submitted", extra={**log_extra, "status": f"{len(pages)} pages"})
        return book_id

    def _fan_out(self, book_id: str, cover_prompt: str, pages: list[BookPage]) -> None:
        """Cover first, then pages in order, each enqueued a little later than the last."""
        units = [(COVER_PAGE_NUMBER, cover_prompt)]
        units.extend((page.page_number, page.image_prompt) for page in pages)
        stagger = self.settings.render_dispatch_stagger_seconds
        for index, (page_number, prompt) in enumerate(units):
            self.dispatcher(book_id, page_number, prompt, index * stagger)

    def _handle_failure(self, user_id: str, book_id: str, cost: int, error: Exception) -> None:
        self.db.rollback()
        message = str(error) or type(error).__name__
        logger.warning("book_generation_failed", extra={"book_id": book_id, "error": message})
        try:
            stage = failure_stage(self.books.get(book_id))
            if self.books.fail_book(book_id, message):
                books_failed_total.labels(stage=stage).inc()
        except Exception:
            self.db.rollback()
            logger.exception("book_fail_write_failed", extra={"book_id": book_id})
        # best effort: a failed refund is logged, never raised
        try:
            self.credits.refund(user_id, book_id, cost, refund_description(book_id))
        except Exception:
            self.db.rollback()
            logger.exception("refund_failed", extra={"book_id": book_id, "user_id": user_id})
