import logging

from sqlalchemy.orm import Session

from storybook.models.book import Book
from storybook.services.books.service import BookService
from storybook.services.books.states import BookStatus, PageStatus
from storybook.utils.metrics import books_completed_total

logger = logging.getLogger(__name__)


class CompletionService:
    """
    Flips a book to completed once its cover and every page are rendered.
    Safe to call redundantly from sibling workers: the status write is
    conditional on generating_images, so only one caller changes the row.
    """

    def __init__(self, db: Session):
        self.db = db
        self.books = BookService(db)

    def is_complete(self, book: Book) -> bool:
        cover_ready = (
            book.cover_status == PageStatus.COMPLETED.value
            and bool(book.cover_image_url)
            and bool(book.cover_storage_path)
        )
        return cover_ready and self.books.count_incomplete_pages(book.id) == 0

    def check_and_complete(self, book_id: str) -> bool:
        """Returns True when the book is completed after the call."""
        book = self.books.get(book_id)
        if book is None:
            return False
        if book.status == BookStatus.COMPLETED.value:
            return True
        if book.status != BookStatus.GENERATING_IMAGES.value or not self.is_complete(book):
            return False
        if self.books.transition(book_id, BookStatus.COMPLETED.value):
            books_completed_total.inc()
            logger.info("book_completed", extra={"book_id": book_id, "user_id": book.user_id})
            return True
        # lost the race: someone else completed or failed it first
        self.db.expire_all()
        book = self.books.get(book_id)
        return book is not None and book.status == BookStatus.COMPLETED.value
