import logging
import secrets

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from storybook.core.config import settings
from storybook.models.book import Book, BookPage
from storybook.schemas.story import StoryDocument
from storybook.services.books.states import (
    BOOK_TRANSITIONS,
    COVER_PAGE_NUMBER,
    PAGE_TRANSITIONS,
    BookStatus,
    PageStatus,
    is_cover,
    truncate_message,
)

logger = logging.getLogger(__name__)


class BookService:
    def __init__(self, db: Session):
        self.db = db

    def create_book(self, user_id: str, original_prompt: str, credits_cost: int) -> Book:
        book = Book(
            user_id=user_id,
            original_prompt=original_prompt,
            status=BookStatus.PENDING.value,
            credits_cost=credits_cost,
        )
        self.db.add(book)
        self.db.commit()
        self.db.refresh(book)
        return book

    def get(self, book_id: str) -> Book | None:
        return self.db.query(Book).filter(Book.id == book_id).one_or_none()

    def get_for_user(self, book_id: str, user_id: str) -> Book | None:
        return (
            self.db.query(Book)
            .filter(Book.id == book_id, Book.user_id == user_id)
            .one_or_none()
        )

    def list_for_user(self, user_id: str) -> list[Book]:
        return (
            self.db.query(Book)
            .filter(Book.user_id == user_id)
            .order_by(Book.created_at.desc())
            .all()
        )

    def get_pages(self, book_id: str) -> list[BookPage]:
        return (
            self.db.query(BookPage)
            .filter(BookPage.book_id == book_id)
            .order_by(BookPage.page_number)
            .all()
        )

    def get_page(self, book_id: str, page_number: int) -> BookPage | None:
        return (
            self.db.query(BookPage)
            .filter(BookPage.book_id == book_id, BookPage.page_number == page_number)
            .one_or_none()
        )

    def count_incomplete_pages(self, book_id: str) -> int:
        return (
            self.db.query(func.count(BookPage.id))
            .filter(
                BookPage.book_id == book_id,
                BookPage.generation_status != PageStatus.COMPLETED.value,
            )
            .scalar()
        ) or 0

    def transition(self, book_id: str, status: str, error_message: str | None = None) -> bool:
        """
        Move the book to `status` if its current state allows it.
        Returns False (and changes nothing) for a disallowed or repeated
        transition, or when the row no longer exists.
        """
        allowed_from = BOOK_TRANSITIONS[status]
        values: dict = {"status": status}
        if error_message is not None:
            values["error_message"] = truncate_message(error_message, settings.error_message_max_length)
        result = self.db.execute(
            update(Book)
            .where(Book.id == book_id, Book.status.in_(allowed_from))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        changed = result.rowcount > 0
        if changed:
            logger.info("book_status_changed", extra={"book_id": book_id, "status": status})
        return changed

    def fail_book(self, book_id: str, error_message: str) -> bool:
        return self.transition(book_id, BookStatus.FAILED.value, error_message=error_message)

    def save_story(self, book_id: str, story: StoryDocument) -> list[BookPage]:
        """Persist title/description/cover prompt and insert all pages as one batch."""
        book = self.get(book_id)
        if book is None:
            raise LookupError(f"Book {book_id} no longer exists")
        first_text = story.pages[0].text
        book.title = story.title
        book.short_description = first_text[: settings.short_description_length] + "..."
        book.cover_image_prompt = story.cover_image_prompt
        pages = [
            BookPage(
                book_id=book_id,
                page_number=page.page_number,
                text=page.text,
                image_prompt=page.image_prompt,
                generation_status=PageStatus.PENDING.value,
            )
            for page in story.pages
        ]
        self.db.add(book)
        self.db.add_all(pages)
        self.db.commit()
        return pages

    def set_unit_status(
        self,
        book_id: str,
        page_number: int,
        status: str,
        *,
        run_id: str | None = None,
        image_url: str | None = None,
        storage_path: str | None = None,
        error: str | None = None,
    ) -> bool:
        """
        Update one render unit: a book_pages row, or the cover fields on books
        when page_number is the cover sentinel. Missing rows are a no-op.
        """
        allowed_from = PAGE_TRANSITIONS[status]
        error = truncate_message(error, settings.error_message_max_length)
        if is_cover(page_number):
            values: dict = {"cover_status": status}
            if run_id is not None:
                values["cover_run_id"] = run_id
            if image_url is not None:
                values["cover_image_url"] = image_url
            if storage_path is not None:
                values["cover_storage_path"] = storage_path
            if error is not None:
                values["cover_error"] = error
            stmt = (
                update(Book)
                .where(Book.id == book_id, Book.cover_status.in_(allowed_from))
                .values(**values)
            )
        else:
            values = {"generation_status": status}
            if run_id is not None:
                values["run_id"] = run_id
            if image_url is not None:
                values["image_url"] = image_url
            if storage_path is not None:
                values["storage_path"] = storage_path
            if error is not None:
                values["last_error"] = error
            stmt = (
                update(BookPage)
                .where(
                    BookPage.book_id == book_id,
                    BookPage.page_number == page_number,
                    BookPage.generation_status.in_(allowed_from),
                )
                .values(**values)
            )
        result = self.db.execute(stmt.execution_options(synchronize_session=False))
        self.db.commit()
        return result.rowcount > 0

    def record_run_id(self, book_id: str, page_number: int, run_id: str) -> bool:
        """Checkpoint the renderer run id without touching the status."""
        if is_cover(page_number):
            stmt = update(Book).where(Book.id == book_id).values(cover_run_id=run_id)
        else:
            stmt = (
                update(BookPage)
                .where(BookPage.book_id == book_id, BookPage.page_number == page_number)
                .values(run_id=run_id)
            )
        result = self.db.execute(stmt.execution_options(synchronize_session=False))
        self.db.commit()
        return result.rowcount > 0

    def fail_unfinished_units(self, book_id: str, error: str) -> int:
        """Mark the cover and every non-terminal page failed. Returns units changed."""
        changed = 0
        book = self.get(book_id)
        if book is None:
            return 0
        if self.set_unit_status(book_id, COVER_PAGE_NUMBER, PageStatus.FAILED.value, error=error):
            changed += 1
        result = self.db.execute(
            update(BookPage)
            .where(
                BookPage.book_id == book_id,
                BookPage.generation_status.in_(PAGE_TRANSITIONS[PageStatus.FAILED.value]),
            )
            .values(generation_status=PageStatus.FAILED.value, last_error=truncate_message(error, settings.error_message_max_length))
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return changed + result.rowcount

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    def generate_share_id(self) -> str:
        length = settings.share_id_length
        for _ in range(10):
            share_id = secrets.token_urlsafe(length)[:length]
            exists = self.db.query(Book.id).filter(Book.share_id == share_id).first()
            if not exists:
                return share_id
        return secrets.token_urlsafe(length * 2)[: length * 2]

    def get_or_create_share_id(self, book: Book) -> str:
        if book.share_id:
            return book.share_id
        share_id = self.generate_share_id()
        book.share_id = share_id
        self.db.add(book)
        self.db.commit()
        logger.info("book_shared", extra={"book_id": book.id, "user_id": book.user_id})
        return share_id

    def get_shared(self, share_id: str) -> Book | None:
        """Only completed books are readable through their public link."""
        return (
            self.db.query(Book)
            .filter(Book.share_id == share_id, Book.status == BookStatus.COMPLETED.value)
            .one_or_none()
        )

    def storage_keys(self, book: Book) -> list[str]:
        keys = [book.cover_storage_path] if book.cover_storage_path else []
        keys.extend(page.storage_path for page in book.pages if page.storage_path)
        return keys

    def delete_book(self, book: Book) -> None:
        self.db.delete(book)
        self.db.commit()
