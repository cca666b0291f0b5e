"""
Read-only progress projection of a book for the status endpoint.
"""
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from storybook.models.book import Book, BookPage
from storybook.services.books.service import BookService
from storybook.services.books.states import COVER_PAGE_NUMBER, BookStatus, PageStatus

TEXT_STAGE_PERCENT = 10
IMAGE_STAGE_PERCENT = 90


@dataclass
class BookProgress:
    overall_status: str
    message: str
    progress_percentage: int
    total_pages: int
    cover_status: str
    current_page: int | None = None
    error: str | None = None
    page_statuses: list[dict] = field(default_factory=list)


def image_stage_percent(pages: list[BookPage], cover_status: str) -> int:
    """10% for the text stage plus 90% spread over pages + cover."""
    total_units = len(pages) + 1
    done = sum(1 for p in pages if p.generation_status == PageStatus.COMPLETED.value)
    if cover_status == PageStatus.COMPLETED.value:
        done += 1
    return TEXT_STAGE_PERCENT + round(done / total_units * IMAGE_STAGE_PERCENT)


def _image_stage_message(pages: list[BookPage], cover_status: str) -> tuple[str, int | None]:
    if cover_status == PageStatus.PROCESSING.value:
        return "Generating cover image...", COVER_PAGE_NUMBER
    processing = next((p for p in pages if p.generation_status == PageStatus.PROCESSING.value), None)
    if processing is not None:
        return f"Generating image for page {processing.page_number}...", processing.page_number
    failed = next((p for p in pages if p.generation_status == PageStatus.FAILED.value), None)
    if failed is not None:
        return f"Failed generating image for page {failed.page_number}.", failed.page_number
    return "Preparing image generation...", None


class ProgressService:
    def __init__(self, db: Session):
        self.books = BookService(db)

    def get_progress(self, book: Book) -> BookProgress:
        pages = self.books.get_pages(book.id)
        cover_status = book.cover_status or PageStatus.PENDING.value
        status = book.status
        current_page = None

        if status == BookStatus.PENDING.value:
            percent, message = 0, "Generation pending..."
        elif status == BookStatus.GENERATING_TEXT.value:
            percent, message = TEXT_STAGE_PERCENT, "Generating story text..."
        elif status == BookStatus.GENERATING_IMAGES.value:
            percent = image_stage_percent(pages, cover_status)
            message, current_page = _image_stage_message(pages, cover_status)
        elif status == BookStatus.COMPLETED.value:
            percent, message = 100, "Book generation complete!"
        elif status == BookStatus.FAILED.value:
            percent = max(TEXT_STAGE_PERCENT, image_stage_percent(pages, cover_status))
            failed = next((p for p in pages if p.generation_status == PageStatus.FAILED.value), None)
            if failed is not None:
                # the page that failed says more than the book-level error
                message = f"Failed generating image for page {failed.page_number}."
            else:
                message = f"Book generation failed: {book.error_message or 'Unknown reason'}"
        else:
            percent, message = 0, f"Unknown status: {status}"

        return BookProgress(
            overall_status=status,
            message=message,
            progress_percentage=max(0, min(100, percent)),
            total_pages=len(pages) + 1,
            cover_status=cover_status,
            current_page=current_page,
            error=book.error_message,
            page_statuses=[
                {"page_number": p.page_number, "status": p.generation_status} for p in pages
            ],
        )
