"""
Support diagnosis for a single book: what is stored versus what its status claims.
"""
from dataclasses import dataclass

from storybook.models.book import Book, BookPage
from storybook.services.books.states import BookStatus


@dataclass
class BookDiagnosis:
    book_status: str
    has_cover_image: bool
    page_count: int
    pages_without_images: int
    recommendation: str


def diagnose_book(book: Book, pages: list[BookPage]) -> BookDiagnosis:
    page_count = len(pages)
    pages_without_images = sum(1 for p in pages if not p.image_url)

    recommendation = "Book appears normal."
    if book.status == BookStatus.COMPLETED.value and page_count == 0:
        recommendation = "Book is marked as completed but has no pages. Consider regenerating."
    elif book.status == BookStatus.COMPLETED.value and pages_without_images:
        recommendation = (
            f"Book is marked as completed but has {pages_without_images} pages without images. "
            "Consider regenerating."
        )
    elif book.status == BookStatus.FAILED.value:
        recommendation = f"Book failed generation with error: {book.error_message or 'Unknown error'}"

    return BookDiagnosis(
        book_status=book.status,
        has_cover_image=bool(book.cover_image_url),
        page_count=page_count,
        pages_without_images=pages_without_images,
        recommendation=recommendation,
    )
