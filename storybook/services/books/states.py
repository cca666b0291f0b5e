"""
Book and page state machines.

Every status write is a conditional UPDATE whose WHERE clause lists the states
the target may be entered from. That keeps transitions monotonic (terminal
states are never left) and idempotent under concurrent writers.
"""
from enum import Enum

COVER_PAGE_NUMBER = -1


class BookStatus(str, Enum):
    PENDING = "pending"
    GENERATING_TEXT = "generating_text"
    GENERATING_IMAGES = "generating_images"
    COMPLETED = "completed"
    FAILED = "failed"


class PageStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


BOOK_TERMINAL = frozenset({BookStatus.COMPLETED.value, BookStatus.FAILED.value})
BOOK_IN_PROGRESS = frozenset({
    BookStatus.PENDING.value,
    BookStatus.GENERATING_TEXT.value,
    BookStatus.GENERATING_IMAGES.value,
})

# target -> states it may be entered from
BOOK_TRANSITIONS: dict[str, frozenset[str]] = {
    BookStatus.GENERATING_TEXT.value: frozenset({BookStatus.PENDING.value}),
    BookStatus.GENERATING_IMAGES.value: frozenset({BookStatus.GENERATING_TEXT.value}),
    # completed -> completed matches nothing to change; the caller treats it as a no-op
    BookStatus.COMPLETED.value: frozenset({BookStatus.GENERATING_IMAGES.value}),
    BookStatus.FAILED.value: BOOK_IN_PROGRESS,
}

# completed -> completed is allowed so a re-run refreshes url/path at the same key
PAGE_TRANSITIONS: dict[str, frozenset[str]] = {
    PageStatus.PROCESSING.value: frozenset({PageStatus.PENDING.value, PageStatus.PROCESSING.value}),
    PageStatus.COMPLETED.value: frozenset({
        PageStatus.PENDING.value,
        PageStatus.PROCESSING.value,
        PageStatus.COMPLETED.value,
    }),
    PageStatus.FAILED.value: frozenset({PageStatus.PENDING.value, PageStatus.PROCESSING.value}),
}


def is_cover(page_number: int) -> bool:
    return page_number == COVER_PAGE_NUMBER


def unit_label(page_number: int) -> str:
    """Human label used in logs and failure messages: 'Cover' or 'Page N'."""
    return "Cover" if is_cover(page_number) else f"Page {page_number}"


def truncate_message(message: str | None, limit: int = 500) -> str | None:
    if message is None:
        return None
    return message[:limit]
