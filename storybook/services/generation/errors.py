class InsufficientCreditsError(Exception):
    """Balance does not cover the book; the book exists and is already failed."""
    def __init__(self, book_id: str):
        super().__init__("Insufficient credits")
        self.book_id = book_id


class BookGenerationError(Exception):
    """Admission or text stage aborted; the book is failed and any debit refunded."""
    def __init__(self, message: str, book_id: str | None = None):
        super().__init__(message)
        self.book_id = book_id
