from abc import ABC, abstractmethod

from storybook.services.books.states import is_cover


class StorageError(Exception):
    pass


def storage_key(book_id: str, page_number: int) -> str:
    """Deterministic object key: {book_id}/cover.png or {book_id}/page_{n}.png."""
    if is_cover(page_number):
        return f"{book_id}/cover.png"
    return f"{book_id}/page_{page_number}.png"


class Storage(ABC):
    @abstractmethod
    def save(self, key: str, content: bytes, content_type: str = "image/png") -> str:
        """Write content at key, replacing any existing object; returns the key."""
        raise NotImplementedError

    @abstractmethod
    def public_url(self, key: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def delete(self, keys: list[str]) -> int:
        """Remove objects; missing keys are ignored. Returns the number removed."""
        raise NotImplementedError
