import logging
import os
import tempfile

from storybook.storage.base import Storage, StorageError

logger = logging.getLogger(__name__)


class LocalStorage(Storage):
    """Filesystem storage rooted at base_path; served by the API under public_base_url."""

    def __init__(self, base_path: str, public_base_url: str) -> None:
        self.base_path = os.path.abspath(base_path)
        self.public_base_url = public_base_url.rstrip("/")

    def _path(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.base_path, key))
        if not path.startswith(self.base_path + os.sep):
            raise StorageError(f"Invalid storage key: {key}")
        return path

    def save(self, key: str, content: bytes, content_type: str = "image/png") -> str:
        path = self._path(key)
        directory = os.path.dirname(path)
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(content)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            raise StorageError(f"Failed to upload image to storage: {e}") from e
        return key

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def delete(self, keys: list[str]) -> int:
        removed = 0
        for key in keys:
            try:
                os.remove(self._path(key))
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                raise StorageError(f"Failed to delete {key}: {e}") from e
        return removed
