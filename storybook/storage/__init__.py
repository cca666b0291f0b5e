from storybook.core.config import settings
from storybook.storage.base import Storage, StorageError, storage_key
from storybook.storage.local import LocalStorage


def get_storage() -> Storage:
    return LocalStorage(settings.storage_base_path, settings.storage_public_base_url)


__all__ = ["Storage", "StorageError", "LocalStorage", "get_storage", "storage_key"]
