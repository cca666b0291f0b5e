import os

import pytest

from storybook.storage.base import StorageError, storage_key


class TestStorageKey:
    def test_cover_and_pages(self):
        assert storage_key("b1", -1) == "b1/cover.png"
        assert storage_key("b1", 3) == "b1/page_3.png"


class TestLocalStorage:
    def test_save_and_public_url(self, storage):
        key = storage.save("b1/page_1.png", b"first")

        assert key == "b1/page_1.png"
        with open(os.path.join(storage.base_path, key), "rb") as f:
            assert f.read() == b"first"
        assert storage.public_url(key) == "http://media.test/b1/page_1.png"

    def test_save_overwrites_same_key(self, storage):
        storage.save("b1/page_1.png", b"first")
        storage.save("b1/page_1.png", b"second")

        assert os.listdir(os.path.join(storage.base_path, "b1")) == ["page_1.png"]
        with open(os.path.join(storage.base_path, "b1/page_1.png"), "rb") as f:
            assert f.read() == b"second"

    def test_delete_ignores_missing(self, storage):
        storage.save("b1/cover.png", b"c")

        assert storage.delete(["b1/cover.png", "b1/page_9.png"]) == 1
        assert not os.path.exists(os.path.join(storage.base_path, "b1/cover.png"))

    def test_key_cannot_escape_root(self, storage):
        with pytest.raises(StorageError):
            storage.save("../outside.png", b"x")
