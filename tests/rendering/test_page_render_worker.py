"""Tests for PageRenderWorker: trigger retries, polling bounds, asset storage, fail-fast."""
import os
from types import SimpleNamespace
from unittest.mock import MagicMock

from storybook.core.config import settings
from storybook.services.books.service import BookService
from storybook.services.rendering.base import RenderError
from storybook.services.rendering.worker import PageRenderWorker


def _settings(**overrides):
    return SimpleNamespace(**{**settings.model_dump(), **overrides})


def _worker(db, render_client, storage, **overrides):
    sleep = MagicMock()
    worker = PageRenderWorker(db, render_client, storage, sleep=sleep, settings=_settings(**overrides))
    return worker, sleep


class TestHappyPath:
    def test_page_completes_and_is_stored(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        worker, _ = _worker(db, render_client, storage)

        assert worker.run(book_id, 1, "A fox") == "completed"

        page = BookService(db).get_page(book_id, 1)
        assert page.generation_status == "completed"
        assert page.storage_path == f"{book_id}/page_1.png"
        assert page.image_url == f"http://media.test/{book_id}/page_1.png"
        assert page.run_id == "run-1"
        assert render_client.downloaded == ["https://cdn.test/run-1/out.png"]
        with open(os.path.join(storage.base_path, page.storage_path), "rb") as f:
            assert f.read() == render_client.content
        # cover still pending, so the book is not done
        assert BookService(db).get(book_id).status == "generating_images"

    def test_cover_fields_live_on_book(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        worker, _ = _worker(db, render_client, storage)

        assert worker.run(book_id, -1, "A fox cover") == "completed"

        book = BookService(db).get(book_id)
        assert book.cover_status == "completed"
        assert book.cover_storage_path == f"{book_id}/cover.png"
        assert book.cover_image_url == f"http://media.test/{book_id}/cover.png"
        assert book.cover_run_id == "run-1"

    def test_last_unit_completes_the_book(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage(pages=2)
        worker, _ = _worker(db, render_client, storage)

        for page_number in (2, -1, 1):
            worker.run(book_id, page_number, "prompt")

        assert BookService(db).get(book_id).status == "completed"

    def test_rerun_overwrites_same_key(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage(pages=1)
        worker, _ = _worker(db, render_client, storage)
        worker.run(book_id, 1, "prompt")
        render_client.content = b"second render"

        assert worker.run(book_id, 1, "prompt") == "completed"

        assert os.listdir(os.path.join(storage.base_path, book_id)) == ["page_1.png"]
        with open(os.path.join(storage.base_path, book_id, "page_1.png"), "rb") as f:
            assert f.read() == b"second render"
        assert BookService(db).get_page(book_id, 1).generation_status == "completed"


class TestTrigger:
    def test_exactly_five_attempts_with_linear_backoff(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        render_client.trigger_errors = 100
        worker, sleep = _worker(db, render_client, storage)

        assert worker.run(book_id, 3, "A fox") == "failed"

        assert render_client.trigger_calls == 5
        assert [c.args[0] for c in sleep.call_args_list] == [2.0, 4.0, 6.0, 8.0]
        assert render_client.poll_calls == 0
        page = BookService(db).get_page(book_id, 3)
        assert page.generation_status == "failed"
        assert "after 5 attempts" in page.last_error
        book = BookService(db).get(book_id)
        assert book.status == "failed"
        assert book.error_message.startswith("Image generation failed for Page 3: ")

    def test_recovers_after_transient_failures(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        render_client.trigger_errors = 2
        worker, _ = _worker(db, render_client, storage)

        assert worker.run(book_id, 1, "A fox") == "completed"
        assert render_client.trigger_calls == 3

    def test_cover_failure_names_the_cover(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        render_client.trigger_errors = 100
        worker, _ = _worker(db, render_client, storage)

        worker.run(book_id, -1, "cover")

        book = BookService(db).get(book_id)
        assert book.cover_status == "failed"
        assert book.cover_error
        assert book.error_message.startswith("Image generation failed for Cover: ")


class TestPolling:
    def test_polls_until_success(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        render_client.statuses = [
            {"status": "queued"},
            {"status": "running"},
            {"status": "success", "outputs": [{"filename": "x.png"}]},
        ]
        worker, sleep = _worker(db, render_client, storage)

        assert worker.run(book_id, 1, "p") == "completed"
        assert render_client.poll_calls == 3
        assert all(c.args[0] == 10.0 for c in sleep.call_args_list)

    def test_renderer_reports_failure(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        render_client.statuses = [{"status": "failed", "error": "NSFW prompt"}]
        worker, _ = _worker(db, render_client, storage)

        assert worker.run(book_id, 2, "p") == "failed"
        assert BookService(db).get_page(book_id, 2).last_error == "NSFW prompt"
        assert BookService(db).get(book_id).error_message == "Image generation failed for Page 2: NSFW prompt"

    def test_renderer_failure_without_detail(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        render_client.statuses = [{"status": "failed"}]
        worker, _ = _worker(db, render_client, storage)

        worker.run(book_id, 2, "p")
        assert BookService(db).get_page(book_id, 2).last_error == "Generation failed in ComfyUI"

    def test_attempt_budget_exhausted(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        render_client.statuses = [{"status": "running"}]
        worker, _ = _worker(db, render_client, storage, render_poll_max_attempts=4)

        assert worker.run(book_id, 1, "p") == "failed"
        assert render_client.poll_calls == 4
        assert BookService(db).get_page(book_id, 1).last_error == "Generation timed out after polling"

    def test_consecutive_errors_abort(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        render_client.statuses = [RenderError("HTTP 502")]
        worker, _ = _worker(db, render_client, storage)

        assert worker.run(book_id, 1, "p") == "failed"
        assert render_client.poll_calls == 10
        assert "consecutive" in BookService(db).get_page(book_id, 1).last_error

    def test_successful_poll_resets_error_count(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        render_client.statuses = (
            [RenderError("HTTP 502")] * 9
            + [{"status": "running"}]
            + [RenderError("HTTP 502")] * 9
            + [{"status": "complete"}]
        )
        worker, _ = _worker(db, render_client, storage)

        assert worker.run(book_id, 1, "p") == "completed"
        assert render_client.poll_calls == 20

    def test_unexpected_status(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        render_client.statuses = [{"status": "cancelled"}]
        worker, _ = _worker(db, render_client, storage)

        worker.run(book_id, 1, "p")
        assert BookService(db).get_page(book_id, 1).last_error == (
            "Generation stopped with unexpected status: cancelled"
        )


class TestAssetAndGuards:
    def test_empty_download_fails(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        render_client.content = b""
        worker, _ = _worker(db, render_client, storage)

        assert worker.run(book_id, 1, "p") == "failed"
        assert BookService(db).get_page(book_id, 1).last_error == "Downloaded image file is empty."
        assert not os.path.exists(os.path.join(storage.base_path, book_id, "page_1.png"))

    def test_missing_book_is_a_noop(self, db, render_client, storage):
        worker, _ = _worker(db, render_client, storage)

        assert worker.run("deleted-book", 1, "p") == "skipped"
        assert render_client.trigger_calls == 0

    def test_missing_page_is_a_noop(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage(pages=2)
        worker, _ = _worker(db, render_client, storage)

        assert worker.run(book_id, 7, "p") == "skipped"
        assert render_client.trigger_calls == 0

    def test_book_already_failed(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        BookService(db).fail_book(book_id, "Image generation failed for Page 2: boom")
        worker, _ = _worker(db, render_client, storage)

        assert worker.run(book_id, 4, "p") == "skipped"
        assert render_client.trigger_calls == 0
        assert BookService(db).get_page(book_id, 4).generation_status == "failed"
        # the first failure message is kept
        assert BookService(db).get(book_id).error_message == "Image generation failed for Page 2: boom"

    def test_failure_never_reverts_completed_book(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage(pages=1)
        worker, _ = _worker(db, render_client, storage)
        worker.run(book_id, -1, "cover")
        worker.run(book_id, 1, "p")
        assert BookService(db).get(book_id).status == "completed"

        books = BookService(db)
        assert books.fail_book(book_id, "late failure") is False
        assert books.get(book_id).status == "completed"


class TestRowsChangedDuringRender:
    def test_book_deleted_while_polling_uploads_nothing(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        books = BookService(db)
        poll = render_client.get_run

        def _get_run(run_id):
            books.delete_book(books.get(book_id))
            return poll(run_id)

        render_client.get_run = _get_run
        worker, _ = _worker(db, render_client, storage)

        assert worker.run(book_id, 1, "p") == "skipped"
        assert render_client.downloaded == []
        assert books.get(book_id) is None
        assert not os.path.exists(os.path.join(storage.base_path, book_id, "page_1.png"))

    def test_book_deleted_after_upload_removes_the_image(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        books = BookService(db)
        save = storage.save

        def _save(key, content, content_type="image/png"):
            stored = save(key, content, content_type=content_type)
            books.delete_book(books.get(book_id))
            return stored

        storage.save = _save
        worker, _ = _worker(db, render_client, storage)

        assert worker.run(book_id, -1, "cover") == "skipped"
        assert not os.path.exists(os.path.join(storage.base_path, book_id, "cover.png"))

    def test_unit_failed_by_watchdog_is_not_reported_completed(self, db, render_client, storage, book_in_image_stage):
        book_id = book_in_image_stage()
        books = BookService(db)
        poll = render_client.get_run

        def _get_run(run_id):
            books.fail_unfinished_units(book_id, "Image generation timed out.")
            books.fail_book(book_id, "Image generation timed out.")
            return poll(run_id)

        render_client.get_run = _get_run
        worker, _ = _worker(db, render_client, storage)

        assert worker.run(book_id, 2, "p") == "failed"
        page = books.get_page(book_id, 2)
        assert page.generation_status == "failed"
        assert page.storage_path is None
        assert not os.path.exists(os.path.join(storage.base_path, book_id, "page_2.png"))
        assert books.get(book_id).error_message == "Image generation timed out."
