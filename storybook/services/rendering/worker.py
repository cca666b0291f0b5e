"""
Image render worker: drives one page (or the cover) from pending to a
terminal state through the renderer's trigger-and-poll protocol.

Any terminal failure of a unit fails the whole book; there is no partial
success.
"""
import logging
import time
from typing import Any, Callable

import httpx
from sqlalchemy.orm import Session

from storybook.core.config import settings as default_settings
from storybook.services.books.service import BookService
from storybook.services.books.states import BookStatus, PageStatus, is_cover, unit_label
from storybook.services.completion.service import CompletionService
from storybook.services.rendering.base import (
    RenderAssetError,
    RenderConfigError,
    RenderError,
    RenderPollError,
    RenderTriggerError,
)
from storybook.services.rendering.client import (
    ACTIVE_STATUSES,
    FAILED_STATUS,
    SUCCESS_STATUSES,
    RenderClient,
    resolve_output_filename,
)
from storybook.storage.base import Storage, StorageError, storage_key
from storybook.utils.metrics import (
    books_failed_total,
    render_duration_seconds,
    render_trigger_attempts_total,
    render_units_total,
)

logger = logging.getLogger(__name__)

FINAL_COMPLETED = "completed"
FINAL_FAILED = "failed"
FINAL_SKIPPED = "skipped"


class PageRenderWorker:
    def __init__(
        self,
        db: Session,
        client: RenderClient,
        storage: Storage,
        sleep: Callable[[float], None] | None = None,
        settings: Any = default_settings,
    ):
        self.db = db
        self.client = client
        self.storage = storage
        self.sleep = sleep or time.sleep
        self.settings = settings
        self.books = BookService(db)
        self.completion = CompletionService(db)

    def run(self, book_id: str, page_number: int, prompt: str) -> str:
        """Returns the unit's final status: completed, failed or skipped."""
        log_extra = {"book_id": book_id, "page_number": page_number}
        book = self.books.get(book_id)
        if book is None:
            logger.info("render_unit_book_missing", extra=log_extra)
            render_units_total.labels(outcome=FINAL_SKIPPED).inc()
            return FINAL_SKIPPED
        if not is_cover(page_number) and self.books.get_page(book_id, page_number) is None:
            logger.info("render_unit_page_missing", extra=log_extra)
            render_units_total.labels(outcome=FINAL_SKIPPED).inc()
            return FINAL_SKIPPED
        if book.status == BookStatus.FAILED.value:
            # a sibling already failed the book; don't spend a render on it
            self.books.set_unit_status(
                book_id, page_number, PageStatus.FAILED.value,
                error="Book generation already failed.",
            )
            logger.info("render_unit_skipped_book_failed", extra=log_extra)
            render_units_total.labels(outcome=FINAL_SKIPPED).inc()
            return FINAL_SKIPPED

        started = time.monotonic()
        self.books.set_unit_status(book_id, page_number, PageStatus.PROCESSING.value)
        try:
            run_id = self._trigger_with_retry(prompt, log_extra)
            self.books.record_run_id(book_id, page_number, run_id)
            log_extra = {**log_extra, "run_id": run_id}
            logger.info("render_triggered", extra=log_extra)

            payload = self._poll_until_done(run_id, log_extra)
            if not self._unit_exists(book_id, page_number):
                # book deleted while the render ran; nothing to attach the image to
                logger.info("render_unit_removed", extra=log_extra)
                render_units_total.labels(outcome=FINAL_SKIPPED).inc()
                return FINAL_SKIPPED
            key, public_url = self._store_asset(book_id, page_number, run_id, payload)
        except Exception as e:
            self.db.rollback()
            if isinstance(e, (RenderError, StorageError)):
                logger.warning("render_unit_failed", extra={**log_extra, "error": str(e)})
            else:
                logger.exception("render_unit_crashed", extra={**log_extra, "error": str(e)})
            self._fail_unit(book_id, page_number, str(e) or type(e).__name__)
            render_units_total.labels(outcome=FINAL_FAILED).inc()
            render_duration_seconds.labels(outcome=FINAL_FAILED).observe(time.monotonic() - started)
            return FINAL_FAILED

        if not self.books.set_unit_status(
            book_id, page_number, PageStatus.COMPLETED.value,
            image_url=public_url, storage_path=key,
        ):
            # row deleted or unit already failed (watchdog): no record points at the upload
            self._discard_asset(key, log_extra)
            outcome = FINAL_FAILED if self._unit_exists(book_id, page_number) else FINAL_SKIPPED
            logger.warning("render_unit_not_recorded", extra={**log_extra, "status": outcome})
            render_units_total.labels(outcome=outcome).inc()
            render_duration_seconds.labels(outcome=outcome).observe(time.monotonic() - started)
            return outcome

        logger.info("render_unit_completed", extra={**log_extra, "status": key})
        render_units_total.labels(outcome=FINAL_COMPLETED).inc()
        render_duration_seconds.labels(outcome=FINAL_COMPLETED).observe(time.monotonic() - started)
        self.completion.check_and_complete(book_id)
        return FINAL_COMPLETED

    def _trigger_with_retry(self, prompt: str, log_extra: dict) -> str:
        max_attempts = self.settings.render_trigger_max_attempts
        last_error: Exception | None = None
        for attempt in range(1, max_attempts + 1):
            try:
                run_id = self.client.trigger(prompt)
                render_trigger_attempts_total.labels(outcome="ok").inc()
                return run_id
            except RenderConfigError:
                raise
            except (RenderError, httpx.HTTPError) as e:
                last_error = e
                render_trigger_attempts_total.labels(outcome="error").inc()
                logger.warning(
                    "render_trigger_failed",
                    extra={**log_extra, "attempt": attempt, "error": str(e)},
                )
                if attempt < max_attempts:
                    self.sleep(self.settings.render_trigger_backoff_seconds * attempt)
        raise RenderTriggerError(
            f"Failed to trigger image generation after {max_attempts} attempts: {last_error}"
        )

    def _poll_until_done(self, run_id: str, log_extra: dict) -> dict:
        max_attempts = self.settings.render_poll_max_attempts
        max_errors = self.settings.render_poll_max_consecutive_errors
        attempts = 0
        consecutive_errors = 0
        status = "not-started"
        payload: dict = {}

        while status in ACTIVE_STATUSES and attempts < max_attempts:
            attempts += 1
            self.sleep(self.settings.render_poll_interval_seconds)
            try:
                payload = self.client.get_run(run_id)
            except (RenderError, httpx.HTTPError) as e:
                consecutive_errors += 1
                logger.warning(
                    "render_poll_failed",
                    extra={**log_extra, "attempt": attempts, "error": str(e)},
                )
                if consecutive_errors >= max_errors:
                    raise RenderPollError(
                        f"Polling failed {consecutive_errors} consecutive times: {e}"
                    ) from e
                continue
            consecutive_errors = 0
            status = str(payload.get("status") or "").lower()

        if status == FAILED_STATUS:
            raise RenderError(str(payload.get("error") or "Generation failed in ComfyUI"))
        if status in ACTIVE_STATUSES:
            raise RenderPollError("Generation timed out after polling")
        if status not in SUCCESS_STATUSES:
            raise RenderError(f"Generation stopped with unexpected status: {status}")
        return payload

    def _store_asset(self, book_id: str, page_number: int, run_id: str, payload: dict) -> tuple[str, str]:
        filename = resolve_output_filename(payload, self.client.default_filename)
        content = self.client.download(self.client.asset_url(run_id, filename))
        if not content:
            raise RenderAssetError("Downloaded image file is empty.")
        key = storage_key(book_id, page_number)
        try:
            self.storage.save(key, content, content_type="image/png")
        except StorageError as e:
            raise RenderAssetError(str(e)) from e
        return key, self.storage.public_url(key)

    def _unit_exists(self, book_id: str, page_number: int) -> bool:
        if is_cover(page_number):
            return self.books.get(book_id) is not None
        return self.books.get_page(book_id, page_number) is not None

    def _discard_asset(self, key: str, log_extra: dict) -> None:
        try:
            self.storage.delete([key])
        except StorageError:
            logger.exception("render_asset_discard_failed", extra={**log_extra, "status": key})

    def _fail_unit(self, book_id: str, page_number: int, message: str) -> None:
        self.books.set_unit_status(book_id, page_number, PageStatus.FAILED.value, error=message)
        if self.books.fail_book(
            book_id, f"Image generation failed for {unit_label(page_number)}: {message}"
        ):
            books_failed_total.labels(stage="images").inc()
