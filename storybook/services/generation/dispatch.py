"""
Fan-out of render units onto the Celery "rendering" queue.
The API process only enqueues; render_page tasks run on the workers.
"""
from typing import Protocol

from storybook.core.celery_app import celery_app

RENDER_TASK_NAME = "storybook.workers.tasks.render_page.render_page"
RENDER_QUEUE = "rendering"


class RenderDispatcher(Protocol):
    def __call__(self, book_id: str, page_number: int, image_prompt: str, countdown: float) -> None: ...


def celery_render_dispatcher(book_id: str, page_number: int, image_prompt: str, countdown: float) -> None:
    celery_app.send_task(
        RENDER_TASK_NAME,
        args=[book_id, page_number, image_prompt],
        countdown=countdown,
        queue=RENDER_QUEUE,
    )
