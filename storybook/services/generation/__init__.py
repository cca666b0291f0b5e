from .dispatch import RenderDispatcher, celery_render_dispatcher
from .errors import BookGenerationError, InsufficientCreditsError
from .reconcile import reconcile_stuck_books
from .service import BookGenerationService

__all__ = [
    "RenderDispatcher",
    "celery_render_dispatcher",
    "BookGenerationError",
    "InsufficientCreditsError",
    "reconcile_stuck_books",
    "BookGenerationService",
]
