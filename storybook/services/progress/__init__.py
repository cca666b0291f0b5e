from .service import BookProgress, ProgressService

__all__ = ["BookProgress", "ProgressService"]
