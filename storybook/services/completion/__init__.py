from .service import CompletionService

__all__ = ["CompletionService"]
