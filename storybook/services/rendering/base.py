"""
Error types for the trigger-and-poll image renderer.
"""
from typing import Any


class RenderError(Exception):
    """Raised when a render unit fails; detail holds renderer fields for logging."""
    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = detail or {}

    @property
    def http_status(self) -> int | None:
        return self.detail.get("http_status")


class RenderConfigError(RenderError):
    """Renderer API key or deployment id is missing."""


class RenderTriggerError(RenderError):
    pass


class RenderPollError(RenderError):
    pass


class RenderAssetError(RenderError):
    """Asset download returned nothing usable, or storage upload failed."""
