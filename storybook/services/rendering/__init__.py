"""
External renderer (trigger + poll) client and the per-page render worker.
"""
from .base import (
    RenderAssetError,
    RenderConfigError,
    RenderError,
    RenderPollError,
    RenderTriggerError,
)
from .client import RenderClient, resolve_output_filename
from .worker import PageRenderWorker

__all__ = [
    "RenderAssetError",
    "RenderConfigError",
    "RenderError",
    "RenderPollError",
    "RenderTriggerError",
    "RenderClient",
    "resolve_output_filename",
    "PageRenderWorker",
]
