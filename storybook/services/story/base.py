"""
Base classes and errors for story writers.
Used by the factory and both writers (workflow, openai).
"""
from abc import ABC, abstractmethod
from typing import Any


class StorySynthesisError(Exception):
    """Story writer failed: transport, non-success status or missing configuration."""

    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = detail or {}


class StoryParseError(StorySynthesisError):
    """Story writer answered, but the structured block is missing or invalid."""


class StoryWriter(ABC):
    """Turns a story idea into free-form text that contains a fenced JSON story."""

    name = "base"

    def __init__(self, config: dict) -> None:
        self.config = config

    @abstractmethod
    def is_available(self) -> bool:
        """Check if writer is configured (API key present)."""
        pass

    @abstractmethod
    def write(self, story_idea: str) -> str:
        """Return raw writer output. Raises StorySynthesisError on failure."""
        pass
