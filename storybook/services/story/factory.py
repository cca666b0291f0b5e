"""
Factory for creating the story writer selected in settings.
"""
import logging
from typing import Any

from storybook.services.story.base import StoryWriter
from storybook.services.story.writers.openai import OpenAIStoryWriter
from storybook.services.story.writers.workflow import WorkflowStoryWriter

logger = logging.getLogger(__name__)


class StoryWriterFactory:
    WRITERS = {
        "workflow": WorkflowStoryWriter,
        "openai": OpenAIStoryWriter,
    }

    @classmethod
    def create(cls, name: str, config: dict) -> StoryWriter:
        writer_class = cls.WRITERS.get(name.lower())
        if not writer_class:
            available = ", ".join(cls.WRITERS.keys())
            raise ValueError(f"Unknown story provider: {name}. Available providers: {available}")
        writer = writer_class(config)
        if not writer.is_available():
            logger.warning(f"Story writer {name} created but not fully configured")
        return writer

    @classmethod
    def create_from_settings(cls, settings: Any) -> StoryWriter:
        name = settings.story_provider
        if name == "openai":
            config = {
                "api_key": settings.openai_api_key,
                "model": settings.openai_story_model,
                "timeout": settings.story_api_timeout,
            }
        else:
            config = {
                "api_url": settings.story_api_url,
                "api_key": settings.story_api_key,
                "timeout": settings.story_api_timeout,
            }
        return cls.create(name, config)
