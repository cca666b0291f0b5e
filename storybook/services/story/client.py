import logging
import time

import pybreaker

from storybook.schemas.story import StoryDocument
from storybook.services.circuit_breaker import get_circuit_breaker
from storybook.services.story.base import StoryParseError, StorySynthesisError, StoryWriter
from storybook.services.story.parser import parse_story_output
from storybook.utils.metrics import story_request_duration_seconds, story_requests_total

logger = logging.getLogger(__name__)

STORY_BREAKER_NAME = "story_writer"


class StoryClient:
    """One writer call per book, guarded by a circuit breaker, then parsed."""

    def __init__(self, writer: StoryWriter):
        self.writer = writer

    def synthesize(self, story_idea: str, book_id: str | None = None) -> StoryDocument:
        breaker = get_circuit_breaker(STORY_BREAKER_NAME)
        started = time.monotonic()
        try:
            raw = breaker.call(self.writer.write, story_idea)
        except pybreaker.CircuitBreakerError as e:
            story_requests_total.labels(status="error").inc()
            raise StorySynthesisError("Text generation service is temporarily unavailable.") from e
        except StorySynthesisError:
            story_requests_total.labels(status="error").inc()
            raise
        finally:
            story_request_duration_seconds.observe(time.monotonic() - started)

        try:
            story = parse_story_output(raw)
        except StoryParseError as e:
            story_requests_total.labels(status="parse_error").inc()
            logger.warning("story_parse_failed", extra={"book_id": book_id, "error": str(e)})
            raise

        story_requests_total.labels(status="ok").inc()
        logger.info(
            "story_synthesized",
            extra={"book_id": book_id, "status": f"{len(story.pages)} pages"},
        )
        return story
