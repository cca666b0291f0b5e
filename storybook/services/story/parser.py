"""
Story output parser: pulls the fenced JSON block out of free-form writer output
and validates it into a StoryDocument with pages numbered 1..N.
"""
import json
import logging
import re

from pydantic import ValidationError

from storybook.schemas.story import StoryDocument
from storybook.services.story.base import StoryParseError

logger = logging.getLogger(__name__)

_FENCED_JSON_RE = re.compile(r"```(?:json)?[ \t]*\r?\n(.*?)\r?\n?```", re.DOTALL | re.IGNORECASE)


def extract_json_block(raw: str) -> str | None:
    """
    Return the body of the first ```json fenced block. Bare JSON (the whole
    reply is an object) is accepted as well.
    """
    text = (raw or "").strip()
    if not text:
        return None
    match = _FENCED_JSON_RE.search(text)
    if match:
        return match.group(1).strip()
    if text.startswith("{") and text.endswith("}"):
        return text
    return None


def parse_story_output(raw: str) -> StoryDocument:
    json_string = extract_json_block(raw)
    if not json_string:
        logger.warning("story_json_block_missing", extra={"error": (raw or "")[:200]})
        raise StoryParseError("Invalid format received from text generation API.")

    try:
        data = json.loads(json_string)
    except json.JSONDecodeError as e:
        raise StoryParseError("Failed to parse story data from text generation API.") from e

    if not isinstance(data, dict):
        raise StoryParseError("Failed to parse story data from text generation API.")

    try:
        story = StoryDocument.model_validate(data)
    except ValidationError as e:
        raise StoryParseError(
            "Incomplete story data received from text generation API.",
            detail={"errors": e.errors(include_url=False)},
        ) from e

    return _normalize_page_numbers(story)


def _normalize_page_numbers(story: StoryDocument) -> StoryDocument:
    """
    Pages without numbers are numbered by position. Numbered pages must be
    exactly 1..N; a gap or duplicate would leave a unit nobody renders.
    """
    numbers = [page.page_number for page in story.pages]
    if all(n is None for n in numbers):
        for index, page in enumerate(story.pages, start=1):
            page.page_number = index
        return story
    if any(n is None for n in numbers):
        raise StoryParseError("Story pages are only partially numbered.")
    expected = list(range(1, len(numbers) + 1))
    if sorted(numbers) != expected:
        raise StoryParseError(
            f"Story pages must be numbered 1..{len(numbers)} without gaps, got {sorted(numbers)}."
        )
    story.pages.sort(key=lambda page: page.page_number)
    return story
