"""
Text synthesis: story writers (workflow API, OpenAI) and the structured-output parser.
"""
from .base import StoryParseError, StorySynthesisError, StoryWriter
from .client import StoryClient
from .factory import StoryWriterFactory
from .parser import extract_json_block, parse_story_output

__all__ = [
    "StoryParseError",
    "StorySynthesisError",
    "StoryWriter",
    "StoryClient",
    "StoryWriterFactory",
    "extract_json_block",
    "parse_story_output",
]
