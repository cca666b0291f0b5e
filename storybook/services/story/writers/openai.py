"""
OpenAI chat completion writer. The system prompt pins the output to one ```json block
so the same parser serves both writers.
"""
from openai import OpenAI, OpenAIError

from storybook.services.story.base import StorySynthesisError, StoryWriter

STORY_SYSTEM_PROMPT = (
    "You write short illustrated children's storybooks.\n"
    "Given a story idea, write a story of 5 to 8 pages.\n"
    "Answer with exactly one fenced block that starts with ```json and ends with ```, no other text.\n"
    "The JSON object has the keys:\n"
    "  title - the book title.\n"
    "  cover_image_prompt - a detailed illustration prompt for the cover.\n"
    "  pages - a list of objects with page_number (1, 2, 3, ...), text (2-4 sentences) "
    "and image_prompt (a detailed illustration prompt for that page, consistent characters and style).\n"
    "Example:\n"
    '```json\n{"title": "...", "cover_image_prompt": "...", '
    '"pages": [{"page_number": 1, "text": "...", "image_prompt": "..."}]}\n```'
)


class OpenAIStoryWriter(StoryWriter):
    name = "openai"

    def __init__(self, config: dict):
        super().__init__(config)
        self.api_key = config.get("api_key")
        self.model = config.get("model", "gpt-4o-mini")
        self.timeout = config.get("timeout", 180.0)

    def is_available(self) -> bool:
        return bool(self.api_key)

    def write(self, story_idea: str) -> str:
        if not self.is_available():
            raise StorySynthesisError("OpenAI API Key is not configured.")

        client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": STORY_SYSTEM_PROMPT},
                    {"role": "user", "content": story_idea},
                ],
            )
        except OpenAIError as e:
            raise StorySynthesisError(f"OpenAI story request failed: {e}") from e

        if not response.choices:
            raise StorySynthesisError("OpenAI returned no choices.")
        return (response.choices[0].message.content or "").strip()
