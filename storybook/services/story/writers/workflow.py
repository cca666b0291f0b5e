"""
Hosted story workflow: POST {"story": idea}, reply {"result": "<text with ```json block>"}.
"""
import httpx

from storybook.services.story.base import StorySynthesisError, StoryWriter


class WorkflowStoryWriter(StoryWriter):
    name = "workflow"

    def __init__(self, config: dict):
        super().__init__(config)
        self.api_url = config.get("api_url")
        self.api_key = config.get("api_key")
        self.timeout = config.get("timeout", 180.0)

    def is_available(self) -> bool:
        return bool(self.api_key and self.api_url)

    def write(self, story_idea: str) -> str:
        if not self.is_available():
            raise StorySynthesisError("Text Generation API Key is not configured.")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.api_url, headers=headers, json={"story": story_idea})
        except httpx.HTTPError as e:
            raise StorySynthesisError(f"Text Generation API request failed: {e}") from e

        if response.is_error:
            raise StorySynthesisError(
                f"Text Generation API request failed: {response.status_code} {response.reason_phrase}. "
                f"Details: {response.text[:500]}",
                detail={"http_status": response.status_code},
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise StorySynthesisError("Text Generation API returned a non-JSON body.") from e

        result = payload.get("result") if isinstance(payload, dict) else None
        if not isinstance(result, str):
            raise StorySynthesisError(
                "Invalid format received from text generation API.",
                detail={"keys": sorted(payload) if isinstance(payload, dict) else None},
            )
        return result
