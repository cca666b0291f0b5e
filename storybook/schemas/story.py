from pydantic import BaseModel, ConfigDict, Field


class StoryPage(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    page_number: int | None = None
    text: str = Field(min_length=1)
    image_prompt: str = Field(min_length=1)


class StoryDocument(BaseModel):
    """Structured story returned by the story writer (inside a ```json fence)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1)
    cover_image_prompt: str = Field(min_length=1)
    pages: list[StoryPage] = Field(min_length=1)
