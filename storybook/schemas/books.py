from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SubmitBookIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # optional so a missing idea is a 400 from the route, not a 422
    story_idea: str | None = None


class RenderUnitIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    book_id: str | None = None
    page_number: int | None = None
    image_prompt: str | None = None


class BookPageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    page_number: int
    text: str | None
    image_prompt: str | None
    generation_status: str
    image_url: str | None
    last_error: str | None = None


class BookOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    short_description: str | None
    original_prompt: str | None
    status: str
    credits_cost: int
    error_message: str | None
    cover_status: str
    cover_image_url: str | None
    share_id: str | None = None
    created_at: datetime
    updated_at: datetime


class BookWithPagesOut(BookOut):
    pages: list[BookPageOut] = []


class PageStatusOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page_number: int = Field(alias="pageNumber")
    status: str


class BookProgressOut(BaseModel):
    """Status projection; keys are camelCase for the dashboard."""
    model_config = ConfigDict(populate_by_name=True)

    overall_status: str = Field(alias="overallStatus")
    message: str
    progress_percentage: int = Field(alias="progressPercentage")
    current_page: int | None = Field(default=None, alias="currentPage")
    total_pages: int = Field(alias="totalPages")
    cover_status: str = Field(alias="coverStatus")
    page_statuses: list[PageStatusOut] = Field(default_factory=list, alias="pageStatuses")
    error: str | None = None


class ShareLinkOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    share_id: str = Field(alias="shareId")
    share_url: str = Field(alias="shareUrl")


class SharedPageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    page_number: int
    text: str | None
    image_url: str | None


class SharedBookOut(BaseModel):
    """Public view of a completed book: no prompt, cost or error details."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    short_description: str | None
    cover_image_url: str | None
    created_at: datetime
    pages: list[SharedPageOut] = []


class BookDiagnosisOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    book_exists: bool = Field(default=True, alias="bookExists")
    book_status: str = Field(alias="bookStatus")
    has_cover_image: bool = Field(alias="hasCoverImage")
    page_count: int = Field(alias="pageCount")
    pages_without_images: int = Field(alias="pagesWithoutImages")
    recommendation: str
