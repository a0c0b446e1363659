from pydantic import AliasChoices, BaseModel, Field, field_validator
from typing import List, Optional

from storyvault.services.crawl.base import ExtractionSkip, StoryRecord, resolve_story_url


class StoryIn(BaseModel):
    """A story pushed through POST /save-stories.

    Accepts the legacy ``link`` key as an alias for ``url``. The URL is
    canonicalized the same way the crawler does it, so both paths share one row.
    """
    title: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1, validation_alias=AliasChoices("url", "link"))
    categories: List[str] = Field(default_factory=list, description="Category tags, any case/order")
    synopsis: Optional[str] = Field(None, description="Omit to keep the stored synopsis")

    @field_validator("title")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("url")
    @classmethod
    def _canonical_url(cls, v: str) -> str:
        try:
            return resolve_story_url(v)
        except ExtractionSkip as exc:
            raise ValueError(f"not an absolute http(s) URL: {exc}") from exc

    def to_record(self) -> StoryRecord:
        return StoryRecord(title=self.title, url=self.url, tags=tuple(self.categories), synopsis=self.synopsis)


class StoryOut(BaseModel):
    title: Optional[str]
    url: str
    categories: List[str]


class SynopsisOut(BaseModel):
    url: str
    synopsis: str


class SaveStoriesOut(BaseModel):
    success: bool
    count: int
    inserted: int
    updated: int
    unchanged: int
