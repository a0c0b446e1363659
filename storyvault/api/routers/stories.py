import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from storyvault.api.security import require_api_key
from storyvault.models.story import SaveStoriesOut, StoryIn, StoryOut, SynopsisOut
from storyvault.services import story_service
from storyvault.services.crawl.base import StoreWriteError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stories"], dependencies=[Depends(require_api_key)])


@router.post("/save-stories", response_model=SaveStoriesOut)
def api_save_stories(stories: List[StoryIn]):
    if not stories:
        raise HTTPException(status_code=400, detail="No story data provided")
    try:
        result = story_service.save_stories([s.to_record() for s in stories])
    except StoreWriteError as exc:
        logger.error("Failed to save %d stories: %s", len(stories), exc)
        raise HTTPException(status_code=500, detail="Failed to save stories")
    return {"success": True, "count": len(stories), **result.to_dict()}


@router.get("/search", response_model=List[StoryOut])
def api_search(
    query: Optional[str] = None,
    categories: Optional[str] = None,
    excluded_categories: Optional[str] = Query(None, alias="excludedCategories"),
):
    return story_service.search_stories(
        query,
        story_service.parse_tag_param(categories),
        story_service.parse_tag_param(excluded_categories),
    )


@router.get("/synopsis", response_model=SynopsisOut)
def api_synopsis(url: Optional[str] = None):
    if not url:
        raise HTTPException(status_code=400, detail="Missing URL parameter")
    synopsis = story_service.get_synopsis(url)
    if synopsis is None:
        raise HTTPException(status_code=404, detail="Synopsis not found")
    return {"url": url, "synopsis": synopsis}
