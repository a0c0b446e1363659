import pytest
from pydantic import ValidationError

from storyvault.models.story import StoryIn


def test_story_in_accepts_link_alias():
    s = StoryIn(title="T", link="https://s/1", categories=["B", "a"])
    assert s.url == "https://s/1"
    rec = s.to_record()
    assert rec.tags == ("a", "b")
    assert rec.synopsis is None


def test_story_in_rejects_blank_title():
    with pytest.raises(ValidationError):
        StoryIn(title="  ", url="https://s/1")


def test_story_in_canonicalizes_url():
    s = StoryIn(title="T", url=" HTTPS://Stories.Example.com/stories/a?p=1#frag ")
    assert s.url == "https://stories.example.com/stories/a?p=1"


def test_story_in_rejects_relative_url():
    with pytest.raises(ValidationError):
        StoryIn(title="T", url="/stories/a")
