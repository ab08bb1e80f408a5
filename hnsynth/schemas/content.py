"""Content schemas for fabricated Hacker News stories and comments.

Field descriptions are sent to the completion backend as part of the JSON
schema and steer what the model writes into each field.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.json_schema import SkipJsonSchema


class StoryType(StrEnum):
    """Listing type tag as shown on the HN front page."""

    SHOW = "show"
    JOBS = "jobs"
    ASK = "ask"
    STORY = "story"


class Story(BaseModel):
    """A single fabricated front-page listing.

    ``id`` is never requested from the model. It is assigned from the
    story's position in the streamed list before the story is stored.
    """

    title: str = Field(
        description=(
            "The title of the HN story. If it's a hiring story, it should be "
            "in the classic HN format"
        )
    )
    username: str = Field(description="The username of the author")
    domain: str = Field(description="The domain of the story")
    type: StoryType = Field(description="The type of story")
    points: int
    id: SkipJsonSchema[str | None] = None


class StoryList(BaseModel):
    """A list of Hacker News front-page stories."""

    stories: list[Story]


class Comment(BaseModel):
    """A single fabricated reply inside a story's comment tree."""

    # Models regularly emit numeric ids as JSON numbers
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str = Field(description="The numeric comment id. It should be numeric")
    reply_to_id: str | None = Field(
        default=None,
        description="The numeric id of the comment id this replies to",
    )
    username: str = Field(description="The username of the author")
    comment: str = Field(description="The comment text")


class CommentTree(BaseModel):
    """A Hacker News comment thread, replies included."""

    comments: list[Comment]
