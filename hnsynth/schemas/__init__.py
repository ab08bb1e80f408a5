"""Pydantic schemas for content records and generator settings."""

from hnsynth.schemas.config import CompletionMode, GeneratorConfig
from hnsynth.schemas.content import (
    Comment,
    CommentTree,
    Story,
    StoryList,
    StoryType,
)

__all__ = [
    "Comment",
    "CommentTree",
    "CompletionMode",
    "GeneratorConfig",
    "Story",
    "StoryList",
    "StoryType",
]
