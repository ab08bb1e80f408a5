"""Session runner: stories stream plus dependent comment-tree streams.

Control flow:
  1. Request the stories list and aggregate it into the stories slot.
  2. After each stories update, the trigger launches a comment-tree
     request for every newly completed story.
  3. Each comment stream is aggregated into its own slot concurrently.
  4. Once the stories stream ends, wait for every launched comment stream.

A failing stream only stops itself; nothing here escalates it.
"""

from __future__ import annotations

import logging

from hnsynth.aggregator import Render, aggregate
from hnsynth.prompts import render_prompt
from hnsynth.providers.base import StructuredProvider
from hnsynth.schemas.config import GeneratorConfig
from hnsynth.schemas.content import CommentTree, Story, StoryList
from hnsynth.session import STORIES_SLOT, SessionState
from hnsynth.trigger import CommentFetchTrigger

logger = logging.getLogger(__name__)


def stories_prompt(config: GeneratorConfig) -> str:
    return render_prompt("stories", count=config.story_count)


def comments_prompt(story: Story, config: GeneratorConfig) -> str:
    return render_prompt("comments", title=story.title, count=config.comment_count)


async def run_session(
    provider: StructuredProvider,
    render: Render,
    config: GeneratorConfig | None = None,
    state: SessionState | None = None,
) -> SessionState:
    """Generate stories and their comment trees, rendering as they stream.

    Args:
        provider: Backend used for every structured request.
        render: Called with the session state after every slot update.
        config: Generator settings (defaults to the provider's config).
        state: Optional pre-created state to fill (a fresh one otherwise).

    Returns:
        The session state after all streams have completed or failed.
    """
    config = config or provider.config
    state = state if state is not None else SessionState()

    async def fetch_comments(index: int, story: Story) -> bool:
        stream = provider.stream_structured(comments_prompt(story, config), CommentTree)
        return await aggregate(stream, index, state, render, owner=f"comments-{index}")

    trigger = CommentFetchTrigger(fetch_comments)

    logger.info("Requesting %d stories from %s", config.story_count, provider.model_id)
    stream = provider.stream_structured(stories_prompt(config), StoryList)
    stories_ok = await aggregate(
        stream, STORIES_SLOT, state, render, on_update=trigger.on_stories
    )
    trigger.on_stories(state)

    results = await trigger.wait()
    logger.info(
        "Session finished: stories %s, %d/%d comment trees complete",
        "complete" if stories_ok else "incomplete",
        sum(results), len(results),
    )
    return state
