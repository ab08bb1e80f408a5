"""Dependent comment-tree fetches launched as stories appear.

After each stories update, every story position that has not been seen
before and whose record is complete gets exactly one comment fetch.
Positions are tracked in a seen-set, so an update that adds several
stories at once triggers all of them. Fetches are fire-and-forget asyncio
tasks; the trigger only keeps references so the session can wait for
them before exiting.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from hnsynth.providers.partial import is_complete
from hnsynth.schemas.content import Story
from hnsynth.session import SessionState

logger = logging.getLogger(__name__)

Launch = Callable[[int, Story], Awaitable[bool]]


class CommentFetchTrigger:
    """Launch one comment fetch per newly completed story."""

    def __init__(self, launch: Launch) -> None:
        self._launch = launch
        self._seen: set[int] = set()
        self._order: list[int] = []
        self._tasks: list[asyncio.Task[bool]] = []

    @property
    def launched(self) -> list[int]:
        """Story positions triggered so far, in launch order."""
        return list(self._order)

    @property
    def tasks(self) -> list[asyncio.Task[bool]]:
        return list(self._tasks)

    def on_stories(self, state: SessionState) -> None:
        """Trigger fetches for stories that are new and complete.

        Must be called from inside the running event loop.
        """
        for index, record in enumerate(state.stories):
            if index in self._seen:
                continue
            story = is_complete(record, Story)
            if story is None:
                continue
            self._seen.add(index)
            self._order.append(index)
            logger.info("Story %d complete, fetching comments: %s", index, story.title)
            task = asyncio.create_task(
                self._launch(index, story), name=f"comments-{index}"
            )
            self._tasks.append(task)

    async def wait(self) -> list[bool]:
        """Wait for every launched fetch, including ones launched meanwhile.

        Returns:
            One completion flag per fetch, in launch order. A fetch that
            raised an unexpected exception counts as failed.
        """
        done = 0
        results: list[bool] = []
        while done < len(self._tasks):
            pending = self._tasks[done:]
            done = len(self._tasks)
            outcomes = await asyncio.gather(*pending, return_exceptions=True)
            for task, outcome in zip(pending, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(
                        "%s crashed: %r", task.get_name(), outcome,
                        exc_info=outcome,
                    )
                    results.append(False)
                else:
                    results.append(bool(outcome))
        return results
