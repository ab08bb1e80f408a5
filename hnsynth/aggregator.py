"""Incremental aggregation of a structured stream into session state.

Each streamed element is a cumulative snapshot, so a slot is overwritten
in full on every update (never merged field by field) and the display is
re-rendered straight after.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable

from pydantic import BaseModel

from hnsynth.errors import BackendUnavailable, SchemaValidationFailure
from hnsynth.session import STORIES_SLOT, SessionState, Slot, slot_label

logger = logging.getLogger(__name__)

Render = Callable[[SessionState], None]


def slot_payload(slot: Slot, result: BaseModel) -> list[BaseModel]:
    """Extract the list a streamed result contributes to ``slot``.

    Stories get their ``id`` from their position in the list.
    """
    if slot == STORIES_SLOT:
        stories = getattr(result, "stories", None) or []
        return [
            story.model_copy(update={"id": str(index)})
            for index, story in enumerate(stories)
        ]
    return list(getattr(result, "comments", None) or [])


async def aggregate(
    stream: AsyncIterator[BaseModel],
    slot: Slot,
    state: SessionState,
    render: Render,
    *,
    owner: str | None = None,
    on_update: Render | None = None,
) -> bool:
    """Consume ``stream`` into ``slot``, rendering after every update.

    Args:
        stream: Sequence produced by StructuredProvider.stream_structured().
        slot: The session slot this stream exclusively writes.
        state: Shared session state.
        render: Called with the state after each write.
        owner: Writer identity for the slot (defaults to the slot label).
        on_update: Optional hook run after each render.

    Returns:
        True when the stream ran to completion, False when it failed.
        On failure the last stored value is kept as-is.
    """
    owner = owner or slot_label(slot)
    updates = 0
    try:
        async for result in stream:
            state.write(slot, slot_payload(slot, result), owner=owner)
            updates += 1
            render(state)
            if on_update is not None:
                on_update(state)
    except SchemaValidationFailure as e:
        logger.error(
            "%s stream aborted after %d updates: invalid output (%s)",
            slot_label(slot), updates, e,
        )
        return False
    except BackendUnavailable as e:
        logger.error(
            "%s stream aborted after %d updates: backend unavailable (%s)",
            slot_label(slot), updates, e,
        )
        return False

    logger.info("%s stream complete after %d updates", slot_label(slot), updates)
    return True
