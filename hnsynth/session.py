"""Shared session state for one generation run.

Holds the latest known-good stories list and, per story position, the
latest comment list. There is no lock: every slot has exactly one writer
(the stories stream owns ``stories``, the comment fetch launched for
story ``i`` owns ``comments[i]``), and a write replaces the slot's whole
value. ``write`` enforces that ownership, so a second writer on a slot is
a programming error rather than a silent race.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel

STORIES_SLOT: Literal["stories"] = "stories"

# Either the stories list or one story's comment list (keyed by position)
Slot = Literal["stories"] | int


def slot_label(slot: Slot) -> str:
    """Human-readable slot name for logs and task names."""
    return STORIES_SLOT if slot == STORIES_SLOT else f"comments[{slot}]"


@dataclass
class SessionState:
    """Mutable record shared by the stories stream and comment fetches.

    ``stories`` and each ``comments`` entry hold partial records while
    their stream is running; fields the model has not written yet are None.
    """

    stories: list[BaseModel] = field(default_factory=list)
    comments: dict[int, list[BaseModel]] = field(default_factory=dict)
    _owners: dict[Slot, str] = field(default_factory=dict, repr=False)

    def write(self, slot: Slot, value: Sequence[BaseModel], *, owner: str) -> None:
        """Replace ``slot`` with ``value`` in full.

        The first writer of a slot becomes its owner.

        Raises:
            RuntimeError: If ``owner`` is not the slot's owner.
        """
        current = self._owners.setdefault(slot, owner)
        if current != owner:
            raise RuntimeError(
                f"{slot_label(slot)} is owned by {current!r}, refusing write from {owner!r}"
            )
        if slot == STORIES_SLOT:
            self.stories = list(value)
        else:
            self.comments[slot] = list(value)

    def owner_of(self, slot: Slot) -> str | None:
        return self._owners.get(slot)

    @property
    def comment_count(self) -> int:
        return sum(len(comments) for comments in self.comments.values())
