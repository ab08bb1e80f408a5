"""Terminal rendering of the session state.

Every update replaces the display with two Rich tables: the current
stories and the current comments grouped by story. Inside a Live context
the tables are swapped in place; otherwise the console is cleared and the
tables reprinted.
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.live import Live
from rich.table import Table
from rich.text import Text

from hnsynth.session import SessionState

# ── Colors ────────────────────────────────────────────────────────

COLORS = {
    "orange": "#ff6600",
    "dim": "#828282",
    "show": "#00aa66",
    "ask": "#3388ff",
    "jobs": "#d4a843",
    "story": "default",
}

_PENDING = Text("…", style=COLORS["dim"])


def _cell(value: object) -> Text | str:
    """Render a possibly-missing partial field."""
    if value is None:
        return _PENDING
    return str(value)


def comment_depths(comments: list) -> dict[str, int]:
    """Map comment id to nesting depth following ``reply_to_id`` links.

    Replies to unknown ids and reply cycles are treated as top level.
    """
    parents = {
        c.id: c.reply_to_id
        for c in comments
        if getattr(c, "id", None) is not None
    }
    depths: dict[str, int] = {}
    for comment_id in parents:
        depth = 0
        seen = {comment_id}
        parent = parents[comment_id]
        while parent in parents and parent not in seen:
            seen.add(parent)
            depth += 1
            parent = parents[parent]
        depths[comment_id] = depth
    return depths


def build_stories_table(state: SessionState) -> Table:
    table = Table(
        title="Stories",
        title_style=f"bold {COLORS['orange']}",
        header_style="bold",
        expand=True,
    )
    table.add_column("id", justify="right", style=COLORS["dim"])
    table.add_column("type")
    table.add_column("title", ratio=3)
    table.add_column("domain", style=COLORS["dim"])
    table.add_column("username")
    table.add_column("points", justify="right")

    for story in state.stories:
        story_type = getattr(story, "type", None)
        type_cell = (
            Text(str(story_type), style=COLORS.get(str(story_type), "default"))
            if story_type is not None
            else _PENDING
        )
        table.add_row(
            _cell(story.id),
            type_cell,
            _cell(story.title),
            _cell(story.domain),
            _cell(story.username),
            _cell(story.points),
        )
    return table


def build_comments_table(state: SessionState, max_per_story: int | None = None) -> Table:
    """Build the comments table, optionally keeping the newest N per story."""
    table = Table(
        title="Comments",
        title_style=f"bold {COLORS['orange']}",
        header_style="bold",
        expand=True,
    )
    table.add_column("story", justify="right", style=COLORS["dim"])
    table.add_column("id", justify="right")
    table.add_column("reply to", justify="right", style=COLORS["dim"])
    table.add_column("username")
    table.add_column("comment", ratio=3, overflow="ellipsis", no_wrap=True)

    for story_index in sorted(state.comments):
        comments = state.comments[story_index]
        depths = comment_depths(comments)
        if max_per_story is None:
            shown = comments
        elif max_per_story <= 0:
            shown = []
        else:
            shown = comments[-max_per_story:]
        for comment in shown:
            depth = depths.get(comment.id, 0) if comment.id is not None else 0
            username = Text("  " * depth + ("↳ " if depth else ""))
            username.append(str(comment.username) if comment.username is not None else "…")
            table.add_row(
                str(story_index),
                _cell(comment.id),
                comment.reply_to_id or "",
                username,
                _cell(comment.comment),
            )
    return table


class SessionDisplay:
    """Render callback for the session runner.

    Use as a context manager to render into a Rich Live region; called
    outside one it clears the console and prints the tables.
    """

    def __init__(
        self,
        console: Console | None = None,
        *,
        max_comments_per_story: int | None = None,
    ) -> None:
        self._console = console or Console()
        self._max_comments = max_comments_per_story
        self._live: Live | None = None
        self.renders = 0

    def build(self, state: SessionState) -> Group:
        return Group(
            build_stories_table(state),
            build_comments_table(state, self._max_comments),
        )

    def __call__(self, state: SessionState) -> None:
        self.renders += 1
        renderable = self.build(state)
        if self._live is not None:
            self._live.update(renderable)
            return
        self._console.clear()
        self._console.print(renderable)

    def start(self) -> Live:
        """Start the Rich Live display. Returns the Live context manager."""
        self._live = Live(
            console=self._console,
            refresh_per_second=8,
            transient=False,
        )
        self._live.start()
        return self._live

    def stop(self) -> None:
        """Stop the Rich Live display."""
        if self._live:
            self._live.stop()
            self._live = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *_exc):
        self.stop()
