"""Tests for hnsynth.prompts — Jinja2 prompt templates."""

import pytest

from hnsynth.prompts import render_prompt


class TestRenderPrompt:
    def test_system_prompt(self):
        assert render_prompt("system") == (
            "You are a helpful assistant that writes creative HN (Hacker News) story titles"
        )

    def test_stories_prompt_keeps_literal_braces(self):
        prompt = render_prompt("stories", count=5)
        assert "give me 5 hacker news (HN) stories." in prompt
        assert "'{Company} (YC {Season}) is hiring {Role}'" in prompt
        assert 'NEVER include a prefix like "Prefix:"' in prompt

    def test_comments_prompt(self):
        prompt = render_prompt("comments", count=100, title="Rust in the kernel")
        assert prompt.startswith("Generate a hacker news comment tree with 100+ comments")
        assert "for the topic: Rust in the kernel." in prompt

    def test_missing_template(self):
        with pytest.raises(FileNotFoundError, match="not found"):
            render_prompt("nonexistent")
