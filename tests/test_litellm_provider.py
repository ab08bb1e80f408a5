"""Tests for hnsynth.providers.litellm_provider — streaming LiteLLM adapter."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import litellm
import pytest

from hnsynth.errors import BackendUnavailable, SchemaValidationFailure
from hnsynth.providers.litellm_provider import TOOL_NAME, LiteLLMProvider, build_tool
from hnsynth.schemas.config import CompletionMode, GeneratorConfig
from hnsynth.schemas.content import CommentTree, Story, StoryList

# Shorthand for the mock targets
_ACOMP = "hnsynth.providers.litellm_provider.litellm.acompletion"
_SLEEP = "hnsynth.providers.litellm_provider.asyncio.sleep"

_STORY_A = {
    "title": "Show HN: A tiny Lisp in 200 lines of Zig",
    "username": "lispfan",
    "domain": "github.com",
    "type": "show",
    "points": 142,
}
_STORY_B = {
    "title": "The hidden cost of microservices",
    "username": "grumpyops",
    "domain": "blog.example.com",
    "type": "story",
    "points": 87,
}


# ── Helpers ───────────────────────────────────────────────────


def _make_config(**overrides) -> GeneratorConfig:
    defaults = {"model": "gpt-4", "max_retries": 3, "timeout": 30}
    defaults.update(overrides)
    return GeneratorConfig(**defaults)


def _tool_chunk(arguments: str) -> SimpleNamespace:
    """Build a stream chunk carrying tool-call argument text."""
    call = SimpleNamespace(function=SimpleNamespace(name=None, arguments=arguments))
    delta = SimpleNamespace(content=None, tool_calls=[call])
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta)])


def _content_chunk(content: str) -> SimpleNamespace:
    delta = SimpleNamespace(content=content, tool_calls=None)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta)])


async def _stream(chunks):
    for chunk in chunks:
        yield chunk


def _streaming(*chunk_lists):
    """AsyncMock for acompletion returning a fresh stream per call."""
    streams = iter(chunk_lists)
    return AsyncMock(side_effect=lambda **kwargs: _stream(next(streams)))


def _growing_story_chunks(second_type: str = "story") -> list[SimpleNamespace]:
    second = {**_STORY_B, "type": second_type}
    return [
        _tool_chunk('{"stories": ['),
        _tool_chunk(json.dumps(_STORY_A)),
        _tool_chunk(", " + json.dumps(second)),
        _tool_chunk("]}"),
    ]


async def _collect(provider, prompt="give me stories", schema=StoryList):
    return [result async for result in provider.stream_structured(prompt, schema)]


@pytest.fixture
def provider():
    with patch.dict("os.environ", {"OPENAI_API_KEY": "sk-test", "OPENAI_ORG_ID": ""}):
        return LiteLLMProvider(_make_config())


# ── Request construction ──────────────────────────────────────


class TestCompletionKwargs:
    def test_tools_mode_forces_single_function(self, provider):
        kwargs = provider._build_completion_kwargs("give me stories", StoryList)
        assert kwargs["stream"] is True
        assert kwargs["model"] == "gpt-4"
        assert kwargs["tool_choice"] == {
            "type": "function",
            "function": {"name": TOOL_NAME},
        }
        assert len(kwargs["tools"]) == 1
        assert "response_format" not in kwargs

    def test_messages_carry_system_and_prompt(self, provider):
        kwargs = provider._build_completion_kwargs("give me stories", StoryList)
        system, user = kwargs["messages"]
        assert system["role"] == "system"
        assert "creative HN (Hacker News) story titles" in system["content"]
        assert user == {"role": "user", "content": "give me stories"}

    def test_api_key_passed_when_set(self, provider):
        kwargs = provider._build_completion_kwargs("p", StoryList)
        assert kwargs["api_key"] == "sk-test"
        assert "organization" not in kwargs

    def test_missing_credentials_pass_through_unset(self):
        with patch.dict("os.environ", {"OPENAI_API_KEY": "", "OPENAI_ORG_ID": ""}):
            provider = LiteLLMProvider(_make_config())
        kwargs = provider._build_completion_kwargs("p", StoryList)
        assert "api_key" not in kwargs
        assert "organization" not in kwargs

    def test_organization_passed_when_set(self):
        env = {"OPENAI_API_KEY": "sk-test", "OPENAI_ORG_ID": "org-123"}
        with patch.dict("os.environ", env):
            provider = LiteLLMProvider(_make_config())
        kwargs = provider._build_completion_kwargs("p", StoryList)
        assert kwargs["organization"] == "org-123"

    def test_json_mode_uses_response_format(self):
        provider = LiteLLMProvider(_make_config(mode=CompletionMode.JSON))
        kwargs = provider._build_completion_kwargs("p", CommentTree)
        assert kwargs["response_format"] is CommentTree
        assert "tools" not in kwargs

    def test_temperature_only_when_configured(self, provider):
        assert "temperature" not in provider._build_completion_kwargs("p", StoryList)
        warm = LiteLLMProvider(_make_config(temperature=0.9))
        assert warm._build_completion_kwargs("p", StoryList)["temperature"] == 0.9


class TestBuildTool:
    def test_parameters_are_schema(self):
        tool = build_tool(StoryList)
        assert tool["type"] == "function"
        assert tool["function"]["name"] == TOOL_NAME
        assert tool["function"]["parameters"] == StoryList.model_json_schema()

    def test_story_id_not_requested(self):
        params = build_tool(StoryList)["function"]["parameters"]
        story_props = params["$defs"]["Story"]["properties"]
        assert "id" not in story_props
        assert story_props["username"]["description"] == "The username of the author"


# ── Streaming ─────────────────────────────────────────────────


class TestStreamStructured:
    @pytest.mark.asyncio
    async def test_yields_growing_partial_results(self, provider):
        with patch(_ACOMP, _streaming(_growing_story_chunks())):
            results = await _collect(provider)

        counts = [len(r.stories or []) for r in results]
        assert counts == sorted(counts)
        assert counts[-2:] == [1, 2]
        assert results[-1].stories[0].title == _STORY_A["title"]
        assert results[-1].stories[1].points == 87

    @pytest.mark.asyncio
    async def test_prefix_unchanged_between_updates(self, provider):
        with patch(_ACOMP, _streaming(_growing_story_chunks())):
            results = await _collect(provider)

        for earlier, later in zip(results, results[1:]):
            before = [s.model_dump() for s in earlier.stories or []]
            after = [s.model_dump() for s in later.stories or []]
            assert after[: len(before)] == before

    @pytest.mark.asyncio
    async def test_identical_snapshots_not_repeated(self, provider):
        chunks = _growing_story_chunks() + [_tool_chunk("   ")]
        with patch(_ACOMP, _streaming(chunks)):
            results = await _collect(provider)

        dumps = [r.model_dump() for r in results]
        assert all(a != b for a, b in zip(dumps, dumps[1:]))

    @pytest.mark.asyncio
    async def test_number_split_across_deltas(self, provider):
        story = json.dumps(_STORY_A)
        assert story.endswith('"points": 142}')
        chunks = [
            _tool_chunk('{"stories": [' + story[:-2]),
            _tool_chunk(story[-2:]),
            _tool_chunk("]}"),
        ]
        with patch(_ACOMP, _streaming(chunks)):
            results = await _collect(provider)

        points = [s.points for r in results for s in r.stories or []]
        assert set(points) <= {None, 142}
        assert points[-1] == 142

    @pytest.mark.asyncio
    async def test_json_mode_reads_content(self):
        provider = LiteLLMProvider(_make_config(mode=CompletionMode.JSON))
        body = json.dumps({"comments": [
            {"id": "1", "username": "a", "comment": "First!"},
            {"id": "2", "reply_to_id": "1", "username": "b", "comment": "Nope."},
        ]})
        chunks = [_content_chunk(body[:40]), _content_chunk(body[40:])]
        with patch(_ACOMP, _streaming(chunks)):
            results = await _collect(provider, "comments please", CommentTree)

        final = results[-1]
        assert [c.id for c in final.comments] == ["1", "2"]
        assert final.comments[1].reply_to_id == "1"

    @pytest.mark.asyncio
    async def test_numeric_comment_ids_coerced(self, provider):
        body = '{"comments": [{"id": 7, "reply_to_id": 3, "username": "a", "comment": "hi"}]}'
        with patch(_ACOMP, _streaming([_tool_chunk(body)])):
            results = await _collect(provider, "c", CommentTree)

        assert results[-1].comments[0].id == "7"
        assert results[-1].comments[0].reply_to_id == "3"

    @pytest.mark.asyncio
    async def test_chunks_without_choices_ignored(self, provider):
        chunks = [SimpleNamespace(choices=[]), *_growing_story_chunks()]
        with patch(_ACOMP, _streaming(chunks)):
            results = await _collect(provider)
        assert len(results[-1].stories) == 2

    @pytest.mark.asyncio
    async def test_empty_prompt_rejected(self, provider):
        with pytest.raises(ValueError, match="non-empty"):
            await _collect(provider, prompt="   ")

    @pytest.mark.asyncio
    async def test_each_iteration_issues_new_call(self, provider):
        mock_acomp = _streaming(_growing_story_chunks(), _growing_story_chunks())
        with patch(_ACOMP, mock_acomp):
            await _collect(provider)
            await _collect(provider)
        assert mock_acomp.call_count == 2


# ── Schema failures ───────────────────────────────────────────


class TestSchemaFailures:
    @pytest.mark.asyncio
    async def test_bad_enum_after_delivery_is_terminal(self, provider):
        mock_acomp = _streaming(_growing_story_chunks(second_type="blogpost"))
        received = []
        with patch(_ACOMP, mock_acomp), pytest.raises(SchemaValidationFailure):
            async for result in provider.stream_structured("p", StoryList):
                received.append(result)

        assert len(received[-1].stories) == 1
        assert mock_acomp.call_count == 1

    @pytest.mark.asyncio
    async def test_failure_before_delivery_is_retried(self, provider):
        bad = json.dumps({"stories": [{**_STORY_A, "type": "blogpost"}]})
        good = json.dumps({"stories": [_STORY_A]})
        mock_acomp = _streaming([_tool_chunk(bad)], [_tool_chunk(good)])
        with patch(_ACOMP, mock_acomp), patch(_SLEEP, new_callable=AsyncMock):
            results = await _collect(provider)

        assert mock_acomp.call_count == 2
        assert results[-1].stories[0].type == "show"

    @pytest.mark.asyncio
    async def test_persistent_failure_exhausts_retries(self, provider):
        bad = json.dumps({"stories": [{**_STORY_A, "type": "blogpost"}]})
        mock_acomp = _streaming(*([_tool_chunk(bad)] for _ in range(3)))
        with (
            patch(_ACOMP, mock_acomp),
            patch(_SLEEP, new_callable=AsyncMock),
            pytest.raises(SchemaValidationFailure, match="after 3 attempts"),
        ):
            await _collect(provider)

        assert mock_acomp.call_count == 3

    @pytest.mark.asyncio
    async def test_incomplete_final_output_fails(self, provider):
        body = '{"stories": [{"title": "Only a title"}]}'
        with (
            patch(_ACOMP, _streaming([_tool_chunk(body)])),
            pytest.raises(SchemaValidationFailure, match="Final output"),
        ):
            await _collect(provider)

    @pytest.mark.asyncio
    async def test_final_result_is_strict_schema(self, provider):
        with patch(_ACOMP, _streaming(_growing_story_chunks())):
            results = await _collect(provider)

        StoryList.model_validate(results[-1].model_dump())
        for story in results[-1].stories:
            Story.model_validate(story.model_dump())


# ── Backend failures ──────────────────────────────────────────


class TestBackendFailures:
    @pytest.mark.asyncio
    async def test_retries_on_rate_limit(self, provider):
        stream = _stream(_growing_story_chunks())
        mock_acomp = AsyncMock(side_effect=[
            litellm.RateLimitError(
                message="rate limited", model="gpt-4", llm_provider="openai",
            ),
            stream,
        ])
        with patch(_ACOMP, mock_acomp), patch(_SLEEP, new_callable=AsyncMock) as sleep:
            results = await _collect(provider)

        assert mock_acomp.call_count == 2
        sleep.assert_awaited_once_with(1.0)
        assert len(results[-1].stories) == 2

    @pytest.mark.asyncio
    async def test_auth_error_not_retried(self, provider):
        mock_acomp = AsyncMock(
            side_effect=litellm.AuthenticationError(
                message="bad key", model="gpt-4", llm_provider="openai",
            ),
        )
        with patch(_ACOMP, mock_acomp), pytest.raises(
            BackendUnavailable, match="Authentication failed",
        ):
            await _collect(provider)

        assert mock_acomp.call_count == 1

    @pytest.mark.asyncio
    async def test_bad_request_not_retried(self, provider):
        mock_acomp = AsyncMock(
            side_effect=litellm.BadRequestError(
                message="invalid params", model="gpt-4", llm_provider="openai",
            ),
        )
        with patch(_ACOMP, mock_acomp), pytest.raises(BackendUnavailable, match="Bad request"):
            await _collect(provider)

        assert mock_acomp.call_count == 1

    @pytest.mark.asyncio
    async def test_all_retries_exhausted(self, provider):
        mock_acomp = AsyncMock(side_effect=TimeoutError())
        with (
            patch(_ACOMP, mock_acomp),
            patch(_SLEEP, new_callable=AsyncMock),
            pytest.raises(BackendUnavailable, match="failed after 3 attempts"),
        ):
            await _collect(provider)

        assert mock_acomp.call_count == 3

    @pytest.mark.asyncio
    async def test_connection_drop_after_delivery_is_terminal(self, provider):
        async def broken():
            for chunk in _growing_story_chunks()[:2]:
                yield chunk
            raise litellm.APIConnectionError(
                message="connection reset", model="gpt-4", llm_provider="openai",
            )

        mock_acomp = AsyncMock(side_effect=lambda **kwargs: broken())
        received = []
        with patch(_ACOMP, mock_acomp), pytest.raises(BackendUnavailable, match="broke off"):
            async for result in provider.stream_structured("p", StoryList):
                received.append(result)

        assert mock_acomp.call_count == 1
        assert len(received[-1].stories) == 1

    @pytest.mark.asyncio
    async def test_unknown_model_not_retried(self, provider):
        mock_acomp = AsyncMock(
            side_effect=litellm.NotFoundError(
                message="model not found", model="gpt-nonexistent", llm_provider="openai",
            ),
        )
        with patch(_ACOMP, mock_acomp), pytest.raises(BackendUnavailable, match="failed"):
            await _collect(provider)

        assert mock_acomp.call_count == 1

    @pytest.mark.asyncio
    async def test_provider_error_mid_stream_is_backend_failure(self, provider):
        async def broken():
            for chunk in _growing_story_chunks()[:2]:
                yield chunk
            raise litellm.APIError(
                status_code=502, message="upstream error", model="gpt-4", llm_provider="openai",
            )

        mock_acomp = AsyncMock(side_effect=lambda **kwargs: broken())
        with patch(_ACOMP, mock_acomp), pytest.raises(BackendUnavailable):
            await _collect(provider)

        assert mock_acomp.call_count == 1
