"""Tests for the AI client: provider routing, error wrapping and JSON payload checks."""

from unittest.mock import AsyncMock, patch

import pytest

from skilltrack.config import settings
from skilltrack.services import ai_client
from skilltrack.services.ai_client import AIProvider, parse_json_payload
from skilltrack.services.errors import AIResponseError


class TestParseJsonPayload:

    def test_plain_json(self):
        payload = parse_json_payload('{"skills": [{"skill": "Go"}]}', "skills")
        assert payload["skills"] == [{"skill": "Go"}]

    def test_json_wrapped_in_prose_and_fences(self):
        text = 'Sure! Here you go:\n```json\n{"questions": []}\n```\nGood luck.'
        assert parse_json_payload(text, "questions") == {"questions": []}

    def test_malformed_json(self):
        with pytest.raises(AIResponseError):
            parse_json_payload('{"questions": [', "questions")

    def test_missing_field(self):
        with pytest.raises(AIResponseError):
            parse_json_payload('{"items": []}', "questions")

    def test_field_must_be_a_list(self):
        with pytest.raises(AIResponseError):
            parse_json_payload('{"questions": "none"}', "questions")


class TestRouting:

    def test_claude_models_go_to_anthropic(self):
        assert ai_client._detect_provider("claude-3-5-haiku-latest") == AIProvider.ANTHROPIC
        assert ai_client._detect_provider("gpt-4o-mini") == AIProvider.OPENAI

    def test_use_case_override(self, monkeypatch):
        monkeypatch.setattr(settings, "recommendation_model", "openai/gpt-3.5-turbo")
        assert ai_client._resolve_model("recommendation") == "openai/gpt-3.5-turbo"
        assert ai_client._resolve_model("assessment") == settings.model_name
        assert ai_client._resolve_model(None) == settings.model_name


class TestAiChat:

    async def test_returns_text(self):
        with patch.object(ai_client, "_openai_chat", AsyncMock(return_value='{"ok": []}')) as mock:
            text = await ai_client.complete("hello", "be brief")

        assert text == '{"ok": []}'
        messages = mock.await_args.args[0]
        assert [m["role"] for m in messages] == ["system", "user"]

    async def test_transport_error_is_wrapped(self):
        with patch.object(ai_client, "_openai_chat", AsyncMock(side_effect=RuntimeError("503"))):
            with pytest.raises(AIResponseError, match="503"):
                await ai_client.ai_chat([{"role": "user", "content": "hi"}])

    async def test_empty_reply_is_an_error(self):
        with patch.object(ai_client, "_openai_chat", AsyncMock(return_value="")):
            with pytest.raises(AIResponseError):
                await ai_client.complete("hello")

    async def test_anthropic_route(self, monkeypatch):
        monkeypatch.setattr(settings, "cheap_model", "claude-3-5-haiku-latest")
        with patch.object(ai_client, "_anthropic_chat", AsyncMock(return_value="{}")) as mock:
            await ai_client.complete("hello", use_case="cheap")
        assert mock.await_args.args[1] == "claude-3-5-haiku-latest"
