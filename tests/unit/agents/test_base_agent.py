"""
Tests for structured agent calls: JSON extraction and the retry policy.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from agents.base import LLMClient, LLMError, LLMResponseError, extract_json
from agents.jd_parser.agent import JobDescriptionAgent
from tests.factories import ScriptedLLM, jd_payload


class TestExtractJson:
    def test_plain(self):
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_code_fence(self):
        assert extract_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_invalid(self):
        with pytest.raises(LLMResponseError) as exc_info:
            extract_json("Sure! Here is your JSON")
        assert exc_info.value.raw_response == "Sure! Here is your JSON"


class TestRetryPolicy:
    @pytest.mark.asyncio
    async def test_first_answer_valid(self):
        llm = ScriptedLLM()
        llm.queue(jd_payload())

        result = await JobDescriptionAgent(llm).dissect("Backend engineer")

        assert result.validation.valid
        assert result.attempts == 1
        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    async def test_unparseable_then_valid(self):
        llm = ScriptedLLM()
        llm.queue("not json at all", jd_payload())

        result = await JobDescriptionAgent(llm).dissect("Backend engineer")

        assert result.validation.valid
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_invalid_then_valid(self):
        llm = ScriptedLLM()
        llm.queue(jd_payload(function="Wizardry"), jd_payload())

        result = await JobDescriptionAgent(llm).dissect("Backend engineer")

        assert result.validation.valid
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_at_most_three_calls(self):
        llm = ScriptedLLM()
        llm.queue("garbage", jd_payload(function="Wizardry"), jd_payload(seniority="Guru"))

        result = await JobDescriptionAgent(llm).dissect("Backend engineer")

        assert not result.validation.valid
        assert result.attempts == 3
        assert len(llm.calls) == 3
        assert llm.responses == []

    @pytest.mark.asyncio
    async def test_unparseable_twice_raises(self):
        llm = ScriptedLLM()
        llm.queue("garbage", "more garbage")

        with pytest.raises(LLMResponseError):
            await JobDescriptionAgent(llm).dissect("Backend engineer")


class TestLLMClient:
    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        client = LLMClient(api_key=None)
        with pytest.raises(LLMError) as exc_info:
            await client.generate("hello")
        assert "GOOGLE_API_KEY" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout_maps_to_llm_error(self):
        async def slow(**kwargs):
            await asyncio.sleep(1)

        fake = MagicMock()
        fake.aio.models.generate_content = slow
        client = LLMClient(api_key="test-key", timeout_seconds=0.01)

        with patch.object(client, "_get_client", return_value=fake):
            with pytest.raises(LLMError) as exc_info:
                await client.generate("hello")
        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_returns_text(self):
        fake = MagicMock()
        fake.aio.models.generate_content = AsyncMock(return_value=MagicMock(text='{"ok": true}'))
        client = LLMClient(api_key="test-key", model="gemini-test")

        with patch.object(client, "_get_client", return_value=fake):
            text = await client.generate("hello", system_instruction="be terse")

        assert text == '{"ok": true}'
        kwargs = fake.aio.models.generate_content.await_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["config"].temperature == 0

    @pytest.mark.asyncio
    async def test_empty_response(self):
        fake = MagicMock()
        fake.aio.models.generate_content = AsyncMock(return_value=MagicMock(text=""))
        client = LLMClient(api_key="test-key")

        with patch.object(client, "_get_client", return_value=fake):
            with pytest.raises(LLMError):
                await client.generate("hello")
