"""
Unit tests for llm_helpers module.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from tenacity import wait_none

from research_match.exceptions import SchemaViolation, ServiceTimeout, ServiceUnavailable
from research_match.utils.credential_manager import LLMCredential
from research_match.utils.llm_helpers import (
    LLMClient,
    LLMRequest,
    extract_json_object,
    strip_markdown_fences,
)


def _completion(content):
    """Build an object shaped like a chat completion response."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


def _client(create: AsyncMock, timeout_seconds: float = 30.0) -> LLMClient:
    sdk = MagicMock()
    sdk.chat.completions.create = create
    return LLMClient(
        sdk, model="test-model", timeout_seconds=timeout_seconds, retry_wait=wait_none()
    )


REQUEST = LLMRequest(
    system_instruction="Return JSON.",
    user_content="posting text",
    temperature=0.2,
    max_output_tokens=300,
)


class TestExtractJsonObject:
    """Test cases for JSON extraction."""

    def test_plain_json(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        """Test that markdown fences are removed."""
        assert extract_json_object('```json\n{"a": [1, 2]}\n```') == {"a": [1, 2]}

    def test_invalid_json_raises_schema_violation(self):
        """Test that non-JSON text raises SchemaViolation with a preview."""
        # Act & Assert
        with pytest.raises(SchemaViolation) as exc_info:
            extract_json_object("Sure! Here are the tags: Biology")

        assert exc_info.value.payload_preview.startswith("Sure!")

    def test_non_object_rejected(self):
        """Test that a JSON array is not accepted."""
        with pytest.raises(SchemaViolation, match="expected an object"):
            extract_json_object('["Biology"]')

    def test_strip_fences_without_language(self):
        assert strip_markdown_fences("```\n{}\n```") == "{}"


class TestLLMClient:
    """Test cases for LLMClient.complete."""

    @pytest.mark.asyncio
    async def test_sends_request_parameters(self):
        """Test that temperature, token limit and JSON mode are forwarded."""
        # Arrange
        create = AsyncMock(return_value=_completion('{"ok": true}'))
        client = _client(create)

        # Act
        text = await client.complete(REQUEST)

        # Assert
        assert text == '{"ok": true}'
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 300
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": "Return JSON."}
        assert kwargs["messages"][1]["content"] == "posting text"

    @pytest.mark.asyncio
    async def test_text_mode_omits_response_format(self):
        """Test that json_mode=False sends no response_format."""
        # Arrange
        create = AsyncMock(return_value=_completion("plain"))
        client = _client(create)

        # Act
        await client.complete(REQUEST.model_copy(update={"json_mode": False}))

        # Assert
        assert "response_format" not in create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_empty_response_is_service_error(self):
        """Test that empty content raises ServiceUnavailable."""
        # Arrange
        client = _client(AsyncMock(return_value=_completion("   ")))

        # Act & Assert
        with pytest.raises(ServiceUnavailable, match="empty"):
            await client.complete(REQUEST, max_attempts=1)

    @pytest.mark.asyncio
    async def test_sdk_error_mapped(self):
        """Test that SDK errors become ServiceUnavailable."""
        # Arrange
        error = openai.APIConnectionError(
            request=httpx.Request("POST", "https://example.invalid/v1/chat/completions")
        )
        client = _client(AsyncMock(side_effect=error))

        # Act & Assert
        with pytest.raises(ServiceUnavailable) as exc_info:
            await client.complete(REQUEST, max_attempts=1)
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_timeout_mapped(self):
        """Test that a slow call raises ServiceTimeout."""

        # Arrange
        async def slow(**kwargs):
            await asyncio.sleep(1)
            return _completion("{}")

        client = _client(AsyncMock(side_effect=slow), timeout_seconds=0.01)

        # Act & Assert
        with pytest.raises(ServiceTimeout):
            await client.complete(REQUEST, max_attempts=1)

    @pytest.mark.asyncio
    async def test_retries_transient_failures(self):
        """Test that a transient failure is retried up to max_attempts."""
        # Arrange
        create = AsyncMock(
            side_effect=[_completion(""), _completion(""), _completion('{"a": 1}')]
        )
        client = _client(create)

        # Act
        text = await client.complete(REQUEST, max_attempts=3)

        # Assert
        assert text == '{"a": 1}'
        assert create.await_count == 3

    @pytest.mark.asyncio
    async def test_single_attempt_does_not_retry(self):
        """Test that max_attempts=1 makes exactly one call."""
        # Arrange
        create = AsyncMock(return_value=_completion(""))
        client = _client(create)

        # Act & Assert
        with pytest.raises(ServiceUnavailable):
            await client.complete(REQUEST, max_attempts=1)
        assert create.await_count == 1


class TestFromCredentials:
    """Test cases for building a client from credentials."""

    def test_uses_credential_endpoint_and_model(self, mocker):
        """Test that base_url, key and model come from the credential."""
        # Arrange
        sdk_class = mocker.patch("research_match.utils.llm_helpers.AsyncOpenAI")
        credential = LLMCredential(
            api_key="gsk-test",
            provider="groq",
            base_url="https://api.groq.com/openai/v1",
            model="llama-3.3-70b-versatile",
        )

        # Act
        client = LLMClient.from_credentials(credential, timeout_seconds=12)

        # Assert
        sdk_class.assert_called_once_with(
            api_key="gsk-test",
            base_url="https://api.groq.com/openai/v1",
            max_retries=0,
            timeout=12,
        )
        assert client.model == "llama-3.3-70b-versatile"
        assert client.timeout_seconds == 12
