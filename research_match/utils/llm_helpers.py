"""
LLM Helpers Module

Single gateway for every LLM interaction in the pipeline. Agents build an
LLMRequest (instruction rendered from a prompt template plus user content)
and send it through LLMClient; no agent talks to the SDK directly.

Example Usage:
    from research_match.utils.llm_helpers import LLMClient, LLMRequest

    client = LLMClient.from_credentials(credential, timeout_seconds=30)
    text = await client.complete(
        LLMRequest(
            system_instruction=render_prompt("profile/extract.j2", ...),
            user_content=resume_text,
            temperature=0.2,
            max_output_tokens=2000,
        ),
        max_attempts=3,
    )
    payload = extract_json_object(text)
"""

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, Optional, Protocol

import openai
import structlog
from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from research_match.exceptions import SchemaViolation, ServiceTimeout, ServiceUnavailable
from research_match.utils.credential_manager import LLMCredential

if TYPE_CHECKING:
    from research_match.models.config import SystemParams

logger = structlog.get_logger(__name__)

PREVIEW_CHARS = 200


class LLMRequest(BaseModel):
    """One stateless chat completion request."""

    model_config = ConfigDict(frozen=True)

    system_instruction: str
    user_content: str
    json_mode: bool = True
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=1000, gt=0)


class CompletionClient(Protocol):
    """What agents need from an LLM client. Tests substitute a fake."""

    async def complete(
        self,
        request: LLMRequest,
        max_attempts: Optional[int] = None,
        correlation_id: Optional[str] = None,
    ) -> str: ...


class LLMClient:
    """OpenAI-compatible chat completions client with timeout and retry handling."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        timeout_seconds: float = 30.0,
        max_attempts: int = 3,
        retry_wait: Optional[Any] = None,
    ):
        """
        Initialize client.

        Args:
            client: Configured AsyncOpenAI instance
            model: Model name sent with every request
            timeout_seconds: Per-call timeout enforced around the SDK call
            max_attempts: Default attempts for transient failures
            retry_wait: tenacity wait strategy (default: exponential 2s..10s)
        """
        self._client = client
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)

    @classmethod
    def from_credentials(
        cls,
        credential: LLMCredential,
        timeout_seconds: float = 30.0,
        max_attempts: int = 3,
    ) -> "LLMClient":
        """Build a client for the provider resolved by CredentialManager."""
        # SDK-level retries are disabled; tenacity owns the retry policy
        client = AsyncOpenAI(
            api_key=credential.api_key,
            base_url=credential.base_url,
            max_retries=0,
            timeout=timeout_seconds,
        )
        logger.debug(
            "llm_client_created",
            provider=credential.provider,
            model=credential.model,
            base_url=credential.base_url,
        )
        return cls(client, credential.model, timeout_seconds, max_attempts)

    async def complete(
        self,
        request: LLMRequest,
        max_attempts: Optional[int] = None,
        correlation_id: Optional[str] = None,
    ) -> str:
        """
        Send a request and return the raw response text.

        Args:
            request: The request to send
            max_attempts: Attempts for transient failures (defaults to client setting)
            correlation_id: Optional correlation ID for logging

        Returns:
            Response text (never empty)

        Raises:
            ServiceTimeout: If the final attempt timed out
            ServiceUnavailable: If the service errored or returned no content
        """
        attempts = max_attempts or self.max_attempts
        log = logger.bind(correlation_id=correlation_id, model=self.model)
        log.debug(
            "LLM call initiated",
            prompt_length=len(request.system_instruction) + len(request.user_content),
            json_mode=request.json_mode,
            max_attempts=attempts,
        )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=self.retry_wait,
            retry=retry_if_exception_type(ServiceUnavailable),
            before_sleep=before_sleep_log(logging.getLogger(__name__), logging.INFO),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    text = await self._call_once(request)
        except ServiceUnavailable as e:
            log.error("LLM call failed", error=str(e), error_type=type(e).__name__)
            raise

        log.debug("LLM call succeeded", response_length=len(text))
        return text

    async def _call_once(self, request: LLMRequest) -> str:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": request.system_instruction},
                {"role": "user", "content": request.user_content},
            ],
            "temperature": request.temperature,
            "max_tokens": request.max_output_tokens,
        }
        if request.json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(**kwargs),
                timeout=self.timeout_seconds,
            )
        except (asyncio.TimeoutError, openai.APITimeoutError) as e:
            raise ServiceTimeout(
                f"LLM service did not respond within {self.timeout_seconds}s"
            ) from e
        except openai.OpenAIError as e:
            raise ServiceUnavailable(f"LLM service error: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise ServiceUnavailable("LLM service returned an empty response")
        return content.strip()


def strip_markdown_fences(response_text: str) -> str:
    """Remove markdown code block markers if present.

    Args:
        response_text: Raw text response from LLM

    Returns:
        Text with leading ```json / ``` and trailing ``` removed
    """
    text = response_text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def extract_json_object(response_text: str) -> dict[str, Any]:
    """Parse an LLM response into a JSON object.

    Args:
        response_text: Raw text response, possibly wrapped in a markdown fence

    Returns:
        Parsed JSON object

    Raises:
        SchemaViolation: If the text is not JSON or not a JSON object
    """
    cleaned = strip_markdown_fences(response_text)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise SchemaViolation(
            f"LLM response is not valid JSON: {e.msg}",
            payload_preview=cleaned[:PREVIEW_CHARS],
        ) from e

    if not isinstance(parsed, dict):
        raise SchemaViolation(
            f"LLM response is a JSON {type(parsed).__name__}, expected an object",
            payload_preview=cleaned[:PREVIEW_CHARS],
        )
    return parsed


def build_client(params: Optional["SystemParams"] = None) -> LLMClient:
    """Build an LLMClient from configuration and environment credentials.

    Args:
        params: Pipeline configuration (defaults to built-in defaults plus env overrides)

    Returns:
        Configured LLMClient

    Raises:
        ConfigurationMissing: If no LLM API key is set
    """
    from research_match.models.config import SystemParams
    from research_match.utils.credential_manager import CredentialManager

    params = params or SystemParams.from_env()
    credential = CredentialManager().get_llm_credential(
        model=params.llm.model, base_url=params.llm.base_url
    )
    return LLMClient.from_credentials(
        credential,
        timeout_seconds=params.llm.timeout_seconds,
        max_attempts=params.llm.max_attempts,
    )
