# core/llm_interface.py
"""
Handles all direct interactions with the chat-completion service.
Includes token counting helpers, per-model parameter adaptation and the
resilient asynchronous completion call used by every FORGE stage.

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.

Copyright 2025 Dennis Lewis
"""

# Standard library imports
import asyncio
import functools
import json
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal

import httpx

# Third-party imports
import structlog
import tiktoken
from pydantic import BaseModel, ConfigDict, Field

# Local imports
from config import settings
from core.errors import (
    CompletionServiceError,
    CompletionTimeoutError,
    EmptyCompletionError,
)
from core.usage import TokenUsage

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class CompletionRequest(BaseModel):
    """Single parameter record for a completion call."""

    model: str
    messages: list[ChatMessage]
    max_tokens: int = Field(gt=0)
    temperature: float | None = None
    timeout: float | None = None


class CompletionResponse(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    text: str
    model: str
    finish_reason: str | None = None
    usage: TokenUsage = Field(default_factory=TokenUsage)


def build_request(
    model: str,
    system_prompt: str,
    user_prompt: str,
    max_tokens: int,
    temperature: float | None = None,
) -> CompletionRequest:
    """Assemble the usual system-plus-user completion request."""
    return CompletionRequest(
        model=model,
        messages=[
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=user_prompt),
        ],
        max_tokens=max_tokens,
        temperature=temperature,
    )


@dataclass(frozen=True)
class ModelProfile:
    """Request parameters a model family expects."""

    token_param: str
    supports_temperature: bool
    timeout: float


def is_reasoning_model(model_name: str) -> bool:
    name = model_name.lower()
    return any(name.startswith(prefix) for prefix in settings.REASONING_MODEL_PREFIXES)


def model_profile(model_name: str) -> ModelProfile:
    """Return the token parameter, temperature support and timeout for a model."""
    if is_reasoning_model(model_name):
        return ModelProfile(
            token_param="max_completion_tokens",
            supports_temperature=False,
            timeout=settings.LLM_REASONING_TIMEOUT_SECONDS,
        )
    return ModelProfile(
        token_param="max_tokens",
        supports_temperature=True,
        timeout=settings.LLM_TIMEOUT_SECONDS,
    )


def friendly_error_message(
    status_code: int | None, detail: str, timed_out: bool = False
) -> str:
    """Map a service failure to a message suitable for end users."""
    if status_code == 429 or "rate limit" in detail.lower():
        return "API rate limit reached. Please wait a moment and try again."
    if status_code == 401:
        return "Authentication error. Please check your API key."
    if status_code in (500, 503):
        return "Completion service temporarily unavailable. Please try again."
    if timed_out or "timeout" in detail.lower():
        return "Request timed out. Please try again or simplify your request."
    return f"API error: {detail or 'Unknown error'}"


# --- Tokenizer Cache and Utility Functions (Module Level) ---
@functools.lru_cache(maxsize=settings.TOKENIZER_CACHE_SIZE)
def _get_tokenizer(model_name: str) -> tiktoken.Encoding | None:
    """
    Gets a tiktoken encoder for the given model name, with caching.
    Tries model-specific encoding, then a default, then returns None.
    """
    try:
        try:
            encoder = tiktoken.encoding_for_model(model_name)
        except KeyError:
            logger.debug(
                f"No direct tiktoken encoding for '{model_name}'. Using default '{settings.TIKTOKEN_DEFAULT_ENCODING}'."
            )
            encoder = tiktoken.get_encoding(settings.TIKTOKEN_DEFAULT_ENCODING)
        return encoder
    except Exception as e:  # encodings are downloaded on first use
        logger.error(
            f"Tokenizer unavailable for '{model_name}': {e}. "
            "Token counting will fall back to character-based heuristic."
        )
        return None


def count_tokens(text: str, model_name: str) -> int:
    """Counts the number of tokens in a string for a given model."""
    if not text:
        return 0

    encoder = _get_tokenizer(model_name)
    if encoder:
        return len(encoder.encode(text, allowed_special="all"))
    return int(len(text) / settings.FALLBACK_CHARS_PER_TOKEN)


def truncate_text_by_tokens(
    text: str,
    model_name: str,
    max_tokens: int,
    truncation_marker: str = "\n// ... (truncated)",
) -> str:
    """
    Truncates text to a maximum number of tokens for a given model.
    Adds a truncation marker if truncation occurs.
    """
    if not text:
        return ""

    encoder = _get_tokenizer(model_name)
    if not encoder:
        max_chars = int(max_tokens * settings.FALLBACK_CHARS_PER_TOKEN)
        if len(text) > max_chars:
            return text[: max(0, max_chars - len(truncation_marker))] + truncation_marker
        return text

    tokens = encoder.encode(text, allowed_special="all")
    if len(tokens) <= max_tokens:
        return text

    marker_len = len(encoder.encode(truncation_marker, allowed_special="all"))
    keep = max_tokens - marker_len
    if keep <= 0:
        return encoder.decode(tokens[:max_tokens])
    return encoder.decode(tokens[:keep]) + truncation_marker


class LLMService:
    """Client for the chat-completion endpoint with retries and deadlines."""

    def __init__(
        self,
        timeout: float = settings.HTTPX_TIMEOUT,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        # Use a single async client for all requests to reuse connections
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._sleep = sleep
        self.request_count = 0
        logger.debug(
            f"LLMService initialized for '{settings.OPENAI_API_BASE}' "
            f"with up to {settings.LLM_RETRY_ATTEMPTS} attempts per call."
        )

    def retry_delay(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt`` (zero-based)."""
        delay = settings.LLM_RETRY_BASE_DELAY_SECONDS * (2**attempt)
        if settings.LLM_RETRY_JITTER_RATIO > 0:
            delay += random.uniform(0, delay * settings.LLM_RETRY_JITTER_RATIO)
        return delay

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def build_payload(
        self, request: CompletionRequest, profile: ModelProfile
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.model,
            "messages": [m.model_dump() for m in request.messages],
            profile.token_param: request.max_tokens,
            "stream": False,
        }
        if request.temperature is not None:
            if profile.supports_temperature:
                payload["temperature"] = request.temperature
            elif request.temperature != 1:
                logger.warning(
                    f"Model '{request.model}' does not accept a temperature; "
                    f"dropping requested value {request.temperature}."
                )
        return payload

    async def _post_non_streaming(self, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {settings.OPENAI_API_KEY}",
            "Content-Type": "application/json",
        }
        response = await self._client.post(
            f"{settings.OPENAI_API_BASE}/chat/completions",
            json=payload,
            headers=headers,
        )
        response.raise_for_status()
        return response.json()

    def _log_llm_usage(self, model_name: str, usage: TokenUsage) -> None:
        if usage:
            logger.info(
                f"LLM ('{model_name}') Usage - Prompt: {usage.prompt_tokens} tk, "
                f"Comp: {usage.completion_tokens} tk, Reasoning: {usage.reasoning_tokens} tk, "
                f"Total: {usage.total_tokens} tk"
            )
        else:
            logger.debug(f"LLM ('{model_name}') response missing 'usage' information.")

    def _parse_completion(
        self, model_name: str, data: dict[str, Any], attempts: int
    ) -> CompletionResponse:
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            logger.error(
                f"LLM ('{model_name}') invalid response structure - missing choices: {str(data)[:200]}"
            )
            raise CompletionServiceError(
                "API error: invalid response structure", attempts=attempts
            )

        choice = choices[0] or {}
        message = choice.get("message") or {}
        text = message.get("content") or ""
        finish_reason = choice.get("finish_reason")
        usage = TokenUsage.from_api(data.get("usage"))
        self._log_llm_usage(model_name, usage)

        if not text.strip():
            logger.error(
                f"Empty response from '{model_name}'",
                finish_reason=finish_reason,
                reasoning_tokens=usage.reasoning_tokens,
            )
            raise EmptyCompletionError(model_name, usage.reasoning_tokens, finish_reason)

        return CompletionResponse(
            text=text, model=model_name, finish_reason=finish_reason, usage=usage
        )

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Send one completion request, retrying transient failures.

        Each attempt runs under its own deadline; expiry cancels the in-flight
        request. Non-retryable HTTP statuses, transport failures other than
        timeouts and dropped connections, and malformed bodies fail after a
        single call. Empty completions raise ``EmptyCompletionError``.
        """
        profile = model_profile(request.model)
        timeout = request.timeout or profile.timeout
        payload = self.build_payload(request, profile)
        max_attempts = max(1, settings.LLM_RETRY_ATTEMPTS)

        prompt_tokens = sum(count_tokens(m.content, request.model) for m in request.messages)
        logger.info(
            f"LLM request: {request.model} (timeout: {timeout:.0f}s, "
            f"{profile.token_param}: {request.max_tokens}, prompt tokens est.: {prompt_tokens})"
        )

        last_exc: Exception | None = None
        last_status: int | None = None
        for attempt in range(max_attempts):
            self.request_count += 1
            try:
                data = await asyncio.wait_for(
                    self._post_non_streaming(payload), timeout=timeout
                )
            except TimeoutError:
                last_exc = CompletionTimeoutError(timeout)
                last_status = None
            except httpx.HTTPStatusError as e_status:
                status = e_status.response.status_code
                body = e_status.response.text[:200]
                if status not in RETRYABLE_STATUS_CODES:
                    logger.error(
                        f"LLM ('{request.model}'): non-retryable HTTP {status}. Body: {body}"
                    )
                    raise CompletionServiceError(
                        friendly_error_message(status, body),
                        status_code=status,
                        attempts=attempt + 1,
                    ) from e_status
                last_exc = e_status
                last_status = status
            except (
                httpx.TimeoutException,
                httpx.NetworkError,
                httpx.RemoteProtocolError,
            ) as e_req:
                last_exc = e_req
                last_status = None
            except httpx.TransportError as e_transport:
                logger.error(
                    f"LLM ('{request.model}'): non-retryable transport error "
                    f"{type(e_transport).__name__}: {e_transport}"
                )
                raise CompletionServiceError(
                    f"API error: {type(e_transport).__name__}: {e_transport}",
                    retryable=False,
                    attempts=attempt + 1,
                ) from e_transport
            except json.JSONDecodeError as e_json:
                raise CompletionServiceError(
                    f"API error: malformed response body ({e_json})",
                    attempts=attempt + 1,
                ) from e_json
            else:
                return self._parse_completion(request.model, data, attempt + 1)

            logger.warning(
                f"LLM ('{request.model}' Attempt {attempt + 1}/{max_attempts}): "
                f"{type(last_exc).__name__}: {last_exc}"
            )
            if attempt < max_attempts - 1:
                delay = self.retry_delay(attempt)
                logger.info(f"LLM: Retrying in {delay:.2f} seconds.")
                await self._sleep(delay)

        logger.error(
            f"LLM: All {max_attempts} attempts failed for '{request.model}'. Last error: {last_exc}"
        )
        timed_out = isinstance(last_exc, CompletionTimeoutError | httpx.TimeoutException)
        raise CompletionServiceError(
            friendly_error_message(last_status, str(last_exc), timed_out=timed_out),
            status_code=last_status,
            retryable=True,
            attempts=max_attempts,
        ) from last_exc


# Instantiate the service for other modules to import and use
llm_service = LLMService()
