"""Centralized AI client supporting OpenAI-compatible endpoints and Anthropic.

Usage:
    from skilltrack.services.ai_client import complete, parse_json_payload

    text = await complete(
        "Recommend learning paths for ...",
        system="You are an expert learning advisor ...",
        use_case="recommendation",   # "recommendation", "assessment", "cheap", or None
    )
    payload = parse_json_payload(text, "recommendations")

Provider is auto-detected per use case from the model name:
  - Models starting with "claude-" route to Anthropic
  - Everything else routes to OpenAI (or AI_BASE_URL, e.g. OpenRouter)

Every failure (transport, non-2xx, empty body, malformed JSON, missing
top-level array) surfaces as AIResponseError. Calls are attempted
AI_MAX_ATTEMPTS times (default 1).
"""

import json
import logging
from enum import Enum

from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from skilltrack.config import settings
from skilltrack.services.errors import AIResponseError

logger = logging.getLogger(__name__)


class AIProvider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


_ANTHROPIC_PREFIXES = ("claude-",)


def _resolve_model(use_case: str | None) -> str:
    """Pick the model name based on the use case and config overrides."""
    if use_case == "recommendation" and settings.recommendation_model:
        return settings.recommendation_model
    if use_case == "assessment" and settings.assessment_model:
        return settings.assessment_model
    if use_case == "cheap" and settings.cheap_model:
        return settings.cheap_model
    return settings.model_name


def _detect_provider(model: str) -> AIProvider:
    """Models starting with 'claude-' go to Anthropic; others follow ai_provider."""
    model_lower = model.lower()
    for prefix in _ANTHROPIC_PREFIXES:
        if model_lower.startswith(prefix):
            return AIProvider.ANTHROPIC
    try:
        return AIProvider(settings.ai_provider.lower())
    except ValueError:
        return AIProvider.OPENAI


def _log_retry(retry_state) -> None:
    logger.warning(
        "AI call failed (attempt %d), retrying: %s",
        retry_state.attempt_number,
        retry_state.outcome.exception(),
    )


_retry_policy = retry(
    stop=stop_after_attempt(settings.ai_max_attempts),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception_type(Exception),
    before_sleep=_log_retry,
    reraise=True,
)


async def ai_chat(
    messages: list[dict],
    *,
    use_case: str | None = None,
    temperature: float | None = None,
    json_mode: bool = False,
    max_tokens: int | None = None,
) -> str:
    """Send a chat completion and return the assistant text."""
    model = _resolve_model(use_case)
    provider = _detect_provider(model)
    temperature = settings.ai_temperature if temperature is None else temperature
    max_tokens = max_tokens or settings.ai_max_tokens

    logger.debug("AI request: provider=%s model=%s messages=%d", provider.value, model, len(messages))
    try:
        if provider == AIProvider.ANTHROPIC:
            text = await _anthropic_chat(messages, model, temperature, json_mode, max_tokens)
        else:
            text = await _openai_chat(messages, model, temperature, json_mode, max_tokens)
    except Exception as exc:
        logger.error("AI completion failed (%s): %s", model, exc)
        raise AIResponseError(f"AI completion failed: {exc}") from exc

    if not text:
        raise AIResponseError("AI completion returned no content")
    logger.debug("AI response: %d chars", len(text))
    return text


async def complete(
    prompt: str,
    system: str | None = None,
    *,
    use_case: str | None = None,
    json_mode: bool = True,
) -> str:
    """Single user prompt with an optional system instruction."""
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    return await ai_chat(messages, use_case=use_case, json_mode=json_mode)


def parse_json_payload(text: str, field: str) -> dict:
    """Parse an AI reply as JSON and require a list under `field`.

    Models sometimes wrap JSON in prose or code fences, so the outermost
    {...} span is extracted first.
    """
    cleaned = text.strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end > start:
        cleaned = cleaned[start:end + 1]

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.error("Malformed AI JSON: %s", text[:500])
        raise AIResponseError("AI returned malformed JSON") from exc

    if not isinstance(parsed, dict) or not isinstance(parsed.get(field), list):
        raise AIResponseError(f"AI response is missing the '{field}' array")
    return parsed


@_retry_policy
async def _openai_chat(
    messages: list[dict],
    model: str,
    temperature: float,
    json_mode: bool,
    max_tokens: int,
) -> str:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=settings.api_key, base_url=settings.ai_base_url or None)
    kwargs: dict = {
        "model": model,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    response = await client.chat.completions.create(**kwargs)
    return response.choices[0].message.content or ""


@_retry_policy
async def _anthropic_chat(
    messages: list[dict],
    model: str,
    temperature: float,
    json_mode: bool,
    max_tokens: int,
) -> str:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)

    # Anthropic uses a separate system parameter, not a system message
    system_text = ""
    chat_messages = []
    for msg in messages:
        if msg["role"] == "system":
            system_text += msg["content"] + "\n"
        else:
            chat_messages.append({"role": msg["role"], "content": msg["content"]})

    if json_mode:
        system_text += "\nYou MUST respond with valid JSON only. No other text.\n"

    kwargs: dict = {
        "model": model,
        "messages": chat_messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    if system_text.strip():
        kwargs["system"] = system_text.strip()

    response = await client.messages.create(**kwargs)
    return response.content[0].text
