"""Async client for the external text-generation oracle.

Wraps the OpenAI and Anthropic SDKs behind one call with a per-call
deadline. Callers decide their own fallback; this module only raises
OracleError / OracleTimeout.
"""

import asyncio
import time
from enum import Enum
from typing import Any

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from app.core.config import get_settings
from app.core.llm import parse_llm_json_dict
from app.core.llm_usage import log_llm_usage
from app.core.logging import get_logger

logger = get_logger(__name__)


class ModelTier(str, Enum):
    """Named model tiers mapped to concrete models in settings."""

    FAST = "fast"
    STANDARD = "standard"


class OracleError(Exception):
    """Raised when the oracle returns an error or unusable output."""


class OracleTimeout(OracleError):
    """Raised when the oracle does not answer within the deadline."""


def _model_for_tier(tier: ModelTier) -> str:
    settings = get_settings()
    if tier == ModelTier.STANDARD:
        return settings.ORACLE_STANDARD_MODEL
    return settings.ORACLE_FAST_MODEL


async def _call_openai(
    messages: list[dict[str, str]],
    model: str,
    temperature: float,
    max_tokens: int,
    json_mode: bool,
) -> tuple[str, int, int]:
    settings = get_settings()
    client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)

    kwargs: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    response = await client.chat.completions.create(**kwargs)
    text = response.choices[0].message.content or ""
    usage = response.usage
    tokens_in = getattr(usage, "prompt_tokens", 0) or 0
    tokens_out = getattr(usage, "completion_tokens", 0) or 0
    return text, tokens_in, tokens_out


async def _call_anthropic(
    messages: list[dict[str, str]],
    model: str,
    temperature: float,
    max_tokens: int,
) -> tuple[str, int, int]:
    settings = get_settings()
    client = AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)

    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    conversation = [m for m in messages if m["role"] != "system"]

    kwargs: dict[str, Any] = {
        "model": model,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "messages": conversation,
    }
    if system:
        kwargs["system"] = system

    response = await client.messages.create(**kwargs)
    text = "".join(getattr(block, "text", "") for block in response.content)
    usage = response.usage
    return text, usage.input_tokens, usage.output_tokens


async def call_oracle(
    messages: list[dict[str, str]],
    tier: ModelTier = ModelTier.FAST,
    temperature: float = 0.2,
    max_tokens: int = 1024,
    json_mode: bool = False,
    chain: str | None = None,
    conversation_id: str | None = None,
) -> str:
    """
    Send a chat-style request to the configured provider.

    Args:
        messages: [{"role": "system"|"user"|"assistant", "content": str}, ...]
        tier: Model tier (fast for classification, standard for planning)
        temperature: Sampling temperature
        max_tokens: Output token cap
        json_mode: Ask the provider for a JSON object (OpenAI only)
        chain: Name of the calling chain, for usage logging
        conversation_id: Conversation the call belongs to, for usage logging

    Returns:
        Raw response text

    Raises:
        OracleTimeout: If the deadline passes
        OracleError: On any provider failure
    """
    settings = get_settings()
    provider = settings.ORACLE_PROVIDER.lower()
    model = _model_for_tier(tier)

    if provider == "anthropic":
        call = _call_anthropic(messages, model, temperature, max_tokens)
    else:
        call = _call_openai(messages, model, temperature, max_tokens, json_mode)

    start = time.time()
    try:
        text, tokens_in, tokens_out = await asyncio.wait_for(
            call, timeout=settings.ORACLE_TIMEOUT_SECONDS
        )
    except asyncio.TimeoutError as e:
        logger.warning(f"Oracle call timed out after {settings.ORACLE_TIMEOUT_SECONDS}s ({chain})")
        raise OracleTimeout(f"Oracle timed out after {settings.ORACLE_TIMEOUT_SECONDS}s") from e
    except Exception as e:
        raise OracleError(f"Oracle call failed: {e}") from e
    duration_ms = int((time.time() - start) * 1000)

    log_llm_usage(
        workflow="document_export",
        model=model,
        provider=provider,
        tokens_input=tokens_in,
        tokens_output=tokens_out,
        duration_ms=duration_ms,
        conversation_id=conversation_id,
        chain=chain,
    )

    if not text.strip():
        raise OracleError("Oracle returned an empty response")
    return text


async def call_oracle_json(
    messages: list[dict[str, str]],
    tier: ModelTier = ModelTier.FAST,
    temperature: float = 0.1,
    max_tokens: int = 1024,
    chain: str | None = None,
    conversation_id: str | None = None,
) -> dict:
    """Call the oracle in JSON mode and parse the object it returns.

    Raises:
        OracleError: On provider failure or unparseable output
    """
    raw = await call_oracle(
        messages,
        tier=tier,
        temperature=temperature,
        max_tokens=max_tokens,
        json_mode=True,
        chain=chain,
        conversation_id=conversation_id,
    )
    try:
        return parse_llm_json_dict(raw)
    except ValueError as e:
        # json.JSONDecodeError is a ValueError
        raise OracleError(f"Unparseable oracle output: {e}") from e
