"""LLM service for generating assistant replies using Gemini."""
import asyncio
import hashlib
import json
import logging
from typing import List, Sequence
from google import genai
from google.genai import types
from app.core.config import settings
from app.core.errors import UpstreamReplyFailure
from app.core.prompts import get_system_instruction, prepare_history
from app.services import cache

logger = logging.getLogger(__name__)

# Initialize Gemini client (lazy loaded)
_gemini_client = None


def _get_gemini_client():
    """Lazy load Gemini client with request timeout. Client is stateless (HTTP), no lock needed."""
    global _gemini_client
    if _gemini_client is None:
        if not settings.gemini_api_key:
            raise UpstreamReplyFailure("Gemini API key not configured. Please set GEMINI_API_KEY in environment.")
        _gemini_client = genai.Client(
            api_key=settings.gemini_api_key,
            http_options=types.HttpOptions(timeout=settings.llm_timeout_seconds * 1000),
        )
        logger.info("Gemini client initialized (timeout=%ss)", settings.llm_timeout_seconds)
    return _gemini_client


def _build_contents(context: Sequence, user_message: str) -> List[types.Content]:
    """Session turns -> Gemini contents. Falls back to the bare message if context has no user turn."""
    history = prepare_history(context) or [{"role": "user", "text": user_message}]
    return [
        types.Content(role=msg["role"], parts=[types.Part.from_text(text=msg["text"])])
        for msg in history
    ]


def _generate_cache_key(context: Sequence) -> str:
    """Deterministic cache key over the exact context sent to the model."""
    payload = json.dumps([[turn.role, turn.content] for turn in context])
    return f"chat:{settings.llm_model}:{hashlib.md5(payload.encode()).hexdigest()}"


def _extract_text(response) -> str:
    """Join all text parts of the first candidate."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates or candidates[0].content is None or not candidates[0].content.parts:
        return ""
    candidate = candidates[0]
    finish_reason = str(getattr(candidate, "finish_reason", None) or "UNKNOWN")
    if "MAX_TOKENS" in finish_reason:
        logger.warning(f"Response truncated due to MAX_TOKENS (current: {settings.llm_max_tokens})")
    elif "SAFETY" in finish_reason or "RECITATION" in finish_reason:
        logger.warning(f"Response blocked by filters: {finish_reason}")
    parts = [part.text for part in candidate.content.parts if getattr(part, "text", None)]
    return "".join(parts).strip()


def generate_reply(context: Sequence, user_message: str) -> str:
    """
    Generate the assistant's reply for a conversation window.

    Args:
        context: Most recent session turns, ending with the user's message
        user_message: The user's message (used when context is empty)

    Returns:
        Reply text

    Raises:
        UpstreamReplyFailure: Gemini not configured, errored, or returned no text
    """
    cache_key = _generate_cache_key(context)
    cached = cache.get(cache_key)
    if cached:
        logger.info("Cache hit for assistant reply")
        return cached

    client = _get_gemini_client()
    contents = _build_contents(context, user_message)
    config = types.GenerateContentConfig(
        thinking_config=types.ThinkingConfig(thinking_budget=0),
        system_instruction=get_system_instruction(),
        max_output_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
    )

    logger.info(f"Calling Gemini (model={settings.llm_model}, contents={len(contents)})")
    try:
        response = client.models.generate_content(
            model=settings.llm_model,
            contents=contents,
            config=config,
        )
    except Exception as e:
        raise UpstreamReplyFailure(f"Gemini request failed: {e}") from e

    reply = _extract_text(response)
    if not reply:
        raise UpstreamReplyFailure("No text content in Gemini response")

    logger.debug(f"Gemini reply length: {len(reply)} characters")
    cache.set(cache_key, reply, settings.llm_cache_ttl)
    return reply


async def gemini_reply(context: Sequence, user_message: str) -> str:
    """Async reply function for SessionStore.send; runs the blocking client in a worker thread."""
    return await asyncio.to_thread(generate_reply, list(context), user_message)
