"""OpenAI integration for the pediatric assistant chat."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional

from openai import APIError, OpenAI

from .config import CONFIG

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are a friendly and knowledgeable pediatric assistant.
Your role is to provide helpful, accurate, and reassuring information about baby health, development, vaccines, feeding, sleep, and common parenting concerns.

Guidelines:
- Be warm, supportive, and empathetic
- Provide evidence-based information
- When appropriate, suggest consulting a pediatrician
- Keep responses concise but informative
- Use simple, parent-friendly language
- Never provide emergency medical advice - always recommend seeking immediate medical attention for emergencies

Remember: You're here to support and inform parents, not replace professional medical care.
"""
FALLBACK_REPLY = "I'm sorry, I couldn't generate a response. Please try again."
HISTORY_LIMIT = 20


@lru_cache
def get_client() -> OpenAI:
    if not CONFIG.openai_api_key:
        raise RuntimeError("Missing openai_api_key in config.json or OPENAI_API_KEY.")
    return OpenAI(api_key=CONFIG.openai_api_key)


def _normalize_history(
    history: Optional[List[Dict[str, Any]]],
) -> List[Dict[str, str]]:
    if not history:
        return []
    normalized: List[Dict[str, str]] = []
    for message in history[-HISTORY_LIMIT:]:
        role = message.get("role")
        content = message.get("content")
        if role not in {"user", "assistant"}:
            continue
        if not isinstance(content, str) or not content.strip():
            continue
        normalized.append({"role": role, "content": content})
    return normalized


def generate_pediatric_reply(
    message: str,
    *,
    history: Optional[List[Dict[str, Any]]] = None,
) -> str:
    message_list = [{"role": "system", "content": SYSTEM_PROMPT.strip()}]
    message_list.extend(_normalize_history(history))
    message_list.append({"role": "user", "content": message})
    try:
        response = get_client().chat.completions.create(
            model=CONFIG.openai_model,
            messages=message_list,
            temperature=0.4,
        )
    except RuntimeError as exc:
        logger.warning("OpenAI client unavailable, returning fallback reply: %s", exc)
        return FALLBACK_REPLY
    except APIError as exc:
        logger.exception("OpenAI chat API failed, returning fallback reply", exc_info=exc)
        return FALLBACK_REPLY

    try:
        content = response.choices[0].message.content or ""
    except (AttributeError, IndexError) as exc:
        logger.exception("Unexpected OpenAI response format, returning fallback reply", exc_info=exc)
        return FALLBACK_REPLY
    return content.strip() or FALLBACK_REPLY
