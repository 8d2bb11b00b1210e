"""Wrapper around the OpenAI Chat Completions and Images APIs."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

import requests

from sidus import config

logger = logging.getLogger(__name__)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
OPENAI_IMAGES_URL = "https://api.openai.com/v1/images/generations"
CHAT_TIMEOUT = 60
IMAGE_TIMEOUT = 120
AUTH_FAILURE_STATUSES = (401, 403)

DEFAULT_PERSONA = "You are Sidus, a mystical astrological guide. Provide cosmic wisdom and guidance with warmth and insight."

CHAT_PERSONAS = {
    "onboarding": (
        "You are Sidus, a wise and mystical astrological guide. You're helping a new user through their "
        "onboarding journey. Be warm, engaging, and conversational. Ask one question at a time and respond "
        "naturally to their answers. Guide them through collecting their name, birthday, and birth location. "
        "Keep responses concise but mystical and encouraging."
    ),
    "general": (
        "You are Sidus, a compassionate and wise mystical astrological advisor. You have access to the user's "
        "birth chart and astrological information. Provide deeply personalized, insightful guidance based on "
        "astrology, cosmic wisdom, and spiritual intuition. Remember details they share about people in their "
        "life and reference their chart when relevant. Keep responses detailed but approachable."
    ),
    "horoscope": (
        "You are Sidus, providing personalized daily horoscopes and astrological insights. Use the user's "
        "zodiac sign and birth chart details to provide meaningful, actionable guidance for their day. "
        "Include practical advice they can apply immediately."
    ),
    "compatibility": (
        "You are Sidus, an expert in romantic astrological compatibility. Analyze relationships between "
        "zodiac signs using birth chart information when available. Provide insights into romantic dynamics, "
        "communication styles, love languages, and long-term potential."
    ),
    "friend-compatibility": (
        "You are Sidus, an expert in friendship astrological compatibility. Analyze platonic relationships "
        "between zodiac signs and birth charts. Provide insights into friendship dynamics, shared interests, "
        "and how to strengthen bonds."
    ),
    "soulmate": (
        "You are Sidus, guiding users through their soulmate journey. Help them understand their cosmic "
        "connection to their generated soulmate. Be romantic, mystical, and insightful about their "
        "astrological compatibility."
    ),
    "dream-interpreter": (
        "You are Sidus, a mystical dream interpreter with deep knowledge of symbolism, psychology, and "
        "astrological influences on dreams. Connect dream symbols to the user's astrological profile and "
        "offer practical guidance."
    ),
    "astrological-events": (
        "You are Sidus, an expert on astrological events and planetary influences. Explain transits, "
        "retrogrades, eclipses, and other cosmic events in relation to the user's birth chart, with "
        "practical advice for navigating them."
    ),
    "tarot-interpreter": (
        "You are Sidus, a wise tarot reader and interpreter. Explain card meanings and spreads and how they "
        "relate to the user's astrological profile and current situation."
    ),
    "personal-growth": (
        "You are Sidus, a compassionate guide for personal development and spiritual growth. Use the user's "
        "astrological profile to identify strengths, challenges, and growth opportunities."
    ),
}


class OpenAIError(Exception):
    """Base error for OpenAI API calls."""


class OpenAIConfigError(OpenAIError):
    """OPENAI_API_KEY is missing or rejected."""


def persona_for(chat_type: Optional[str]) -> str:
    return CHAT_PERSONAS.get(chat_type or "", DEFAULT_PERSONA)


def _headers() -> dict:
    api_key = config.get_openai_api_key()
    if not api_key:
        raise OpenAIConfigError("OPENAI_API_KEY is not set")
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


def _post(url: str, payload: dict, timeout: int) -> dict:
    headers = _headers()
    try:
        response = requests.post(url, json=payload, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        logger.exception("Network error calling OpenAI")
        raise OpenAIError(f"Network error: {exc}") from exc

    if response.status_code in AUTH_FAILURE_STATUSES:
        logger.error("OpenAI rejected the API key (status %s)", response.status_code)
        raise OpenAIConfigError(f"OpenAI rejected credentials: {response.status_code}")
    if response.status_code != 200:
        logger.error("OpenAI returned status %s: %s", response.status_code, response.text)
        raise OpenAIError(f"OpenAI error: {response.status_code}")
    return response.json()


def ask_gpt(
    messages: Iterable[dict],
    chat_type: Optional[str] = None,
    *,
    system_prompt: Optional[str] = None,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: int = 500,
) -> str:
    """
    Send a conversation to OpenAI and return the reply text.

    :param messages: list of {"role": "user"|"assistant", "content": str}
    :param chat_type: persona tag, see CHAT_PERSONAS
    :param system_prompt: overrides the persona when given
    """
    system = system_prompt if system_prompt is not None else persona_for(chat_type)
    payload = {
        "model": model or config.get_openai_model(),
        "temperature": temperature if temperature is not None else config.get_openai_temperature(),
        "max_tokens": max_tokens,
        "messages": [{"role": "system", "content": system}, *messages],
    }
    data = _post(OPENAI_CHAT_URL, payload, CHAT_TIMEOUT)
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        logger.exception("Unexpected OpenAI response format: %s", data)
        raise OpenAIError("Unexpected OpenAI response") from exc
    if not content or not content.strip():
        raise OpenAIError("OpenAI returned an empty completion")
    return content.strip()


def generate_image(prompt: str, *, size: str = "1024x1024") -> str:
    """Generate one image and return its URL. The URL expires after a while."""
    payload = {
        "model": config.get_openai_image_model(),
        "prompt": prompt,
        "size": size,
        "quality": "standard",
        "n": 1,
    }
    data = _post(OPENAI_IMAGES_URL, payload, IMAGE_TIMEOUT)
    try:
        url = data["data"][0]["url"]
    except (KeyError, IndexError, TypeError) as exc:
        logger.exception("Unexpected OpenAI image response format: %s", data)
        raise OpenAIError("Unexpected OpenAI image response") from exc
    if not url:
        raise OpenAIError("OpenAI returned no image URL")
    return url
