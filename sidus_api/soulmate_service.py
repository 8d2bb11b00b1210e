"""Soulmate generation: random signs, portrait, score, analysis, persistence."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, asdict
from datetime import timedelta
from typing import Callable, List, Optional, Sequence

from sidus import astro_calc, openai_client, storage
from sidus import config as core_config
from sidus_api import config, db

logger = logging.getLogger(__name__)

RandomSource = Callable[[], float]

SOULMATE_MIN_SCORE = 90
SOULMATE_MAX_SCORE = 100
SOULMATE_NAME = "Your Soulmate"


class SoulmateError(Exception):
    """Base error for soulmate generation."""

    code = "soulmate_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SoulmateError):
    code = "missing_field"
    status_code = 400


class DuplicateGenerationError(SoulmateError):
    code = "too_many_requests"
    status_code = 429


class GenerationError(SoulmateError):
    code = "generation_failed"
    status_code = 502


class ConfigurationError(SoulmateError):
    code = "server_misconfigured"
    status_code = 500


@dataclass
class SoulmateResult:
    id: int
    image_url: str
    soulmate_sign: str
    compatibility_score: int
    analysis: str
    short_description: str
    sun_sign: str
    moon_sign: str
    rising_sign: str

    def to_dict(self) -> dict:
        return asdict(self)


def draw_sign(rand: RandomSource) -> str:
    index = int(rand() * len(astro_calc.ZODIAC_SIGNS))
    # A source returning 1.0 still maps to the last sign.
    index = min(max(index, 0), len(astro_calc.ZODIAC_SIGNS) - 1)
    return astro_calc.ZODIAC_SIGNS[index]


def draw_soulmate_score(rand: RandomSource) -> int:
    span = SOULMATE_MAX_SCORE - SOULMATE_MIN_SCORE + 1
    score = SOULMATE_MIN_SCORE + int(rand() * span)
    return min(max(score, SOULMATE_MIN_SCORE), SOULMATE_MAX_SCORE)


def describe_ethnicities(ethnicity_tags: Sequence[str]) -> str:
    return " and ".join(ethnicity_tags) if ethnicity_tags else "diverse"


def build_portrait_prompt(user_sign: str, gender_preference: str, ethnicity_tags: Sequence[str]) -> str:
    ethnicity = describe_ethnicities(ethnicity_tags)
    return (
        f"Create a detailed sketch portrait of a {gender_preference} person of {ethnicity} ethnicity "
        f"who would be astrologically compatible with a {user_sign}. The person should have kind, "
        "intelligent eyes and an approachable, warm expression. Draw them in a realistic portrait style "
        "with soft shading, showing someone who embodies the complementary qualities that would harmonize "
        f"perfectly with a {user_sign} personality. The portrait should be a pencil sketch style with "
        "detailed facial features, expressing wisdom, compassion, and the specific traits that would create "
        f"a deep cosmic connection with {user_sign}."
    )


def build_analysis_prompt(
    user_sign: str, soulmate_sign: str, gender_preference: str, ethnicity_tags: Sequence[str]
) -> str:
    return (
        "As Sidus, the mystical astrological guide, provide a detailed compatibility analysis between "
        f"a {user_sign} and a {soulmate_sign}. This is for a {gender_preference} soulmate of "
        f"{describe_ethnicities(ethnicity_tags)} background.\n\n"
        "Explain:\n"
        "1. The cosmic connection between these signs\n"
        "2. Why this pairing is destined\n"
        "3. The complementary energies they share\n"
        "4. How their astrological traits harmonize\n"
        "5. What makes this connection special and meant to be\n\n"
        "Write in a mystical, romantic tone as if revealing divine cosmic truths. Make it personal and meaningful."
    )


def build_short_description(soulmate_sign: str, rising_sign: str) -> str:
    return (
        f"Your passion meets their fiery {soulmate_sign} spirit, igniting thrilling adventures, "
        f"while your shared {rising_sign} rising fosters an intense emotional bond, "
        "creating an unbreakable connection."
    )


def generate_analysis(
    user_sign: str, soulmate_sign: str, gender_preference: str, ethnicity_tags: Sequence[str]
) -> str:
    prompt = build_analysis_prompt(user_sign, soulmate_sign, gender_preference, ethnicity_tags)
    return openai_client.ask_gpt(
        [{"role": "user", "content": prompt}],
        chat_type="soulmate",
        model=core_config.get_openai_analysis_model(),
        temperature=0.9,
        max_tokens=800,
    )


def _validate(user_sun_sign, gender_preference, ethnicity_tags) -> List[str]:
    if not user_sun_sign:
        raise ValidationError("userSign is required")
    if not astro_calc.is_zodiac_sign(user_sun_sign):
        raise ValidationError(f"Unknown zodiac sign: {user_sun_sign}")
    if not gender_preference or not isinstance(gender_preference, str):
        raise ValidationError("genderPreference is required")
    if ethnicity_tags is None:
        raise ValidationError("racePreference is required")
    if isinstance(ethnicity_tags, str):
        ethnicity_tags = [ethnicity_tags]
    if not isinstance(ethnicity_tags, (list, tuple)):
        raise ValidationError("racePreference must be a list of strings")
    return [str(tag) for tag in ethnicity_tags if str(tag).strip()]


def generate_soulmate(
    conn,
    *,
    user_id: str,
    user_sun_sign: str,
    gender_preference: str,
    ethnicity_tags: Optional[Sequence[str]],
    rand: Optional[RandomSource] = None,
    cooldown_seconds: Optional[int] = None,
) -> SoulmateResult:
    """Generate, store and return a soulmate for ``user_id``.

    Nothing is written unless the image, upload and analysis all succeed.
    """
    tags = _validate(user_sun_sign, gender_preference, ethnicity_tags)
    rand = rand or random.random
    window = config.get_soulmate_cooldown_seconds() if cooldown_seconds is None else cooldown_seconds

    if window > 0:
        since = db.utc_now() - timedelta(seconds=window)
        if db.get_latest_soulmate(conn, user_id, since=since):
            logger.info("Recent soulmate for user=%s, refusing duplicate generation", user_id)
            raise DuplicateGenerationError("Please wait a moment before generating another soulmate")

    sun_sign = draw_sign(rand)
    moon_sign = draw_sign(rand)
    rising_sign = draw_sign(rand)
    soulmate_sign = sun_sign

    prompt = build_portrait_prompt(user_sun_sign, gender_preference, tags)
    try:
        source_url = openai_client.generate_image(prompt)
        image_url = storage.upload_image_from_url(source_url, storage.generate_image_file_name())
        # Soulmates always score high; the table value is only logged.
        base_score = astro_calc.score_compatibility(user_sun_sign, soulmate_sign)
        compatibility_score = draw_soulmate_score(rand)
        analysis = generate_analysis(user_sun_sign, soulmate_sign, gender_preference, tags)
    except (openai_client.OpenAIConfigError, storage.StorageConfigError) as exc:
        logger.error("Soulmate generation misconfigured: %s", exc)
        raise ConfigurationError("Soulmate service is not configured") from exc
    except (openai_client.OpenAIError, storage.StorageError) as exc:
        logger.error("Soulmate generation failed for user=%s: %s", user_id, exc)
        raise GenerationError("Failed to generate soulmate, please try again") from exc

    short_description = build_short_description(soulmate_sign, rising_sign)
    logger.info(
        "Soulmate for user=%s: %s/%s/%s score=%s base_score=%s",
        user_id, sun_sign, moon_sign, rising_sign, compatibility_score, base_score,
    )

    soulmate_id = db.insert_soulmate(
        conn,
        user_id=user_id,
        personal_info={
            "name": SOULMATE_NAME,
            "gender": gender_preference,
            "ethnicity": tags,
        },
        astrological_info={
            "sun_sign": sun_sign,
            "moon_sign": moon_sign,
            "rising_sign": rising_sign,
            "soulmate_sign": soulmate_sign,
        },
        compatibility_info={
            "compatibility_score": compatibility_score,
            "analysis": analysis,
            "short_description": short_description,
        },
        image_url=image_url,
    )

    return SoulmateResult(
        id=soulmate_id,
        image_url=image_url,
        soulmate_sign=soulmate_sign,
        compatibility_score=compatibility_score,
        analysis=analysis,
        short_description=short_description,
        sun_sign=sun_sign,
        moon_sign=moon_sign,
        rising_sign=rising_sign,
    )


def get_latest_soulmate(conn, user_id: str) -> Optional[dict]:
    return db.get_latest_soulmate(conn, user_id)


def delete_latest_soulmate(conn, user_id: str) -> bool:
    """Remove the newest soulmate; returns False when there was none."""
    latest = db.get_latest_soulmate(conn, user_id)
    if not latest:
        return False
    db.delete_soulmate(conn, latest["id"])
    return True
