"""Birth profiles, Big Three and tracked people."""

from __future__ import annotations

import logging
from typing import Optional

from sidus import astro_calc
from sidus_api import db

logger = logging.getLogger(__name__)


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def big_three_for(payload: dict) -> astro_calc.BigThree:
    """Stateless Big Three from a request body; time and place are coerced to text."""
    return astro_calc.compute_big_three(
        payload.get("birth_date"),
        _clean(payload.get("birth_time")),
        _clean(payload.get("birth_location")),
    )


def save_profile(conn, user_id: str, payload: dict) -> dict:
    """Validate birth data, compute the Big Three and upsert the user's profile.

    Raises ``AstroCalcError`` when the birth date is missing or unreadable.
    """
    birth_date = astro_calc.parse_birth_date(payload.get("birth_date"))
    birth_time = _clean(payload.get("birth_time"))
    birth_location = _clean(payload.get("birth_location"))
    big_three = astro_calc.compute_big_three(birth_date, birth_time, birth_location)

    ethnicities = payload.get("ethnicity_preferences") or []
    if isinstance(ethnicities, str):
        ethnicities = [ethnicities]
    if not isinstance(ethnicities, (list, tuple)):
        raise astro_calc.AstroCalcError("ethnicity_preferences must be a list", code="invalid_field")

    db.upsert_profile(
        conn,
        user_id=user_id,
        name=_clean(payload.get("name")),
        birth_date=birth_date.isoformat(),
        birth_time=birth_time,
        birth_location=birth_location,
        sun_sign=big_three.sun_sign,
        moon_sign=big_three.moon_sign,
        rising_sign=big_three.rising_sign,
        gender_preference=_clean(payload.get("gender_preference")),
        ethnicity_preferences=list(ethnicities),
    )
    logger.info("Saved profile for user=%s (%s)", user_id, big_three)
    return get_profile(conn, user_id)


def get_profile(conn, user_id: str) -> Optional[dict]:
    profile = db.get_profile(conn, user_id)
    if profile:
        profile["insight"] = astro_calc.sign_insight(profile["sun_sign"])
    return profile


def create_person(conn, user_id: str, payload: dict) -> dict:
    personal = payload.get("personal_info") or {}
    if not isinstance(personal, dict):
        raise astro_calc.AstroCalcError("personal_info must be an object", code="invalid_field")
    personal = dict(personal)
    if not _clean(personal.get("name")):
        raise astro_calc.AstroCalcError("personal_info.name is required", code="missing_field")

    astrological_info = {}
    if personal.get("birth_date"):
        birth_date = astro_calc.parse_birth_date(personal["birth_date"])
        personal["birth_date"] = birth_date.isoformat()
        big_three = astro_calc.compute_big_three(
            birth_date, _clean(personal.get("birth_time")), _clean(personal.get("birth_location"))
        )
        astrological_info = big_three.to_dict()

    person_id = db.insert_person(
        conn,
        user_id=user_id,
        personal_info=personal,
        astrological_info=astrological_info,
        notes=_clean(payload.get("notes")),
    )
    return {
        "id": person_id,
        "user_id": user_id,
        "personal_info": personal,
        "astrological_info": astrological_info,
        "notes": _clean(payload.get("notes")),
    }


def soulmate_as_person(soulmate: dict) -> dict:
    personal = soulmate.get("personal_info") or {}
    astro = soulmate.get("astrological_info") or {}
    return {
        "id": f"soulmate-{soulmate['id']}",
        "user_id": soulmate["user_id"],
        "personal_info": {
            "name": personal.get("name"),
            "relationship_type": "soulmate",
        },
        "astrological_info": {
            "sun_sign": astro.get("sun_sign"),
            "moon_sign": astro.get("moon_sign"),
            "rising_sign": astro.get("rising_sign"),
        },
        "notes": (soulmate.get("compatibility_info") or {}).get("short_description"),
        "photo_url": soulmate.get("image_url"),
        "created_at": soulmate["created_at"],
    }


def list_people(conn, user_id: str) -> list:
    """People and soulmates of the user, newest first."""
    people = db.list_people(conn, user_id)
    soulmates = [soulmate_as_person(s) for s in db.list_soulmates(conn, user_id)]
    return sorted(people + soulmates, key=lambda p: p["created_at"] or "", reverse=True)
