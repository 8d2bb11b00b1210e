"""Sun/Moon/Rising sign derivation and sign compatibility.

Moon and Rising are coarse approximations: the moon is treated as passing
through all twelve signs over a 30-day cycle, and the ascendant advances one
sign every two hours with a small offset taken from the birth place text.
Neither uses coordinates or an ephemeris.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from dataclasses import dataclass, asdict
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

ZODIAC_SIGNS: Sequence[str] = (
    "Aries",
    "Taurus",
    "Gemini",
    "Cancer",
    "Leo",
    "Virgo",
    "Libra",
    "Scorpio",
    "Sagittarius",
    "Capricorn",
    "Aquarius",
    "Pisces",
)
DEFAULT_SIGN = "Aries"
UNKNOWN = "Unknown"

MOON_DEFAULT_HOUR = 12
RISING_DEFAULT_HOUR = 6
MOON_CYCLE_DAYS = 30
MOON_BUCKET_WIDTH = MOON_CYCLE_DAYS / len(ZODIAC_SIGNS)
DEFAULT_COMPATIBILITY = 50

# (sign, first month, first day); each sign runs until the day before the next entry.
SUN_SIGN_CUTOVERS = (
    ("Capricorn", 1, 1),
    ("Aquarius", 1, 20),
    ("Pisces", 2, 19),
    ("Aries", 3, 21),
    ("Taurus", 4, 20),
    ("Gemini", 5, 21),
    ("Cancer", 6, 21),
    ("Leo", 7, 23),
    ("Virgo", 8, 23),
    ("Libra", 9, 23),
    ("Scorpio", 10, 23),
    ("Sagittarius", 11, 22),
    ("Capricorn", 12, 22),
)

# Row sign -> column sign -> percent. Kept exactly as published, not symmetrised.
COMPATIBILITY_TABLE = {
    "Aries": {"Aries": 75, "Taurus": 60, "Gemini": 85, "Cancer": 55, "Leo": 90, "Virgo": 65, "Libra": 80, "Scorpio": 70, "Sagittarius": 95, "Capricorn": 50, "Aquarius": 85, "Pisces": 60},
    "Taurus": {"Aries": 60, "Taurus": 80, "Gemini": 55, "Cancer": 85, "Leo": 65, "Virgo": 90, "Libra": 70, "Scorpio": 75, "Sagittarius": 50, "Capricorn": 95, "Aquarius": 55, "Pisces": 80},
    "Gemini": {"Aries": 85, "Taurus": 55, "Gemini": 70, "Cancer": 60, "Leo": 80, "Virgo": 65, "Libra": 95, "Scorpio": 55, "Sagittarius": 85, "Capricorn": 60, "Aquarius": 90, "Pisces": 65},
    "Cancer": {"Aries": 55, "Taurus": 85, "Gemini": 60, "Cancer": 75, "Leo": 70, "Virgo": 80, "Libra": 65, "Scorpio": 95, "Sagittarius": 55, "Capricorn": 75, "Aquarius": 60, "Pisces": 90},
    "Leo": {"Aries": 90, "Taurus": 65, "Gemini": 80, "Cancer": 70, "Leo": 75, "Virgo": 60, "Libra": 85, "Scorpio": 65, "Sagittarius": 90, "Capricorn": 55, "Aquarius": 80, "Pisces": 70},
    "Virgo": {"Aries": 65, "Taurus": 90, "Gemini": 65, "Cancer": 80, "Leo": 60, "Virgo": 75, "Libra": 70, "Scorpio": 80, "Sagittarius": 60, "Capricorn": 85, "Aquarius": 65, "Pisces": 75},
    "Libra": {"Aries": 80, "Taurus": 70, "Gemini": 95, "Cancer": 65, "Leo": 85, "Virgo": 70, "Libra": 75, "Scorpio": 70, "Sagittarius": 80, "Capricorn": 65, "Aquarius": 90, "Pisces": 75},
    "Scorpio": {"Aries": 70, "Taurus": 75, "Gemini": 55, "Cancer": 95, "Leo": 65, "Virgo": 80, "Libra": 70, "Scorpio": 80, "Sagittarius": 60, "Capricorn": 75, "Aquarius": 65, "Pisces": 85},
    "Sagittarius": {"Aries": 95, "Taurus": 50, "Gemini": 85, "Cancer": 55, "Leo": 90, "Virgo": 60, "Libra": 80, "Scorpio": 60, "Sagittarius": 75, "Capricorn": 55, "Aquarius": 85, "Pisces": 65},
    "Capricorn": {"Aries": 50, "Taurus": 95, "Gemini": 60, "Cancer": 75, "Leo": 55, "Virgo": 85, "Libra": 65, "Scorpio": 75, "Sagittarius": 55, "Capricorn": 80, "Aquarius": 60, "Pisces": 70},
    "Aquarius": {"Aries": 85, "Taurus": 55, "Gemini": 90, "Cancer": 60, "Leo": 80, "Virgo": 65, "Libra": 90, "Scorpio": 65, "Sagittarius": 85, "Capricorn": 60, "Aquarius": 75, "Pisces": 70},
    "Pisces": {"Aries": 60, "Taurus": 80, "Gemini": 65, "Cancer": 90, "Leo": 70, "Virgo": 75, "Libra": 75, "Scorpio": 85, "Sagittarius": 65, "Capricorn": 70, "Aquarius": 70, "Pisces": 80},
}

SIGN_INSIGHTS = {
    "Aries": "Bold and pioneering, you lead with passion and courage. Your fiery spirit ignites inspiration in others.",
    "Taurus": "Grounded and reliable, you bring stability and beauty to everything you touch. Your patience is your superpower.",
    "Gemini": "Curious and adaptable, your mind sparkles with endless possibilities. Communication is your gift to the world.",
    "Cancer": "Nurturing and intuitive, you feel deeply and care profoundly. Your emotional wisdom guides others home.",
    "Leo": "Radiant and generous, you shine your light on everyone around you. Your creativity knows no bounds.",
    "Virgo": "Precise and thoughtful, you perfect the art of service. Your attention to detail creates lasting beauty.",
    "Libra": "Harmonious and diplomatic, you bring balance to chaos. Your sense of justice creates a better world.",
    "Scorpio": "Intense and transformative, you dive deep into life's mysteries. Your passion transforms everything you touch.",
    "Sagittarius": "Adventurous and philosophical, you explore both worlds and ideas. Your optimism lights the way forward.",
    "Capricorn": "Ambitious and disciplined, you build lasting legacies. Your determination conquers any mountain.",
    "Aquarius": "Innovative and humanitarian, you envision the future. Your uniqueness is exactly what the world needs.",
    "Pisces": "Compassionate and intuitive, you flow with life's currents. Your empathy heals the world around you.",
}
GENERIC_INSIGHT = "The stars have special plans for you."

_TWELVE_HOUR_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)$", re.IGNORECASE)
_TWENTY_FOUR_HOUR_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?$")


class AstroCalcError(Exception):
    """Birth data could not be interpreted."""

    def __init__(self, message: str, code: str = "invalid_birth_date"):
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass
class BigThree:
    sun_sign: str
    moon_sign: str
    rising_sign: str

    def to_dict(self) -> dict:
        return asdict(self)


def is_zodiac_sign(value: Optional[str]) -> bool:
    return isinstance(value, str) and value in COMPATIBILITY_TABLE


def parse_birth_date(value) -> dt.date:
    """Accept a date, an ISO ``YYYY-MM-DD`` string or the form's ``MM/DD/YYYY``."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise AstroCalcError("birth_date is required", code="missing_field")
    text = value.strip()
    for fmt in ("%Y-%m-%d", "%m/%d/%Y"):
        try:
            return dt.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise AstroCalcError("birth_date must be YYYY-MM-DD or MM/DD/YYYY")


def parse_birth_hour(birth_time: Optional[str]) -> Optional[int]:
    """Hour (0-23) from "H:MM AM/PM" or "HH:MM"; None when unknown or unreadable."""
    if birth_time is None:
        return None
    text = str(birth_time).strip()
    if not text or text.casefold() == UNKNOWN.casefold():
        return None

    match = _TWELVE_HOUR_RE.match(text)
    if match:
        hour = int(match.group(1))
        period = match.group(3).upper()
        if not 1 <= hour <= 12:
            logger.warning("Ignoring out-of-range birth time %r", text)
            return None
        if period == "AM" and hour == 12:
            hour = 0
        elif period == "PM" and hour != 12:
            hour += 12
        return hour

    match = _TWENTY_FOUR_HOUR_RE.match(text)
    if match:
        hour = int(match.group(1))
        if hour <= 23:
            return hour

    logger.warning("Could not parse birth time %r, using default hour", text)
    return None


def derive_sun_sign(birth_date: dt.date) -> str:
    key = (birth_date.month, birth_date.day)
    sign = SUN_SIGN_CUTOVERS[0][0]
    for candidate, month, day in SUN_SIGN_CUTOVERS:
        if key >= (month, day):
            sign = candidate
        else:
            break
    return sign


def derive_moon_sign(birth_date: dt.date, birth_time: Optional[str] = None) -> str:
    hour = parse_birth_hour(birth_time)
    if hour is None:
        hour = MOON_DEFAULT_HOUR
    day_of_year = birth_date.timetuple().tm_yday
    cycle = (day_of_year + hour / 24) % MOON_CYCLE_DAYS
    index = int(cycle // MOON_BUCKET_WIDTH) % len(ZODIAC_SIGNS)
    return ZODIAC_SIGNS[index]


def derive_rising_sign(
    birth_date: dt.date,
    birth_time: Optional[str] = None,
    birth_location: Optional[str] = None,
) -> str:
    # Hour and place only; the date does not move the ascendant here.
    hour = parse_birth_hour(birth_time)
    if hour is None:
        hour = RISING_DEFAULT_HOUR
    base = (hour // 2) % len(ZODIAC_SIGNS)
    location = str(birth_location) if birth_location is not None else ""
    offset = 0
    if location and location != UNKNOWN:
        offset = len(location) % 3
    return ZODIAC_SIGNS[(base + offset) % len(ZODIAC_SIGNS)]


def compute_big_three(
    birth_date,
    birth_time: Optional[str] = None,
    birth_location: Optional[str] = None,
) -> BigThree:
    """Sun, Moon and Rising for a birth profile; every slot is always a valid sign."""
    date_value = parse_birth_date(birth_date)
    signs = BigThree(
        sun_sign=derive_sun_sign(date_value),
        moon_sign=derive_moon_sign(date_value, birth_time),
        rising_sign=derive_rising_sign(date_value, birth_time, birth_location),
    )
    for field_name in ("sun_sign", "moon_sign", "rising_sign"):
        if not is_zodiac_sign(getattr(signs, field_name)):
            logger.warning("Empty %s for %s, using %s", field_name, date_value, DEFAULT_SIGN)
            setattr(signs, field_name, DEFAULT_SIGN)
    return signs


def score_compatibility(sign_a: str, sign_b: str) -> int:
    return COMPATIBILITY_TABLE.get(sign_a, {}).get(sign_b, DEFAULT_COMPATIBILITY)


def sign_insight(sign: str) -> str:
    return SIGN_INSIGHTS.get(sign, GENERIC_INSIGHT)
