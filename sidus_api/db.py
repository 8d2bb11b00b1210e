"""SQLite helpers for the Sidus API."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sidus_api import config


DB_PATH: Optional[Path] = None


def get_db_path() -> Path:
    return DB_PATH or config.get_db_path()


def get_connection() -> sqlite3.Connection:
    """Get SQLite connection (thread-safe for our usage)."""
    path = get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def timestamp(value: datetime) -> str:
    """Fixed-width ISO string so stored timestamps compare correctly as text."""
    return value.isoformat(timespec="microseconds")


def init_db(conn: sqlite3.Connection) -> None:
    """Create tables if missing."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS user_profiles (
            user_id TEXT PRIMARY KEY,
            name TEXT,
            birth_date TEXT NOT NULL,
            birth_time TEXT,
            birth_location TEXT,
            sun_sign TEXT NOT NULL,
            moon_sign TEXT NOT NULL,
            rising_sign TEXT NOT NULL,
            gender_preference TEXT,
            ethnicity_preferences TEXT,
            created_at TEXT,
            updated_at TEXT
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS soulmates (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            personal_info TEXT NOT NULL,
            astrological_info TEXT NOT NULL,
            compatibility_info TEXT NOT NULL,
            image_url TEXT NOT NULL,
            created_at TEXT NOT NULL
        );
        """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_soulmates_user_created ON soulmates (user_id, created_at);"
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS people (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            personal_info TEXT NOT NULL,
            astrological_info TEXT,
            notes TEXT,
            created_at TEXT
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS chat_messages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            chat_type TEXT NOT NULL,
            role TEXT NOT NULL,
            content TEXT NOT NULL,
            created_at TEXT
        );
        """
    )
    conn.commit()


def _loads(raw):
    if raw is None:
        return None
    return json.loads(raw)


def _dumps(value) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def upsert_profile(
    conn: sqlite3.Connection,
    *,
    user_id: str,
    name: Optional[str],
    birth_date: str,
    birth_time: Optional[str],
    birth_location: Optional[str],
    sun_sign: str,
    moon_sign: str,
    rising_sign: str,
    gender_preference: Optional[str],
    ethnicity_preferences: Optional[list],
) -> None:
    """Insert or replace the birth profile and cached Big Three for a user."""
    now = timestamp(utc_now())
    conn.execute(
        """
        INSERT INTO user_profiles
            (user_id, name, birth_date, birth_time, birth_location, sun_sign, moon_sign, rising_sign,
             gender_preference, ethnicity_preferences, created_at, updated_at)
        VALUES
            (:user_id, :name, :birth_date, :birth_time, :birth_location, :sun_sign, :moon_sign, :rising_sign,
             :gender_preference, :ethnicity_preferences, :created_at, :updated_at)
        ON CONFLICT(user_id) DO UPDATE SET
            name=excluded.name,
            birth_date=excluded.birth_date,
            birth_time=excluded.birth_time,
            birth_location=excluded.birth_location,
            sun_sign=excluded.sun_sign,
            moon_sign=excluded.moon_sign,
            rising_sign=excluded.rising_sign,
            gender_preference=excluded.gender_preference,
            ethnicity_preferences=excluded.ethnicity_preferences,
            updated_at=excluded.updated_at;
        """,
        {
            "user_id": user_id,
            "name": name,
            "birth_date": birth_date,
            "birth_time": birth_time,
            "birth_location": birth_location,
            "sun_sign": sun_sign,
            "moon_sign": moon_sign,
            "rising_sign": rising_sign,
            "gender_preference": gender_preference,
            "ethnicity_preferences": _dumps(ethnicity_preferences),
            "created_at": now,
            "updated_at": now,
        },
    )
    conn.commit()


def get_profile(conn: sqlite3.Connection, user_id: str) -> Optional[dict]:
    row = conn.execute("SELECT * FROM user_profiles WHERE user_id = ?", (user_id,)).fetchone()
    if not row:
        return None
    profile = dict(row)
    profile["ethnicity_preferences"] = _loads(profile["ethnicity_preferences"]) or []
    return profile


def _soulmate_from_row(row: sqlite3.Row) -> dict:
    return {
        "id": row["id"],
        "user_id": row["user_id"],
        "personal_info": _loads(row["personal_info"]),
        "astrological_info": _loads(row["astrological_info"]),
        "compatibility_info": _loads(row["compatibility_info"]),
        "image_url": row["image_url"],
        "created_at": row["created_at"],
    }


def insert_soulmate(
    conn: sqlite3.Connection,
    *,
    user_id: str,
    personal_info: dict,
    astrological_info: dict,
    compatibility_info: dict,
    image_url: str,
) -> int:
    now = timestamp(utc_now())
    cur = conn.execute(
        """
        INSERT INTO soulmates (user_id, personal_info, astrological_info, compatibility_info, image_url, created_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            user_id,
            _dumps(personal_info),
            _dumps(astrological_info),
            _dumps(compatibility_info),
            image_url,
            now,
        ),
    )
    conn.commit()
    return cur.lastrowid


def get_soulmate(conn: sqlite3.Connection, soulmate_id: int) -> Optional[dict]:
    row = conn.execute("SELECT * FROM soulmates WHERE id = ?", (soulmate_id,)).fetchone()
    return _soulmate_from_row(row) if row else None


def get_latest_soulmate(
    conn: sqlite3.Connection, user_id: str, *, since: Optional[datetime] = None
) -> Optional[dict]:
    """Most recent soulmate for the user, optionally only if created at or after ``since``."""
    if since is None:
        row = conn.execute(
            "SELECT * FROM soulmates WHERE user_id = ? ORDER BY created_at DESC, id DESC LIMIT 1",
            (user_id,),
        ).fetchone()
    else:
        row = conn.execute(
            """
            SELECT * FROM soulmates
            WHERE user_id = ? AND created_at >= ?
            ORDER BY created_at DESC, id DESC
            LIMIT 1
            """,
            (user_id, timestamp(since)),
        ).fetchone()
    return _soulmate_from_row(row) if row else None


def list_soulmates(conn: sqlite3.Connection, user_id: str) -> list:
    rows = conn.execute(
        "SELECT * FROM soulmates WHERE user_id = ? ORDER BY created_at DESC, id DESC",
        (user_id,),
    ).fetchall()
    return [_soulmate_from_row(r) for r in rows]


def delete_soulmate(conn: sqlite3.Connection, soulmate_id: int) -> None:
    conn.execute("DELETE FROM soulmates WHERE id = ?", (soulmate_id,))
    conn.commit()


def insert_person(
    conn: sqlite3.Connection,
    *,
    user_id: str,
    personal_info: dict,
    astrological_info: Optional[dict],
    notes: Optional[str],
) -> int:
    now = timestamp(utc_now())
    cur = conn.execute(
        """
        INSERT INTO people (user_id, personal_info, astrological_info, notes, created_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        (user_id, _dumps(personal_info), _dumps(astrological_info), notes, now),
    )
    conn.commit()
    return cur.lastrowid


def list_people(conn: sqlite3.Connection, user_id: str) -> list:
    rows = conn.execute(
        "SELECT * FROM people WHERE user_id = ? ORDER BY created_at DESC, id DESC",
        (user_id,),
    ).fetchall()
    return [
        {
            "id": r["id"],
            "user_id": r["user_id"],
            "personal_info": _loads(r["personal_info"]),
            "astrological_info": _loads(r["astrological_info"]) or {},
            "notes": r["notes"],
            "created_at": r["created_at"],
        }
        for r in rows
    ]


def insert_chat_message(
    conn: sqlite3.Connection, *, user_id: str, chat_type: str, role: str, content: str
) -> int:
    now = timestamp(utc_now())
    cur = conn.execute(
        """
        INSERT INTO chat_messages (user_id, chat_type, role, content, created_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        (user_id, chat_type, role, content, now),
    )
    conn.commit()
    return cur.lastrowid


def list_chat_messages(conn: sqlite3.Connection, *, user_id: str, chat_type: str, limit: int = 20):
    """Return recent chat messages, newest first."""
    return conn.execute(
        """
        SELECT role, content, created_at
        FROM chat_messages
        WHERE user_id = ? AND chat_type = ?
        ORDER BY id DESC
        LIMIT ?
        """,
        (user_id, chat_type, limit),
    ).fetchall()
