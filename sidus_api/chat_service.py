"""Persona chat backed by the stored profile and recent history."""

from __future__ import annotations

import logging
from typing import Optional

from sidus import openai_client
from sidus_api import db

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10


def build_user_context(profile: Optional[dict]) -> str:
    if not profile:
        return ""
    parts = []
    if profile.get("name"):
        parts.append(f"Name: {profile['name']}")
    parts.append(
        f"Sun: {profile['sun_sign']}, Moon: {profile['moon_sign']}, Rising: {profile['rising_sign']}"
    )
    parts.append(f"Born: {profile['birth_date']}")
    if profile.get("birth_time"):
        parts.append(f"Birth time: {profile['birth_time']}")
    if profile.get("birth_location"):
        parts.append(f"Birth place: {profile['birth_location']}")
    return "\n".join(parts)


def reply(conn, *, user_id: str, chat_type: str, message: str) -> dict:
    profile = db.get_profile(conn, user_id)
    context = build_user_context(profile)
    system_prompt = openai_client.persona_for(chat_type)
    if context:
        system_prompt = f"{system_prompt}\n\nUser profile:\n{context}"

    history_rows = db.list_chat_messages(conn, user_id=user_id, chat_type=chat_type, limit=HISTORY_LIMIT)
    messages = [{"role": r["role"], "content": r["content"]} for r in reversed(history_rows)]
    messages.append({"role": "user", "content": message})

    answer = openai_client.ask_gpt(messages, chat_type=chat_type, system_prompt=system_prompt)

    db.insert_chat_message(conn, user_id=user_id, chat_type=chat_type, role="user", content=message)
    db.insert_chat_message(conn, user_id=user_id, chat_type=chat_type, role="assistant", content=answer)

    recent = db.list_chat_messages(conn, user_id=user_id, chat_type=chat_type, limit=6)
    history = [
        {"role": r["role"], "content": r["content"], "created_at": r["created_at"]}
        for r in reversed(recent)
    ]
    return {"answer": answer, "history": history}
