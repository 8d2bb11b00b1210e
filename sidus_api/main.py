"""FastAPI backend for Sidus."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Optional

from fastapi import FastAPI, Header
from fastapi.responses import JSONResponse

from sidus import astro_calc, cities, openai_client
from sidus import config as core_config
from sidus_api import chat_service, config, db, profile_service, soulmate_service
from sidus_api.auth import AuthError, resolve_user_id

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    core_config.setup_logging()
    with open_db():
        pass
    yield


app = FastAPI(title="Sidus API", lifespan=lifespan)
app.state.city_search = cities.CitySearch()


@contextmanager
def open_db():
    """Initialised connection for one request; closed on exit."""
    conn = db.get_connection()
    try:
        db.init_db(conn)
        yield conn
    finally:
        conn.close()


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": {"code": code, "message": message}})


def unauthorized(exc: AuthError) -> JSONResponse:
    return error_response(401, exc.code, exc.message)


@app.get("/api/health")
async def health():
    """Simple healthcheck."""
    return {"status": "ok"}


@app.get("/api/debug/info")
async def debug_info():
    """Lightweight diagnostics (no secrets)."""
    return {
        "ok": True,
        "debug": {
            "openai_configured": bool(config.get_openai_api_key()),
            "storage_configured": config.storage_configured(),
            "soulmate_cooldown_seconds": config.get_soulmate_cooldown_seconds(),
        },
    }


@app.put("/api/profile")
async def save_profile(
    payload: dict,
    x_user_id: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
):
    """Store birth data and the derived Big Three."""
    try:
        user_id = resolve_user_id(x_user_id, authorization)
    except AuthError as exc:
        return unauthorized(exc)

    with open_db() as conn:
        try:
            profile = profile_service.save_profile(conn, user_id, payload)
        except astro_calc.AstroCalcError as exc:
            return error_response(400, exc.code, exc.message)
    return {"ok": True, "profile": profile}


@app.get("/api/profile")
async def get_profile(
    x_user_id: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
):
    try:
        user_id = resolve_user_id(x_user_id, authorization)
    except AuthError as exc:
        return unauthorized(exc)

    with open_db() as conn:
        profile = profile_service.get_profile(conn, user_id)
    if not profile:
        return error_response(404, "not_found", "profile not found")
    return {"ok": True, "profile": profile}


@app.post("/api/astro/big-three")
async def big_three(payload: dict):
    """Stateless Big Three calculation."""
    try:
        signs = profile_service.big_three_for(payload)
    except astro_calc.AstroCalcError as exc:
        return error_response(400, exc.code, exc.message)
    return {"ok": True, **signs.to_dict(), "insight": astro_calc.sign_insight(signs.sun_sign)}


@app.get("/api/compatibility")
async def compatibility(sign_a: Optional[str] = None, sign_b: Optional[str] = None):
    if not sign_a or not sign_b:
        return error_response(400, "missing_field", "sign_a and sign_b are required")
    for sign in (sign_a, sign_b):
        if not astro_calc.is_zodiac_sign(sign):
            return error_response(400, "invalid_sign", f"Unknown zodiac sign: {sign}")
    return {
        "ok": True,
        "sign_a": sign_a,
        "sign_b": sign_b,
        "score": astro_calc.score_compatibility(sign_a, sign_b),
    }


@app.post("/api/soulmate")
def generate_soulmate(
    payload: dict,
    x_user_id: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
):
    """Generate a soulmate portrait, signs and analysis for the caller."""
    try:
        user_id = resolve_user_id(x_user_id, authorization)
    except AuthError as exc:
        return unauthorized(exc)

    with open_db() as conn:
        user_sign = payload.get("userSign")
        if not user_sign:
            profile = db.get_profile(conn, user_id)
            user_sign = profile["sun_sign"] if profile else None

        try:
            result = soulmate_service.generate_soulmate(
                conn,
                user_id=user_id,
                user_sun_sign=user_sign,
                gender_preference=payload.get("genderPreference"),
                ethnicity_tags=payload.get("racePreference"),
            )
        except soulmate_service.SoulmateError as exc:
            return error_response(exc.status_code, exc.code, exc.message)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Unexpected error generating soulmate for user=%s", user_id)
            return error_response(500, "internal_error", "Failed to generate soulmate")

    return {"ok": True, "soulmate": result.to_dict()}


@app.get("/api/soulmate")
async def get_soulmate(
    x_user_id: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
):
    """Latest soulmate of the caller, or null."""
    try:
        user_id = resolve_user_id(x_user_id, authorization)
    except AuthError as exc:
        return unauthorized(exc)

    with open_db() as conn:
        soulmate = soulmate_service.get_latest_soulmate(conn, user_id)
    return {"ok": True, "soulmate": soulmate}


@app.delete("/api/soulmate")
async def delete_soulmate(
    x_user_id: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
):
    try:
        user_id = resolve_user_id(x_user_id, authorization)
    except AuthError as exc:
        return unauthorized(exc)

    with open_db() as conn:
        deleted = soulmate_service.delete_latest_soulmate(conn, user_id)
    if not deleted:
        return error_response(404, "not_found", "soulmate not found")
    return {"ok": True}


@app.post("/api/people")
async def create_person(
    payload: dict,
    x_user_id: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
):
    try:
        user_id = resolve_user_id(x_user_id, authorization)
    except AuthError as exc:
        return unauthorized(exc)

    with open_db() as conn:
        try:
            person = profile_service.create_person(conn, user_id, payload)
        except astro_calc.AstroCalcError as exc:
            return error_response(400, exc.code, exc.message)
    return {"ok": True, "person": person}


@app.get("/api/people")
async def list_people(
    x_user_id: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
):
    try:
        user_id = resolve_user_id(x_user_id, authorization)
    except AuthError as exc:
        return unauthorized(exc)

    with open_db() as conn:
        people = profile_service.list_people(conn, user_id)
    return {"ok": True, "people": people}


@app.post("/api/chat")
def chat(
    payload: dict,
    x_user_id: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
):
    """Answer a chat message in the requested persona."""
    try:
        user_id = resolve_user_id(x_user_id, authorization)
    except AuthError as exc:
        return unauthorized(exc)

    message = payload.get("message")
    if not message or not str(message).strip():
        return error_response(400, "missing_field", "message is required")
    chat_type = str(payload.get("chat_type") or "general")

    with open_db() as conn:
        try:
            result = chat_service.reply(conn, user_id=user_id, chat_type=chat_type, message=str(message).strip())
        except openai_client.OpenAIConfigError:
            return error_response(500, "server_misconfigured", "OpenAI credentials missing or rejected")
        except openai_client.OpenAIError as exc:
            return error_response(502, "chat_error", str(exc))
    return {"ok": True, **result}


@app.get("/api/cities")
def search_cities(q: Optional[str] = None):
    """City autocomplete; short queries return an empty list."""
    return {"ok": True, "cities": app.state.city_search.search(q)}
