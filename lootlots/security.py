"""Signed admin tokens for the ``/api/admin`` routes.

Tokens are itsdangerous payloads ``{uid, scopes, iat, ttl, typ}`` signed
with the app's SECRET_KEY. Send one as ``Authorization: Bearer <token>`` or
``X-Admin-Token``.
"""
from __future__ import annotations

import time
from typing import Iterable, Optional

from flask import abort, current_app, g, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .config import ADMIN_SCOPE

TOKEN_SALT = "lootlots-admin-v1"
DEFAULT_TTL = 60 * 60 * 8  # 8 hours
MAX_AGE = DEFAULT_TTL * 2


def _signer() -> URLSafeTimedSerializer:
    secret = current_app.config.get("SECRET_KEY")
    if not secret:
        raise RuntimeError("SECRET_KEY must be configured to use admin tokens.")
    return URLSafeTimedSerializer(secret_key=secret, salt=TOKEN_SALT)


def issue_admin_token(uid: str = "ops", scopes: Optional[Iterable[str]] = None,
                      ttl: Optional[int] = None) -> str:
    scopes = [ADMIN_SCOPE] if scopes is None else list(scopes)
    return _signer().dumps({
        "uid": uid,
        "scopes": scopes,
        "iat": int(time.time()),
        "ttl": int(ttl or DEFAULT_TTL),
        "typ": "admin",
    })


def verify_admin_token(token: str, required_scopes: Optional[Iterable[str]] = None) -> dict:
    """Return the token payload, or abort with 401 (bad token) / 403 (scopes)."""
    try:
        data = _signer().loads(token, max_age=MAX_AGE)
    except SignatureExpired:
        abort(401, description="Admin token expired.")
    except BadSignature:
        abort(401, description="Invalid admin token.")

    if data.get("typ") != "admin":
        abort(401, description="Wrong token type.")
    expires = int(data.get("iat", 0)) + int(data.get("ttl", DEFAULT_TTL))
    if time.time() > expires:
        abort(401, description="Admin token TTL exceeded.")

    missing = set(required_scopes or ()) - set(data.get("scopes") or ())
    if missing:
        abort(403, description=f"Missing admin scopes: {', '.join(sorted(missing))}.")
    return data


def _token_from_request() -> Optional[str]:
    scheme, _, value = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return request.headers.get("X-Admin-Token")


def admin_guard(required_scopes: Optional[Iterable[str]] = None) -> dict:
    """Verify the request's admin token and expose its payload as ``g.admin``."""
    token = _token_from_request()
    if not token:
        abort(401, description="Admin token required.")
    g.admin = verify_admin_token(token, required_scopes)
    return g.admin
