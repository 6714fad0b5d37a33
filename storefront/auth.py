"""Bearer-token identity for API routes.

Tokens are issued elsewhere; this module only verifies them (HS256) and
exposes the caller's ``id`` and ``role`` on ``flask.g.user``.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Dict

import jwt
from flask import current_app, g, request

from shopcore.services.errors import Forbidden, Unauthorized


def _secret() -> str:
    return current_app.config["SHOP_CONFIG"].jwt_secret


def _decode(token: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, _secret(), algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid token")
    user_id = payload.get("userId") or payload.get("sub")
    if not user_id:
        raise Unauthorized("Invalid token")
    return {"id": str(user_id), "role": payload.get("role") or "user"}


def _authenticate() -> Dict[str, Any]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized()
    g.user = _decode(token.strip())
    return g.user


def require_auth(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        _authenticate()
        return view(*args, **kwargs)

    return wrapper


def require_admin(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        user = _authenticate()
        if user["role"] != "admin":
            raise Forbidden("Admin access required")
        return view(*args, **kwargs)

    return wrapper


def current_user_id() -> str:
    return g.user["id"]


def is_admin() -> bool:
    return g.get("user", {}).get("role") == "admin"
