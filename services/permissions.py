from __future__ import annotations

from dataclasses import dataclass
from functools import wraps

from flask import jsonify, request
from flask_login import current_user


@dataclass(frozen=True)
class AccessDecision:
    ok: bool
    status: int = 200
    error: str | None = None
    message: str | None = None


def json_error(error: str, status: int, message: str | None = None):
    payload = {"error": error}
    if message:
        payload["message"] = message
    return jsonify(payload), status


def evaluate_access(user, *, admin: bool = False) -> AccessDecision:
    if not user or not getattr(user, "is_authenticated", False):
        return AccessDecision(False, 401, "not_authenticated", "Token não fornecido ou inválido")

    if admin and not getattr(user, "is_admin", False):
        return AccessDecision(False, 403, "forbidden", "Acesso restrito a administradores")

    return AccessDecision(True)


def require_api_access(*, admin: bool = False):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            decision = evaluate_access(current_user, admin=admin)
            if not decision.ok:
                return json_error(decision.error or "forbidden", decision.status, decision.message)
            return fn(*args, **kwargs)

        return wrapper

    return decorator
