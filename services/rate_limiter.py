from __future__ import annotations

import time
from collections import deque
from functools import wraps
from threading import Lock

from flask import current_app, jsonify, request
from flask_login import current_user

# ação -> prefixo das chaves RATE_LIMIT_* no config
_ACTIONS = {
    "auth": "RATE_LIMIT_AUTH",
    "payment": "RATE_LIMIT_PAYMENT",
    "payment_status": "RATE_LIMIT_PAYMENT_STATUS",
    "admin": "RATE_LIMIT_ADMIN",
    "public": "RATE_LIMIT_PUBLIC",
}


class RateLimiter:
    def __init__(self) -> None:
        self._lock = Lock()
        self._buckets: dict[str, deque[float]] = {}

    def check(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int | None]:
        if limit <= 0 or window_seconds <= 0:
            return True, None

        now = time.time()
        cutoff = now - window_seconds
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = deque()
                self._buckets[key] = bucket

            while bucket and bucket[0] < cutoff:
                bucket.popleft()

            if len(bucket) >= limit:
                retry = int(window_seconds - (now - bucket[0])) if bucket else window_seconds
                return False, max(retry, 1)

            bucket.append(now)
            return True, None

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


limiter = RateLimiter()


def client_ip() -> str:
    # X-Forwarded-For só vale via ProxyFix (TRUSTED_PROXY_HOPS)
    return request.remote_addr or "unknown"


def json_field(name: str):
    """Identificador extra lido do corpo JSON (ex.: email no login)."""

    def _read() -> str | None:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return None
        value = payload.get(name)
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip().lower()[:254]

    return _read


def rate_limit_key(action: str, identifier: str | None = None) -> str:
    if identifier:
        return f"{action}:id:{identifier}"
    if getattr(current_user, "is_authenticated", False):
        return f"{action}:user:{current_user.id}"
    return f"{action}:ip:{client_ip()}"


def _too_many(retry_after: int):
    resp = jsonify(
        {
            "error": "rate_limited",
            "message": f"Muitas tentativas. Tente novamente em {retry_after}s.",
        }
    )
    resp.status_code = 429
    resp.headers["Retry-After"] = str(retry_after)
    return resp


def rate_limit(action: str, identifier=None):
    """Decorator: limite por usuário autenticado (ou IP) usando RATE_LIMIT_<AÇÃO>[_WINDOW].

    Com `identifier`, o valor retornado ganha um contador próprio, somado ao do IP.
    """
    prefix = _ACTIONS[action]

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            limit = int(current_app.config.get(prefix, 0))
            window = int(current_app.config.get(f"{prefix}_WINDOW", 0))

            keys = [rate_limit_key(action)]
            extra = identifier() if identifier else None
            if extra:
                keys.append(rate_limit_key(action, extra))

            for key in keys:
                allowed, retry_after = limiter.check(key, limit=limit, window_seconds=window)
                if not allowed:
                    return _too_many(retry_after or window)
            return fn(*args, **kwargs)

        return wrapper

    return decorator
