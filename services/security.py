"""Log de eventos de segurança e bloqueio de entradas suspeitas.

Os dois recursos são ligados por flags do config (SECURITY_LOG_ENABLED,
ATTACK_DETECTION_ENABLED), lidas uma única vez em `init_security`.
"""

from __future__ import annotations

import logging
import re

from flask import jsonify, request
from flask_login import current_user

from services.rate_limiter import client_ip

security_logger = logging.getLogger("security")

_PATTERNS = (
    ("sql", re.compile(r"\bunion\b\s+(all\s+)?\bselect\b|;\s*(drop|delete|truncate|alter|insert|update)\b|'\s*(or|and)\s+'?\d+'?\s*=\s*'?\d+", re.I)),
    ("xss", re.compile(r"<script|javascript:|onerror\s*=|onload\s*=|<iframe|eval\(", re.I)),
    ("path_traversal", re.compile(r"\.\./|\.\.\\")),
    ("command_injection", re.compile(r"\$\(|`")),
)

# Campos livres que não passam pela detecção
_SKIP_FIELDS = {"senha", "password", "senhaAtual", "novaSenha", "nova_senha", "senha_atual"}

# Notificações do gateway não são inspecionadas
_SKIP_ENDPOINTS = {"payments.webhook", "healthz"}

_LOGGED_STATUSES = {401: "UNAUTHORIZED_ACCESS", 403: "PERMISSION_DENIED", 429: "RATE_LIMIT"}


def detect_suspicious_patterns(value) -> str | None:
    if not isinstance(value, str):
        return None
    for kind, regex in _PATTERNS:
        if regex.search(value):
            return kind
    return None


def _scan(value, path: str):
    if isinstance(value, str):
        kind = detect_suspicious_patterns(value)
        if kind:
            return kind, path, value
        return None
    if isinstance(value, dict):
        for key, item in value.items():
            if key in _SKIP_FIELDS:
                continue
            found = _scan(item, f"{path}.{key}")
            if found:
                return found
    elif isinstance(value, (list, tuple)):
        for idx, item in enumerate(value):
            found = _scan(item, f"{path}[{idx}]")
            if found:
                return found
    return None


def _user_id():
    if getattr(current_user, "is_authenticated", False):
        return current_user.id
    return None


def block_suspicious_input():
    if request.endpoint in _SKIP_ENDPOINTS:
        return None

    sources = (
        ("query", request.args.to_dict()),
        ("params", request.view_args or {}),
        ("body", request.get_json(silent=True) if request.is_json else None),
    )
    for name, data in sources:
        found = _scan(data, name)
        if not found:
            continue
        kind, field, value = found
        security_logger.warning(
            "ATTACK %s bloqueado em %s %s (campo=%s ip=%s): %r",
            kind,
            request.method,
            request.path,
            field,
            client_ip(),
            value[:100],
        )
        resp = jsonify(
            {
                "error": "suspicious_input",
                "message": "Input inválido detectado. Requisição bloqueada por segurança.",
            }
        )
        resp.status_code = 400
        return resp
    return None


def log_security_response(response):
    event = _LOGGED_STATUSES.get(response.status_code)
    if event:
        security_logger.warning(
            "%s %s %s status=%s ip=%s user=%s ua=%s",
            event,
            request.method,
            request.path,
            response.status_code,
            client_ip(),
            _user_id(),
            (request.headers.get("User-Agent") or "")[:120],
        )
    return response


def init_security(app) -> None:
    security_logger.disabled = not app.config.get("SECURITY_LOG_ENABLED", True)

    if app.config.get("SECURITY_LOG_ENABLED", True):
        app.after_request(log_security_response)

    if app.config.get("ATTACK_DETECTION_ENABLED", True):
        app.before_request(block_suspicious_input)
