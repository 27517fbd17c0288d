from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import current_app

from models.plano_model import PERIODOS

CENTS = Decimal("0.01")

MAX_EMAIL_LEN = 254
MAX_COUPON_CODE_LEN = 50

_EMAIL_RE = re.compile(
    r"^[a-z0-9]([a-z0-9._+-]*[a-z0-9])?@[a-z0-9]([a-z0-9-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9-]*[a-z0-9])?)+$"
)
_COUPON_CODE_RE = re.compile(r"^[A-Z0-9_-]+$")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")


def _max_amount() -> Decimal:
    return Decimal(str(current_app.config.get("MAX_AMOUNT", "1000000")))


def _max_name_len() -> int:
    return int(current_app.config.get("NAME_MAX_LEN", 100))


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_amount(value, *, allow_zero: bool = True) -> Decimal | None:
    """Converte valores monetários ("89,99", "89.99", 89.99) para Decimal com 2 casas."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    if amount < 0 or (amount == 0 and not allow_zero):
        return None
    if amount > _max_amount():
        return None
    return quantize(amount)


def parse_int(value, *, min_value: int | None = None, max_value: int | None = None) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    if min_value is not None and number < min_value:
        return None
    if max_value is not None and number > max_value:
        return None
    return number


def normalize_periodo(value: str | None) -> str | None:
    if not value:
        return None
    periodo = str(value).strip().lower()
    if periodo in PERIODOS:
        return periodo
    return None


def normalize_coupon_code(value: str | None) -> str | None:
    if value is None:
        return None
    code = str(value).strip().upper()
    if not code or len(code) > MAX_COUPON_CODE_LEN:
        return None
    if not _COUPON_CODE_RE.match(code):
        return None
    return code


def normalize_email(value: str | None) -> str | None:
    if not isinstance(value, str):
        return None
    email = value.strip().lower()
    if not email or len(email) > MAX_EMAIL_LEN:
        return None
    if not _EMAIL_RE.match(email):
        return None
    return email


def normalize_name(value: str | None) -> str | None:
    if not isinstance(value, str):
        return None
    name = re.sub(r"\s+", " ", value.strip())
    name = re.sub(r"[<>\"'`]", "", name)
    if len(name) < 2 or len(name) > _max_name_len():
        return None
    return name


def normalize_text(value: str | None, *, max_len: int, min_len: int = 0) -> str | None:
    if value is None:
        return None
    text = _CONTROL_CHARS_RE.sub("", str(value)).strip()
    if min_len and len(text) < min_len:
        return None
    if len(text) > max_len:
        return None
    return text


def parse_beneficios(value) -> list[str] | None:
    """Aceita lista de strings ou texto separado por vírgula / quebra de linha."""
    if value is None:
        return []
    if isinstance(value, str):
        items = re.split(r"[,\n]", value)
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        return None
    result = []
    for item in items:
        if not isinstance(item, str):
            return None
        text = normalize_text(item, max_len=200)
        if text:
            result.append(text)
    return result


def money(value) -> float:
    """Decimal -> float com 2 casas (formato das respostas JSON)."""
    if value is None:
        return 0.0
    return float(quantize(Decimal(str(value))))


def parse_bool(value, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on", "sim"}
