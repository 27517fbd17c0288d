from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def utcnow() -> datetime:
    """Agora em UTC, sem tzinfo (formato gravado no banco)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_days(value: datetime, days: int) -> datetime:
    return value + timedelta(days=int(days))


def add_minutes(value: datetime, minutes: int) -> datetime:
    return value + timedelta(minutes=int(minutes))


def parse_datetime(value) -> datetime | None:
    """Aceita ISO 8601 (com ou sem fuso, com ou sem hora) e devolve UTC naive."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def isoformat(value: datetime | date | None) -> str | None:
    if not value:
        return None
    return value.isoformat()


def days_until(value: date | datetime | None, today: date | None = None) -> int | None:
    if not value:
        return None
    if isinstance(value, datetime):
        value = value.date()
    today = today or utcnow().date()
    return (value - today).days
