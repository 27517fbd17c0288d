from __future__ import annotations

import logging
import time
from functools import wraps

from flask import current_app
from sqlalchemy.exc import DBAPIError, OperationalError

from models.extensions import db

logger = logging.getLogger(__name__)

# MySQL: deadlock / lock wait timeout
_MYSQL_LOCK_CODES = {1213, 1205}
# Postgres: deadlock_detected / serialization_failure / lock_not_available
_PG_LOCK_SQLSTATES = {"40P01", "40001", "55P03"}


def is_lock_error(exc: Exception) -> bool:
    if not isinstance(exc, DBAPIError):
        return False
    orig = getattr(exc, "orig", None)

    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _PG_LOCK_SQLSTATES:
        return True

    args = getattr(orig, "args", None) or ()
    if args and isinstance(args[0], int) and args[0] in _MYSQL_LOCK_CODES:
        return True

    if isinstance(exc, OperationalError):
        message = str(orig or exc).lower()
        if "database is locked" in message or "deadlock" in message:
            return True
    return False


def run_with_retry(fn, *args, attempts: int | None = None, delay: float | None = None, **kwargs):
    """Executa `fn` repetindo em deadlock / lock wait.

    Cada tentativa faz rollback da sessão antes de dormir (delay * tentativa).
    Outros erros sobem na primeira ocorrência.
    """
    if attempts is None:
        attempts = int(current_app.config.get("DB_RETRY_ATTEMPTS", 3))
    if delay is None:
        delay = float(current_app.config.get("DB_RETRY_DELAY", 0.1))
    attempts = max(attempts, 1)

    for attempt in range(1, attempts + 1):
        try:
            return fn(*args, **kwargs)
        except DBAPIError as exc:
            db.session.rollback()
            if not is_lock_error(exc) or attempt >= attempts:
                raise
            logger.warning(
                "Lock no banco em %s, tentando novamente (%s/%s)",
                getattr(fn, "__name__", "operacao"),
                attempt,
                attempts,
            )
            time.sleep(delay * attempt)


def retry_on_lock(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        return run_with_retry(fn, *args, **kwargs)

    return wrapper
