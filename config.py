import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


class Config:
    # Ambiente (opcional) - use para rotular logs/UX
    APP_ENV = (
        os.getenv("APP_ENV")
        or os.getenv("FLASK_ENV")
        or os.getenv("NODE_ENV")
        or "development"
    ).lower()
    IS_PRODUCTION = APP_ENV in {"prod", "production"}

    def _is_weak_secret(value: str) -> bool:
        if not value:
            return True
        if value == "dev-secret-change-me":
            return True
        if len(value) < 32:
            return True
        return False

    # Assina os tokens de acesso (Bearer / cookie)
    SECRET_KEY = os.getenv("SECRET_KEY", "") or os.getenv("JWT_SECRET", "")
    if not SECRET_KEY:
        SECRET_KEY = "dev-secret-change-me"
    if IS_PRODUCTION and _is_weak_secret(SECRET_KEY):
        raise RuntimeError("SECRET_KEY ausente ou fraco em produção.")

    # Validade do token de acesso (padrão: 8h)
    AUTH_TOKEN_MAX_AGE = _env_int("AUTH_TOKEN_MAX_AGE", 8 * 60 * 60)
    AUTH_COOKIE_NAME = os.getenv("AUTH_COOKIE_NAME", "auth_token")
    AUTH_COOKIE_SECURE = IS_PRODUCTION

    # Banco:
    # - Local: sqlite
    # - Produção: DATABASE_URL (Postgres)
    DATABASE_URL = os.getenv("DATABASE_URL")

    if DATABASE_URL:
        # Alguns provedores usam "postgres://", SQLAlchemy prefere "postgresql://"
        if DATABASE_URL.startswith("postgres://"):
            DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

        if DATABASE_URL.startswith("postgresql+psycopg2://"):
            DATABASE_URL = DATABASE_URL.replace(
                "postgresql+psycopg2://", "postgresql+psycopg://", 1
            )

        # Se vier sem driver explícito (postgresql://), força psycopg (v3)
        if DATABASE_URL.startswith("postgresql://"):
            DATABASE_URL = DATABASE_URL.replace(
                "postgresql://", "postgresql+psycopg://", 1
            )

        SQLALCHEMY_DATABASE_URI = DATABASE_URL
    else:
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + os.path.join(BASE_DIR, "database.db")

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Evita conexoes reutilizadas mortas
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": _env_int("DB_POOL_RECYCLE", 280),
    }

    # Pool limitado só faz sentido fora do SQLite
    if DATABASE_URL and not DATABASE_URL.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS["pool_size"] = _env_int("DB_POOL_SIZE", 10)
        SQLALCHEMY_ENGINE_OPTIONS["pool_timeout"] = _env_int("DB_POOL_TIMEOUT", 30)
    else:
        SQLALCHEMY_ENGINE_OPTIONS["connect_args"] = {
            "check_same_thread": False,
            "timeout": _env_int("SQLITE_TIMEOUT", 30),
        }

    # Retentativas em deadlock / lock wait
    DB_RETRY_ATTEMPTS = _env_int("DB_RETRY_ATTEMPTS", 3)
    DB_RETRY_DELAY = float(os.getenv("DB_RETRY_DELAY", "0.1"))

    DEBUG = _env_bool("DEBUG", default=not IS_PRODUCTION)
    if IS_PRODUCTION:
        DEBUG = False
    TESTING = _env_bool("TESTING", default=False)
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # URL pública do backend (usada na notification_url do webhook)
    _backend_url = os.getenv("BACKEND_URL") or os.getenv("APP_BASE_URL")
    if not _backend_url:
        if IS_PRODUCTION:
            raise RuntimeError("BACKEND_URL deve estar configurado em produção.")
        _backend_url = "http://127.0.0.1:5000"
    BACKEND_URL = _backend_url.rstrip("/")

    # Mercado Pago (PIX)
    MERCADO_PAGO_ACCESS_TOKEN = os.getenv("MERCADO_PAGO_ACCESS_TOKEN", "")
    MERCADO_PAGO_BASE_URL = os.getenv("MERCADO_PAGO_BASE_URL", "https://api.mercadopago.com")
    # Quando preenchido, a assinatura x-signature do webhook é verificada (HMAC)
    MERCADO_PAGO_WEBHOOK_SECRET = os.getenv("MERCADO_PAGO_WEBHOOK_SECRET", "")
    MERCADO_PAGO_TIMEOUT = _env_int("MERCADO_PAGO_TIMEOUT", 25)
    MERCADO_PAGO_DEV_MODE = _env_bool("MERCADO_PAGO_DEV_MODE", default=not IS_PRODUCTION)

    # Tempo de expiração do PIX (padrão: 2 minutos)
    PAYMENT_EXPIRATION_MINUTES = _env_int("PAYMENT_EXPIRATION_MINUTES", 2)

    CART_MAX_QUANTITY = _env_int("CART_MAX_QUANTITY", 100)

    # Limites de entrada
    MAX_AMOUNT = os.getenv("MAX_AMOUNT", "1000000")
    NAME_MAX_LEN = _env_int("NAME_MAX_LEN", 100)

    # Proxies confiáveis à frente do app (X-Forwarded-For); 0 = conexão direta
    TRUSTED_PROXY_HOPS = _env_int("TRUSTED_PROXY_HOPS", 0)

    # Admin padrão criado no primeiro boot
    DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@multialmeida.com")
    DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "")
    SEED_DEFAULT_PLANS = _env_bool("SEED_DEFAULT_PLANS", default=True)

    # Segurança (opcionais, decididos uma vez no boot)
    SECURITY_LOG_ENABLED = _env_bool("SECURITY_LOG_ENABLED", default=True)
    ATTACK_DETECTION_ENABLED = _env_bool("ATTACK_DETECTION_ENABLED", default=True)
    MAX_CONTENT_LENGTH = _env_int("MAX_CONTENT_LENGTH", 10 * 1024)

    # Rate limiting (em memória - produção multi-instância exige Redis)
    RATE_LIMIT_AUTH = _env_int("RATE_LIMIT_AUTH", 5)
    RATE_LIMIT_AUTH_WINDOW = _env_int("RATE_LIMIT_AUTH_WINDOW", 900)
    RATE_LIMIT_PAYMENT = _env_int("RATE_LIMIT_PAYMENT", 10)
    RATE_LIMIT_PAYMENT_WINDOW = _env_int("RATE_LIMIT_PAYMENT_WINDOW", 3600)
    RATE_LIMIT_PAYMENT_STATUS = _env_int("RATE_LIMIT_PAYMENT_STATUS", 30)
    RATE_LIMIT_PAYMENT_STATUS_WINDOW = _env_int("RATE_LIMIT_PAYMENT_STATUS_WINDOW", 60)
    RATE_LIMIT_ADMIN = _env_int("RATE_LIMIT_ADMIN", 1000)
    RATE_LIMIT_ADMIN_WINDOW = _env_int("RATE_LIMIT_ADMIN_WINDOW", 300)
    RATE_LIMIT_PUBLIC = _env_int("RATE_LIMIT_PUBLIC", 30)
    RATE_LIMIT_PUBLIC_WINDOW = _env_int("RATE_LIMIT_PUBLIC_WINDOW", 300)
