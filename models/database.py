from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import text

from models.extensions import db

logger = logging.getLogger(__name__)

DEFAULT_PLANS = (
    {
        "nome": "Básico",
        "periodo": "mensal",
        "preco": Decimal("0.10"),
        "duracao_dias": 30,
        "beneficios": ["1 usuário", "Relatório simples"],
        "quantidade_empresas": 1,
    },
    {
        "nome": "Premium",
        "periodo": "anual",
        "preco": Decimal("1499.90"),
        "duracao_dias": 365,
        "beneficios": [
            "Usuários ilimitados",
            "Relatórios completos",
            "Suporte 24/7",
            "Controle de estoque completo",
            "Módulo fiscal",
            "Gestão de múltiplas filiais",
        ],
        "quantidade_empresas": 10,
    },
)


def _seed_admin(app) -> None:
    from models.user_model import User

    email = (app.config.get("DEFAULT_ADMIN_EMAIL") or "").strip().lower()
    password = app.config.get("DEFAULT_ADMIN_PASSWORD") or ""
    if not email or not password:
        return

    if User.query.filter_by(papel="admin").first():
        return

    admin = User(nome="Administrador", email=email, papel="admin")
    admin.set_password(password)
    db.session.add(admin)
    db.session.commit()
    logger.info("Usuário admin padrão criado (%s).", email)


def _seed_plans(app) -> None:
    from models.plano_model import Plano

    if not app.config.get("SEED_DEFAULT_PLANS", True):
        return
    if Plano.query.first():
        return

    for data in DEFAULT_PLANS:
        db.session.add(Plano(**data))
    db.session.commit()
    logger.info("Planos padrão criados.")


def init_db(app):
    db.init_app(app)
    with app.app_context():
        # Garante que todas as tabelas entram no metadata
        from models.user_model import User  # noqa: F401
        from models.plano_model import Plano  # noqa: F401
        from models.cupom_model import Cupom  # noqa: F401
        from models.carrinho_model import CarrinhoItem  # noqa: F401
        from models.assinatura_model import Assinatura  # noqa: F401
        from models.pagamento_model import Pagamento  # noqa: F401
        from models.empresa_model import Empresa  # noqa: F401

        db.create_all()

        if db.engine.name == "sqlite":
            with db.engine.begin() as conn:
                conn.execute(text("PRAGMA journal_mode=WAL"))
                conn.execute(text("PRAGMA synchronous=NORMAL"))
                conn.execute(text("PRAGMA busy_timeout=5000"))

        _seed_admin(app)
        _seed_plans(app)
