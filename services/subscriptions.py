from __future__ import annotations

import logging

from sqlalchemy import update

from models.extensions import db
from models.assinatura_model import Assinatura, STATUS_ATIVA, STATUS_VENCIDA
from services.date_utils import isoformat, utcnow
from services.db_retry import run_with_retry
from services.input_validation import money

logger = logging.getLogger(__name__)


def expire_overdue_subscriptions(user_id: str) -> int:
    """Passa para "vencida" as assinaturas ativas cujo vencimento já passou.

    Update condicional no status: cada assinatura vira vencida uma única vez.
    """

    def _sweep() -> int:
        result = db.session.execute(
            update(Assinatura)
            .where(Assinatura.usuario_id == user_id)
            .where(Assinatura.status == STATUS_ATIVA)
            .where(Assinatura.data_vencimento.is_not(None))
            .where(Assinatura.data_vencimento < utcnow())
            .values(status=STATUS_VENCIDA, atualizado_em=utcnow())
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        return result.rowcount or 0

    count = run_with_retry(_sweep)
    if count:
        logger.info("%s assinatura(s) do usuário %s marcadas como vencidas", count, user_id)
    return count


def active_subscription(user_id: str) -> Assinatura | None:
    if not user_id:
        return None
    expire_overdue_subscriptions(user_id)
    return (
        Assinatura.query.filter_by(usuario_id=user_id, status=STATUS_ATIVA)
        .order_by(Assinatura.data_vencimento.desc())
        .first()
    )


def is_subscription_active(user) -> bool:
    if not user or not getattr(user, "is_authenticated", False):
        return False
    return active_subscription(user.id) is not None


def subscription_to_dict(assinatura: Assinatura) -> dict:
    plano = assinatura.plano
    now = utcnow()
    dias_restantes = None
    if assinatura.data_vencimento:
        dias_restantes = max((assinatura.data_vencimento - now).days, 0)
    return {
        "id": assinatura.id,
        "status": assinatura.status,
        "plano_id": assinatura.plano_id,
        "pagamento_id": assinatura.pagamento_id,
        "nome_plano": plano.nome if plano else None,
        "periodo": plano.periodo if plano else None,
        "preco": money(plano.preco) if plano else None,
        "quantidade_empresas": plano.quantidade_empresas if plano else None,
        "data_assinatura": isoformat(assinatura.data_assinatura),
        "data_vencimento": isoformat(assinatura.data_vencimento),
        "dias_restantes": dias_restantes,
    }


def list_user_subscriptions(user_id: str) -> list[dict]:
    expire_overdue_subscriptions(user_id)
    rows = (
        Assinatura.query.filter_by(usuario_id=user_id)
        .order_by(Assinatura.criado_em.desc())
        .all()
    )
    return [subscription_to_dict(r) for r in rows]
