from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from models.extensions import db
from models.assinatura_model import Assinatura, STATUS_INATIVA
from models.cupom_model import Cupom
from models.pagamento_model import Pagamento, STATUS_EXPIRADO, STATUS_PENDENTE
from models.plano_model import Plano
from services.cart import get_cart_item
from services.date_utils import add_minutes, isoformat, utcnow
from services.db_retry import run_with_retry
from services.errors import GatewayError, NotFoundError, StatePersistenceError, ValidationError
from services.input_validation import money, normalize_periodo, quantize
from services.mercadopago import MercadoPagoError, get_gateway

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _qr_data_uri(qr_base64: str | None) -> str | None:
    if not qr_base64:
        return None
    return f"data:image/png;base64,{qr_base64}"


def _expiration_minutes() -> int:
    return max(int(current_app.config.get("PAYMENT_EXPIRATION_MINUTES", 2)), 1)


def _webhook_url() -> str:
    return f"{current_app.config['BACKEND_URL']}/api/payments/webhook"


def initiate_payment(user, ip: str | None = None) -> dict:
    """Cria a cobrança PIX do carrinho do usuário e grava o pagamento pendente.

    A chamada ao gateway acontece fora de qualquer transação; o insert roda
    numa transação curta depois dela.
    """
    item = get_cart_item(user.id)
    if not item:
        raise NotFoundError("Carrinho vazio", code="empty_cart")

    periodo = normalize_periodo(item.periodo)
    if not periodo:
        raise ValidationError("Período inválido", code="invalid_period")

    plano = Plano.query.filter_by(id=item.plano_id, periodo=periodo).first()
    if not plano:
        raise NotFoundError("Plano não encontrado", code="plan_not_found")

    preco_original = quantize(Decimal(str(plano.preco)))
    desconto = ZERO
    cupom_id = None
    cupom_info = None

    carried = Decimal(str(item.cupom_desconto or 0))
    if item.cupom_codigo and carried > 0:
        cupom = Cupom.query.filter_by(codigo=item.cupom_codigo).first()
        if cupom:
            desconto = quantize(max(ZERO, min(carried, preco_original)))
            cupom_id = cupom.id
            cupom_info = {
                "codigo": cupom.codigo,
                "tipo": cupom.tipo,
                "valor": money(cupom.valor),
                "desconto": money(desconto),
            }
        else:
            logger.warning(
                "Cupom %s do carrinho não existe mais; pagamento sem desconto.",
                item.cupom_codigo,
            )

    valor_final = quantize(preco_original - desconto)
    if valor_final <= ZERO:
        raise ValidationError(
            "Valor final do pagamento deve ser maior que zero",
            code="invalid_amount",
        )

    plan_snapshot = {
        "id": plano.id,
        "nome": plano.nome,
        "periodo": plano.periodo,
        "preco": money(valor_final),
        "precoOriginal": money(preco_original),
        "duracaoDias": plano.duracao_dias,
        "beneficios": plano.beneficios or [],
    }
    user_snapshot = {"id": user.id, "nome": user.nome, "email": user.email}

    # Encerra a transação de leitura antes da chamada externa
    db.session.commit()

    payment_id = str(uuid.uuid4())
    try:
        charge = get_gateway().create_pix_payment(
            amount=valor_final,
            description=f"Assinatura {plan_snapshot['nome']} - {periodo}",
            payer_email=user_snapshot["email"],
            payer_name=user_snapshot["nome"],
            external_reference=payment_id,
            notification_url=_webhook_url(),
        )
    except MercadoPagoError as exc:
        logger.warning("Falha ao criar cobrança PIX para o usuário %s", user_snapshot["id"], exc_info=True)
        raise GatewayError("Erro ao iniciar pagamento", details=str(exc)) from exc

    expiration = add_minutes(utcnow(), _expiration_minutes())

    def _persist() -> None:
        db.session.add(
            Pagamento(
                id=payment_id,
                usuario_id=user_snapshot["id"],
                plano_id=plan_snapshot["id"],
                valor=valor_final,
                metodo_pagamento="pix",
                status_pagamento=STATUS_PENDENTE,
                transaction_id=charge.transaction_id,
                data_expiracao=expiration,
                qr_code=charge.qr_code_base64,
                qr_code_text=charge.qr_code,
                cupom_id=cupom_id,
                valor_desconto=desconto,
                ip_usuario=ip,
            )
        )
        db.session.commit()

    try:
        run_with_retry(_persist)
    except SQLAlchemyError as exc:
        logger.error(
            "Cobrança %s criada no gateway mas não gravada (pagamento %s)",
            charge.transaction_id,
            payment_id,
            exc_info=True,
        )
        raise StatePersistenceError("Erro ao registrar pagamento", details=str(exc)) from exc

    logger.info(
        "Pagamento %s iniciado (usuário %s, plano %s, valor %s)",
        payment_id,
        user_snapshot["id"],
        plan_snapshot["id"],
        valor_final,
    )

    return {
        "paymentId": payment_id,
        "qrCode": _qr_data_uri(charge.qr_code_base64),
        "pixCode": charge.qr_code,
        "expirationTime": isoformat(expiration),
        "plan": plan_snapshot,
        "cupom": cupom_info,
        "user": {"nome": user_snapshot["nome"], "email": user_snapshot["email"]},
    }


def _deactivate_linked_subscription(assinatura_id: str | None) -> None:
    if not assinatura_id:
        return
    db.session.execute(
        update(Assinatura)
        .where(Assinatura.id == assinatura_id)
        .values(status=STATUS_INATIVA, atualizado_em=utcnow())
        .execution_options(synchronize_session=False)
    )


def _flip_to_expired(pagamento_id: str, *, only_overdue: bool) -> bool:
    stmt = (
        update(Pagamento)
        .where(Pagamento.id == pagamento_id)
        .where(Pagamento.status_pagamento == STATUS_PENDENTE)
    )
    if only_overdue:
        stmt = stmt.where(Pagamento.data_expiracao.is_not(None)).where(
            Pagamento.data_expiracao < utcnow()
        )
    result = db.session.execute(
        stmt.values(status_pagamento=STATUS_EXPIRADO, atualizado_em=utcnow()).execution_options(
            synchronize_session=False
        )
    )
    if result.rowcount != 1:
        db.session.rollback()
        return False

    assinatura_id = db.session.execute(
        db.select(Pagamento.assinatura_id).where(Pagamento.id == pagamento_id)
    ).scalar()
    _deactivate_linked_subscription(assinatura_id)
    db.session.commit()
    return True


def expire_if_overdue(pagamento_id: str) -> bool:
    """Pendente com prazo vencido vira expirado. Só uma leitura vence a corrida."""
    expired = run_with_retry(_flip_to_expired, pagamento_id, only_overdue=True)
    if expired:
        logger.info("Pagamento %s expirado", pagamento_id)
    return expired


def _load_for_user(pagamento_id: str, user) -> Pagamento:
    pagamento = db.session.get(Pagamento, pagamento_id)
    if not pagamento:
        raise NotFoundError("Pagamento não encontrado", code="payment_not_found")
    if pagamento.usuario_id != user.id and not getattr(user, "is_admin", False):
        raise NotFoundError("Pagamento não encontrado", code="payment_not_found")
    return pagamento


def _fresh(pagamento_id: str, user) -> Pagamento:
    pagamento = _load_for_user(pagamento_id, user)
    if pagamento.status_pagamento == STATUS_PENDENTE and expire_if_overdue(pagamento.id):
        db.session.expire_all()
        pagamento = db.session.get(Pagamento, pagamento_id)
    return pagamento


def get_payment_status(pagamento_id: str, user) -> dict:
    pagamento = _fresh(pagamento_id, user)
    return {"status": pagamento.status_pagamento}


def payment_to_details(pagamento: Pagamento) -> dict:
    plano = pagamento.plano
    cupom = pagamento.cupom
    return {
        "paymentId": pagamento.id,
        "status": pagamento.status_pagamento,
        "qrCode": _qr_data_uri(pagamento.qr_code),
        "qrCodeText": pagamento.qr_code_text,
        "expirationTime": isoformat(pagamento.data_expiracao),
        "usuarioId": pagamento.usuario_id,
        "planId": pagamento.plano_id,
        "assinaturaId": pagamento.assinatura_id,
        "valorFinal": money(pagamento.valor),
        "valorDesconto": money(pagamento.valor_desconto),
        "cupomId": pagamento.cupom_id,
        "dataCriacao": isoformat(pagamento.data_criacao),
        "dataPagamento": isoformat(pagamento.data_pagamento),
        "nomePlano": plano.nome if plano else None,
        "periodoPlano": plano.periodo if plano else None,
        "precoPlano": money(plano.preco) if plano else None,
        "duracaoDiasPlano": plano.duracao_dias if plano else None,
        "beneficiosPlano": (plano.beneficios or []) if plano else [],
        "quantidadeEmpresas": plano.quantidade_empresas if plano else None,
        "cupomCodigo": cupom.codigo if cupom else None,
        "cupomTipo": cupom.tipo if cupom else None,
        "cupomValor": money(cupom.valor) if cupom else None,
    }


def get_payment_details(pagamento_id: str, user) -> dict:
    return payment_to_details(_fresh(pagamento_id, user))


def expire_payment(pagamento_id: str, user) -> None:
    """Expiração explícita (ex.: contador do front zerou). Só vale para pendentes."""
    _load_for_user(pagamento_id, user)
    expired = run_with_retry(_flip_to_expired, pagamento_id, only_overdue=False)
    if not expired:
        raise NotFoundError(
            "Pagamento pendente não encontrado ou já processado.",
            code="payment_not_pending",
        )
    logger.info("Pagamento %s expirado manualmente", pagamento_id)


def list_admin_payments() -> list[dict]:
    rows = Pagamento.query.order_by(Pagamento.data_criacao.desc()).all()
    result = []
    for p in rows:
        result.append(
            {
                "id": p.id,
                "mercadopago_id": p.transaction_id,
                "valor": money(p.valor),
                "valor_desconto": money(p.valor_desconto),
                "status": p.status_pagamento,
                "data_criacao": isoformat(p.data_criacao),
                "data_pagamento": isoformat(p.data_pagamento),
                "data_expiracao": isoformat(p.data_expiracao),
                "usuario_nome": p.usuario.nome if p.usuario else None,
                "usuario_email": p.usuario.email if p.usuario else None,
                "plano_nome": p.plano.nome if p.plano else None,
                "cupom_codigo": p.cupom.codigo if p.cupom else None,
            }
        )
    return result
