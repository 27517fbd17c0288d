from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from models.extensions import db
from models.assinatura_model import Assinatura, STATUS_ATIVA
from models.pagamento_model import (
    Pagamento,
    STATUS_APROVADO,
    STATUS_CANCELADO,
    STATUS_EXPIRADO,
    STATUS_PENDENTE,
    STATUS_REPROVADO,
)
from services.cart import clear_cart
from services.coupons import increment_usage
from services.date_utils import add_days, utcnow
from services.db_retry import run_with_retry
from services.errors import BillingError, GatewayError, NotFoundError
from services.mercadopago import GatewayPayment, MercadoPagoError, get_gateway, map_status

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security")

# Transições aceitas vindas do gateway (origem -> destinos)
_ALLOWED_TRANSITIONS = {
    STATUS_PENDENTE: {STATUS_APROVADO, STATUS_REPROVADO, STATUS_CANCELADO},
    # Pago depois do prazo local: o dinheiro entrou, a assinatura é criada
    STATUS_EXPIRADO: {STATUS_APROVADO},
}


class WebhookUnauthorized(BillingError):
    status = 401
    code = "unauthorized"


@dataclass(frozen=True)
class Notification:
    payment_id: str
    kind: str


@dataclass(frozen=True)
class ReconcileResult:
    pagamento_id: str
    status: str
    changed: bool
    assinatura_id: str | None = None

    @property
    def message(self) -> str:
        if self.changed:
            return "Webhook processado com sucesso."
        return "Webhook já processado."


def _parse_signature(header: str) -> dict:
    parts = {}
    for chunk in (header or "").split(","):
        key, _, value = chunk.partition("=")
        if key.strip() and value.strip():
            parts[key.strip().lower()] = value.strip()
    return parts


def verify_request(headers, query_args) -> None:
    """Exige x-signature ou x-request-id; com segredo configurado, valida o HMAC.

    Manifesto do Mercado Pago: "id:{data.id};request-id:{x-request-id};ts:{ts};"
    """
    signature = headers.get("x-signature")
    request_id = headers.get("x-request-id")
    if not signature and not request_id:
        security_logger.warning("Webhook sem cabeçalhos de assinatura")
        raise WebhookUnauthorized("Cabeçalhos de assinatura ausentes.")

    secret = current_app.config.get("MERCADO_PAGO_WEBHOOK_SECRET") or ""
    if not secret:
        return

    parts = _parse_signature(signature or "")
    ts = parts.get("ts")
    received = parts.get("v1")
    if not ts or not received:
        security_logger.warning("Webhook com x-signature malformado")
        raise WebhookUnauthorized("Assinatura inválida.")

    data_id = (query_args.get("data.id") or "").strip()
    if data_id.isalnum():
        data_id = data_id.lower()

    manifest = ""
    if data_id:
        manifest += f"id:{data_id};"
    if request_id:
        manifest += f"request-id:{request_id};"
    manifest += f"ts:{ts};"

    expected = hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, received):
        security_logger.warning("Webhook com assinatura HMAC inválida (request-id=%s)", request_id)
        raise WebhookUnauthorized("Assinatura inválida.")


def extract_notification(body, query_args) -> Notification | None:
    """Aceita o formato webhook (action/type/data.id) e o IPN (query type/topic + id)."""
    body = body if isinstance(body, dict) else {}
    data = body.get("data") if isinstance(body.get("data"), dict) else {}

    action = str(body.get("action") or "")
    kind = str(body.get("type") or body.get("topic") or "")
    payment_id = data.get("id")

    if payment_id and (action.startswith("payment.") or kind == "payment"):
        return Notification(payment_id=str(payment_id), kind=kind or "payment")

    kind = str(query_args.get("type") or query_args.get("topic") or "")
    payment_id = query_args.get("data.id") or query_args.get("id")
    if kind == "payment" and payment_id:
        return Notification(payment_id=str(payment_id), kind=kind)

    return None


def fetch_gateway_payment(payment_id: str) -> GatewayPayment:
    try:
        gateway_payment = get_gateway().get_payment(payment_id)
    except MercadoPagoError as exc:
        if exc.status_code == 404:
            raise NotFoundError(
                "Pagamento não encontrado ou sem referência externa.",
                code="payment_not_found",
            ) from exc
        logger.warning("Falha ao consultar pagamento %s no gateway", payment_id, exc_info=True)
        raise GatewayError("Erro ao processar webhook", code="webhook_failed", details=str(exc)) from exc

    if not gateway_payment.external_reference:
        raise NotFoundError(
            "Pagamento não encontrado ou sem referência externa.",
            code="payment_not_found",
        )
    return gateway_payment


def _approve(pagamento: Pagamento, now) -> str | None:
    """Cria a assinatura e aplica os efeitos da aprovação na transação corrente."""
    plano = pagamento.plano
    assinatura = Assinatura(
        usuario_id=pagamento.usuario_id,
        plano_id=pagamento.plano_id,
        pagamento_id=pagamento.id,
        status=STATUS_ATIVA,
        data_assinatura=now,
        data_vencimento=add_days(now, plano.duracao_dias),
    )
    db.session.add(assinatura)
    db.session.flush()

    pagamento.assinatura_id = assinatura.id
    if pagamento.cupom_id:
        increment_usage(pagamento.cupom_id)
    clear_cart(pagamento.usuario_id, commit=False)
    return assinatura.id


def _apply_status(pagamento_id: str, gateway_payment: GatewayPayment) -> ReconcileResult:
    pagamento = db.session.get(Pagamento, pagamento_id)
    if not pagamento:
        raise NotFoundError("Registro interno não encontrado.", code="payment_not_found")

    current = pagamento.status_pagamento
    target = map_status(gateway_payment.status)

    if target == current or target not in _ALLOWED_TRANSITIONS.get(current, set()):
        if target != current:
            logger.info(
                "Webhook ignorado para pagamento %s: %s -> %s não permitido",
                pagamento_id,
                current,
                target,
            )
        db.session.rollback()
        return ReconcileResult(pagamento_id, current, changed=False)

    if current == STATUS_EXPIRADO:
        logger.warning("Pagamento %s aprovado após expiração local", pagamento_id)

    now = utcnow()
    values = {
        "status_pagamento": target,
        "transaction_id": gateway_payment.id,
        "atualizado_em": now,
    }
    if target == STATUS_APROVADO:
        values["data_pagamento"] = now

    # Condicional no status lido: só um processamento concorrente vence
    result = db.session.execute(
        update(Pagamento)
        .where(Pagamento.id == pagamento_id)
        .where(Pagamento.status_pagamento == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        return ReconcileResult(pagamento_id, current, changed=False)

    assinatura_id = None
    if target == STATUS_APROVADO:
        try:
            assinatura_id = _approve(pagamento, now)
        except IntegrityError:
            # Já existe assinatura para este pagamento
            db.session.rollback()
            logger.info("Assinatura do pagamento %s já existia; replay ignorado", pagamento_id)
            return ReconcileResult(pagamento_id, STATUS_APROVADO, changed=False)

    db.session.commit()
    return ReconcileResult(pagamento_id, target, changed=True, assinatura_id=assinatura_id)


def reconcile(gateway_payment: GatewayPayment) -> ReconcileResult:
    result = run_with_retry(_apply_status, gateway_payment.external_reference, gateway_payment)
    if result.changed:
        logger.info(
            "Pagamento %s atualizado para %s (gateway %s)",
            result.pagamento_id,
            result.status,
            gateway_payment.id,
        )
    return result


def handle_webhook(headers, query_args, body) -> tuple[str, int]:
    verify_request(headers, query_args)

    notification = extract_notification(body, query_args)
    if notification is None:
        return "Evento ignorado.", 200

    gateway_payment = fetch_gateway_payment(notification.payment_id)
    result = reconcile(gateway_payment)
    return result.message, 200
