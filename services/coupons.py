from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import or_, update

from models.extensions import db
from models.cupom_model import Cupom, TIPOS_CUPOM
from models.pagamento_model import Pagamento
from services.date_utils import isoformat, parse_datetime, utcnow
from services.errors import ConflictError, NotFoundError, ValidationError
from services.input_validation import (
    money,
    normalize_coupon_code,
    parse_amount,
    parse_bool,
    parse_int,
    quantize,
)

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class CouponQuote:
    cupom: Cupom
    subtotal: Decimal
    desconto: Decimal
    valor_final: Decimal

    def to_dict(self) -> dict:
        return {
            "valido": True,
            "cupom": {
                "id": self.cupom.id,
                "codigo": self.cupom.codigo,
                "tipo": self.cupom.tipo,
                "valor": money(self.cupom.valor),
            },
            "desconto": money(self.desconto),
            "valor_original": money(self.subtotal),
            "valor_final": money(self.valor_final),
        }


def calculate_discount(tipo: str, valor: Decimal, subtotal: Decimal) -> Decimal:
    """Desconto limitado a [0, subtotal], arredondado em centavos."""
    valor = Decimal(str(valor))
    subtotal = Decimal(str(subtotal))
    if tipo == "percentual":
        desconto = subtotal * valor / HUNDRED
    else:
        desconto = valor
    desconto = max(Decimal("0"), min(desconto, subtotal))
    return quantize(desconto)


def check_coupon_usable(cupom: Cupom, now: datetime | None = None) -> None:
    now = now or utcnow()
    if not cupom.ativo:
        raise ValidationError("Cupom inativo", code="coupon_inactive")
    if cupom.data_inicio and now < cupom.data_inicio:
        raise ValidationError("Cupom ainda não está disponível", code="coupon_not_yet_valid")
    if cupom.data_fim and now > cupom.data_fim:
        raise ValidationError("Cupom expirado", code="coupon_expired")
    if cupom.quantidade_maxima is not None and cupom.quantidade_usada >= cupom.quantidade_maxima:
        raise ValidationError("Cupom esgotado", code="coupon_exhausted")


def validate_coupon(codigo: str, subtotal, now: datetime | None = None) -> CouponQuote:
    """Valida o cupom para um subtotal. Não altera o contador de usos."""
    code = normalize_coupon_code(codigo)
    if not code:
        raise NotFoundError("Cupom não encontrado", code="coupon_not_found")

    amount = parse_amount(subtotal)
    if amount is None:
        raise ValidationError("Valor do pedido inválido", code="invalid_amount")

    cupom = Cupom.query.filter_by(codigo=code).first()
    if not cupom:
        raise NotFoundError("Cupom não encontrado", code="coupon_not_found")

    check_coupon_usable(cupom, now)

    desconto = calculate_discount(cupom.tipo, cupom.valor, amount)
    return CouponQuote(
        cupom=cupom,
        subtotal=amount,
        desconto=desconto,
        valor_final=quantize(amount - desconto),
    )


def increment_usage(cupom_id: str) -> bool:
    """Incrementa quantidade_usada sem ultrapassar quantidade_maxima.

    Roda dentro da transação do chamador (não faz commit).
    """
    result = db.session.execute(
        update(Cupom)
        .where(Cupom.id == cupom_id)
        .where(
            or_(
                Cupom.quantidade_maxima.is_(None),
                Cupom.quantidade_usada < Cupom.quantidade_maxima,
            )
        )
        .values(quantidade_usada=Cupom.quantidade_usada + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        logger.warning("Cupom %s no limite de usos; contador mantido.", cupom_id)
        return False
    return True


def coupon_to_dict(cupom: Cupom) -> dict:
    return {
        "id": cupom.id,
        "codigo": cupom.codigo,
        "tipo": cupom.tipo,
        "valor": money(cupom.valor),
        "quantidade_maxima": cupom.quantidade_maxima,
        "quantidade_usada": cupom.quantidade_usada,
        "data_inicio": isoformat(cupom.data_inicio),
        "data_fim": isoformat(cupom.data_fim),
        "ativo": bool(cupom.ativo),
        "created_at": isoformat(cupom.created_at),
    }


def list_coupons() -> list[dict]:
    rows = Cupom.query.order_by(Cupom.created_at.desc()).all()
    return [coupon_to_dict(c) for c in rows]


def _parse_tipo_valor(tipo, valor) -> tuple[str, Decimal]:
    tipo = (str(tipo or "")).strip().lower()
    if tipo not in TIPOS_CUPOM:
        raise ValidationError('Tipo inválido. Use "percentual" ou "fixo"', code="invalid_coupon_type")

    amount = parse_amount(valor, allow_zero=False)
    if amount is None:
        raise ValidationError("Valor deve ser maior que zero", code="invalid_coupon_value")
    if tipo == "percentual" and amount > HUNDRED:
        raise ValidationError("Percentual não pode ser maior que 100%", code="invalid_coupon_value")
    return tipo, amount


def _parse_cap(value) -> int | None:
    if value in (None, ""):
        return None
    cap = parse_int(value, min_value=1)
    if cap is None:
        raise ValidationError("Quantidade máxima inválida", code="invalid_coupon_cap")
    return cap


def _parse_window(data_inicio, data_fim) -> tuple[datetime, datetime]:
    inicio = parse_datetime(data_inicio)
    fim = parse_datetime(data_fim)
    if not inicio or not fim:
        raise ValidationError("Datas do cupom inválidas", code="invalid_coupon_dates")
    if fim < inicio:
        raise ValidationError(
            "Data final deve ser posterior à data inicial", code="invalid_coupon_dates"
        )
    return inicio, fim


def _ensure_code_available(code: str, exclude_id: str | None = None) -> None:
    query = Cupom.query.filter_by(codigo=code)
    if exclude_id:
        query = query.filter(Cupom.id != exclude_id)
    if query.first():
        raise ConflictError("Código de cupom já existe", code="coupon_code_taken")


def create_coupon(data: dict) -> Cupom:
    data = data or {}
    required = ("codigo", "tipo", "valor", "data_inicio", "data_fim")
    if any(data.get(k) in (None, "") for k in required):
        raise ValidationError("Campos obrigatórios faltando", code="missing_fields")

    code = normalize_coupon_code(data.get("codigo"))
    if not code:
        raise ValidationError("Código de cupom inválido", code="invalid_coupon_code")

    tipo, valor = _parse_tipo_valor(data.get("tipo"), data.get("valor"))
    inicio, fim = _parse_window(data.get("data_inicio"), data.get("data_fim"))
    cap = _parse_cap(data.get("quantidade_maxima"))
    _ensure_code_available(code)

    cupom = Cupom(
        codigo=code,
        tipo=tipo,
        valor=valor,
        quantidade_maxima=cap,
        quantidade_usada=0,
        data_inicio=inicio,
        data_fim=fim,
        ativo=parse_bool(data.get("ativo"), default=True),
    )
    db.session.add(cupom)
    db.session.commit()
    logger.info("Cupom %s criado.", code)
    return cupom


def update_coupon(cupom_id: str, data: dict) -> Cupom:
    cupom = db.session.get(Cupom, cupom_id)
    if not cupom:
        raise NotFoundError("Cupom não encontrado", code="coupon_not_found")

    data = data or {}
    fields = ("codigo", "tipo", "valor", "quantidade_maxima", "data_inicio", "data_fim", "ativo")
    if not any(k in data for k in fields):
        raise ValidationError("Nenhum campo para atualizar", code="nothing_to_update")

    if "codigo" in data:
        code = normalize_coupon_code(data.get("codigo"))
        if not code:
            raise ValidationError("Código de cupom inválido", code="invalid_coupon_code")
        _ensure_code_available(code, exclude_id=cupom.id)
        cupom.codigo = code

    if "tipo" in data or "valor" in data:
        tipo, valor = _parse_tipo_valor(
            data.get("tipo", cupom.tipo),
            data.get("valor", cupom.valor),
        )
        cupom.tipo = tipo
        cupom.valor = valor

    if "data_inicio" in data or "data_fim" in data:
        inicio, fim = _parse_window(
            data.get("data_inicio", cupom.data_inicio),
            data.get("data_fim", cupom.data_fim),
        )
        cupom.data_inicio = inicio
        cupom.data_fim = fim

    if "quantidade_maxima" in data:
        cap = _parse_cap(data.get("quantidade_maxima"))
        if cap is not None and cap < (cupom.quantidade_usada or 0):
            raise ValidationError(
                "Quantidade máxima menor que a quantidade já utilizada",
                code="invalid_coupon_cap",
            )
        cupom.quantidade_maxima = cap

    if "ativo" in data:
        cupom.ativo = parse_bool(data.get("ativo"))

    db.session.commit()
    return cupom


def delete_coupon(cupom_id: str) -> None:
    cupom = db.session.get(Cupom, cupom_id)
    if not cupom:
        raise NotFoundError("Cupom não encontrado", code="coupon_not_found")

    if Pagamento.query.filter_by(cupom_id=cupom.id).first():
        raise ConflictError(
            "Cupom já utilizado em pagamentos. Desative-o em vez de excluir.",
            code="coupon_in_use",
        )

    db.session.delete(cupom)
    db.session.commit()
    logger.info("Cupom %s excluído.", cupom.codigo)
