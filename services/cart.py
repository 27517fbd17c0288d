from __future__ import annotations

import logging
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models.extensions import db
from models.carrinho_model import CarrinhoItem
from models.plano_model import Plano
from services.coupons import validate_coupon
from services.date_utils import isoformat
from services.db_retry import run_with_retry
from services.errors import ConflictError, NotFoundError, ValidationError
from services.input_validation import money, normalize_periodo, parse_int, quantize

logger = logging.getLogger(__name__)


def _max_quantity() -> int:
    return int(current_app.config.get("CART_MAX_QUANTITY", 100))


def _parse_quantity(value) -> int:
    quantidade = parse_int(value, min_value=1, max_value=_max_quantity())
    if quantidade is None:
        raise ValidationError(
            f"Quantidade deve estar entre 1 e {_max_quantity()}",
            code="invalid_quantity",
        )
    return quantidade


def item_to_dict(item: CarrinhoItem) -> dict:
    plano = item.plano
    return {
        "id": item.id,
        "plano_id": item.plano_id,
        "periodo": item.periodo,
        "quantidade": item.quantidade,
        "cupom_codigo": item.cupom_codigo,
        "cupom_desconto": money(item.cupom_desconto),
        "nome": plano.nome if plano else None,
        "preco": money(plano.preco) if plano else None,
        "duracao_dias": plano.duracao_dias if plano else None,
        "beneficios": (plano.beneficios or []) if plano else [],
        "criado_em": isoformat(item.criado_em),
    }


def get_cart_item(user_id: str) -> CarrinhoItem | None:
    return (
        CarrinhoItem.query.filter_by(usuario_id=user_id)
        .order_by(CarrinhoItem.criado_em.desc())
        .first()
    )


def list_cart(user_id: str) -> list[dict]:
    rows = (
        CarrinhoItem.query.filter_by(usuario_id=user_id)
        .order_by(CarrinhoItem.criado_em.desc())
        .all()
    )
    return [item_to_dict(r) for r in rows]


def add_to_cart(user_id: str, plano_id: str, periodo: str, quantidade=1) -> CarrinhoItem:
    """Substitui o carrinho do usuário pelo plano informado (um plano por vez)."""
    if not plano_id or not periodo:
        raise ValidationError("Plano e período são obrigatórios", code="missing_fields")

    periodo_norm = normalize_periodo(periodo)
    if not periodo_norm:
        raise ValidationError("Período inválido", code="invalid_period")

    qty = _parse_quantity(quantidade)

    def _add() -> CarrinhoItem:
        plano = Plano.query.filter_by(id=str(plano_id), periodo=periodo_norm).first()
        if not plano:
            raise NotFoundError("Plano não encontrado", code="plan_not_found")

        CarrinhoItem.query.filter_by(usuario_id=user_id).delete(synchronize_session=False)
        item = CarrinhoItem(
            usuario_id=user_id,
            plano_id=plano.id,
            periodo=periodo_norm,
            quantidade=qty,
        )
        db.session.add(item)
        db.session.commit()
        return item

    # Inserção concorrente do mesmo plano: uma nova tentativa substitui a linha vencedora
    for attempt in range(2):
        try:
            return run_with_retry(_add)
        except IntegrityError:
            db.session.rollback()
            logger.info("Conflito ao gravar carrinho do usuário %s (tentativa %s)", user_id, attempt + 1)
    raise ConflictError("Carrinho alterado por outra requisição. Tente novamente.", code="cart_conflict")


def remove_item(user_id: str, item_id: str) -> None:
    deleted = CarrinhoItem.query.filter_by(id=item_id, usuario_id=user_id).delete(
        synchronize_session=False
    )
    if not deleted:
        db.session.rollback()
        raise NotFoundError("Item não encontrado no carrinho", code="cart_item_not_found")
    db.session.commit()


def update_quantity(user_id: str, item_id: str, quantidade) -> CarrinhoItem:
    qty = _parse_quantity(quantidade)

    item = CarrinhoItem.query.filter_by(id=item_id, usuario_id=user_id).first()
    if not item:
        raise NotFoundError("Item não encontrado no carrinho", code="cart_item_not_found")

    item.quantidade = qty
    db.session.commit()
    return item


def clear_cart(user_id: str, *, commit: bool = True) -> int:
    deleted = CarrinhoItem.query.filter_by(usuario_id=user_id).delete(synchronize_session=False)
    if commit:
        db.session.commit()
    return deleted


def apply_coupon(user_id: str, codigo: str) -> dict:
    """Aplica um cupom ao carrinho e grava o desconto calculado sobre o preço do plano."""
    if not codigo or not str(codigo).strip():
        raise ValidationError("Código do cupom é obrigatório", code="missing_fields")

    def _apply() -> dict:
        item = get_cart_item(user_id)
        if not item:
            raise NotFoundError("Carrinho vazio", code="empty_cart")

        # Vale mesmo que o novo cupom seja inválido
        if item.cupom_codigo:
            raise ConflictError(
                "Já existe um cupom aplicado no carrinho. Remova-o antes de aplicar outro.",
                code="coupon_already_applied",
            )

        subtotal = quantize(Decimal(str(item.plano.preco)))
        quote = validate_coupon(codigo, subtotal)

        item.cupom_codigo = quote.cupom.codigo
        item.cupom_desconto = quote.desconto
        db.session.commit()

        logger.info("Cupom %s aplicado ao carrinho do usuário %s", quote.cupom.codigo, user_id)
        return {
            "codigo": quote.cupom.codigo,
            "tipo": quote.cupom.tipo,
            "valor": money(quote.cupom.valor),
            "desconto": money(quote.desconto),
            "valor_original": money(quote.subtotal),
            "valor_final": money(quote.valor_final),
        }

    return run_with_retry(_apply)


def remove_coupon(user_id: str) -> None:
    item = get_cart_item(user_id)
    if not item:
        raise NotFoundError("Carrinho vazio", code="empty_cart")
    if not item.cupom_codigo:
        raise NotFoundError("Nenhum cupom aplicado", code="coupon_not_applied")

    item.cupom_codigo = None
    item.cupom_desconto = Decimal("0")
    db.session.commit()
