from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from services.cart import (
    add_to_cart,
    apply_coupon,
    clear_cart,
    item_to_dict,
    list_cart,
    remove_coupon,
    remove_item,
    update_quantity,
)
from services.permissions import require_api_access

cart_bp = Blueprint("cart", __name__)


@cart_bp.get("/api/carrinho")
@require_api_access()
@login_required
def listar():
    return jsonify({"itens": list_cart(current_user.id)})


@cart_bp.post("/api/carrinho")
@require_api_access()
@login_required
def adicionar():
    payload = request.get_json(silent=True) or {}
    item = add_to_cart(
        current_user.id,
        payload.get("planoId"),
        payload.get("periodo"),
        payload.get("quantidade", 1),
    )
    return jsonify({"message": "Item adicionado ao carrinho", "item": item_to_dict(item)})


@cart_bp.delete("/api/carrinho/<item_id>")
@require_api_access()
@login_required
def remover(item_id: str):
    remove_item(current_user.id, item_id)
    return jsonify({"message": "Item removido do carrinho"})


@cart_bp.put("/api/carrinho/<item_id>/quantidade")
@require_api_access()
@login_required
def atualizar_quantidade(item_id: str):
    payload = request.get_json(silent=True) or {}
    item = update_quantity(current_user.id, item_id, payload.get("quantidade"))
    return jsonify({"message": "Quantidade atualizada", "item": item_to_dict(item)})


@cart_bp.delete("/api/carrinho")
@require_api_access()
@login_required
def limpar():
    clear_cart(current_user.id)
    return jsonify({"message": "Carrinho limpo"})


@cart_bp.post("/api/carrinho/cupom")
@require_api_access()
@login_required
def aplicar_cupom():
    payload = request.get_json(silent=True) or {}
    return jsonify(apply_coupon(current_user.id, payload.get("codigo")))


@cart_bp.delete("/api/carrinho/cupom")
@require_api_access()
@login_required
def remover_cupom():
    remove_coupon(current_user.id)
    return jsonify({"message": "Cupom removido do carrinho"})
