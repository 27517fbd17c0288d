from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from services.coupons import validate_coupon
from services.errors import ValidationError
from services.permissions import require_api_access
from services.plans import list_public_plans
from services.rate_limiter import rate_limit

catalog_bp = Blueprint("catalog", __name__)


@catalog_bp.get("/api/planos")
@rate_limit("public")
def listar_planos():
    return jsonify({"planos": list_public_plans()})


@catalog_bp.post("/api/cupons/validar")
@require_api_access()
@login_required
def validar_cupom():
    payload = request.get_json(silent=True) or {}
    codigo = payload.get("codigo")
    valor_pedido = payload.get("valor_pedido")
    if not codigo or valor_pedido in (None, ""):
        raise ValidationError(
            "Código do cupom e valor do pedido são obrigatórios",
            code="missing_fields",
        )
    return jsonify(validate_coupon(codigo, valor_pedido).to_dict())
