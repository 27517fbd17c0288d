from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from services.companies import company_to_dict, create_company, get_company, list_companies
from services.coupons import coupon_to_dict, create_coupon, delete_coupon, list_coupons, update_coupon
from services.payments import list_admin_payments
from services.permissions import require_api_access
from services.plans import delete_plan, list_admin_plans, plan_to_dict, update_plan, upsert_plan
from services.rate_limiter import rate_limit

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.before_request
@require_api_access(admin=True)
@rate_limit("admin")
def _admin_only():
    return None


# Planos


@admin_bp.get("/planos")
@login_required
def listar_planos():
    return jsonify({"planos": list_admin_plans()})


@admin_bp.post("/planos")
@login_required
def criar_plano():
    plano, created = upsert_plan(request.get_json(silent=True) or {})
    message = "Plano criado com sucesso" if created else "Plano atualizado com sucesso"
    return jsonify({"message": message, "id": plano.id, "plano": plan_to_dict(plano)}), (
        201 if created else 200
    )


@admin_bp.put("/planos/<plano_id>")
@login_required
def atualizar_plano(plano_id: str):
    plano = update_plan(plano_id, request.get_json(silent=True) or {})
    return jsonify({"message": "Plano atualizado com sucesso", "plano": plan_to_dict(plano)})


@admin_bp.delete("/planos/<plano_id>")
@login_required
def excluir_plano(plano_id: str):
    delete_plan(plano_id)
    return jsonify({"message": "Plano excluído com sucesso"})


# Empresas


@admin_bp.post("/empresas")
@login_required
def criar_empresa():
    empresa = create_company(request.get_json(silent=True) or {})
    return jsonify({"id": empresa.id, "empresa": company_to_dict(empresa)}), 201


@admin_bp.get("/empresas")
@login_required
def listar_empresas():
    return jsonify({"empresas": list_companies()})


@admin_bp.get("/empresas/<empresa_id>")
@login_required
def obter_empresa(empresa_id: str):
    return jsonify({"empresa": company_to_dict(get_company(empresa_id))})


# Cupons


@admin_bp.get("/cupons")
@login_required
def listar_cupons():
    return jsonify({"cupons": list_coupons()})


@admin_bp.post("/cupons")
@login_required
def criar_cupom():
    cupom = create_coupon(request.get_json(silent=True) or {})
    return jsonify(coupon_to_dict(cupom)), 201


@admin_bp.put("/cupons/<cupom_id>")
@login_required
def atualizar_cupom(cupom_id: str):
    cupom = update_coupon(cupom_id, request.get_json(silent=True) or {})
    return jsonify(coupon_to_dict(cupom))


@admin_bp.delete("/cupons/<cupom_id>")
@login_required
def excluir_cupom(cupom_id: str):
    delete_coupon(cupom_id)
    return jsonify({"message": "Cupom deletado com sucesso"})


# Pagamentos


@admin_bp.get("/pagamentos")
@login_required
def listar_pagamentos():
    return jsonify({"pagamentos": list_admin_payments()})
