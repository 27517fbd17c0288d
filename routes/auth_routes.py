from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from services.permissions import require_api_access
from services.rate_limiter import json_field, rate_limit
from services.subscriptions import is_subscription_active, list_user_subscriptions
from services.user_service import (
    alterar_senha,
    atualizar_dados,
    autenticar_usuario,
    obter_usuario,
    registrar_usuario,
)

auth_bp = Blueprint("auth", __name__)


def _with_auth_cookie(resp, token: str):
    resp.set_cookie(
        current_app.config.get("AUTH_COOKIE_NAME", "auth_token"),
        token,
        max_age=int(current_app.config.get("AUTH_TOKEN_MAX_AGE", 8 * 60 * 60)),
        httponly=True,
        secure=bool(current_app.config.get("AUTH_COOKIE_SECURE")),
        samesite="Lax",
    )
    return resp


@auth_bp.post("/api/criar-conta")
@rate_limit("auth", identifier=json_field("email"))
def criar_conta():
    payload = request.get_json(silent=True) or {}
    user = registrar_usuario(payload.get("nome"), payload.get("email"), payload.get("senha"))
    token = user.generate_auth_token()

    resp = jsonify({"message": "Conta criada com sucesso", "usuarioId": user.id, "token": token})
    resp.status_code = 201
    return _with_auth_cookie(resp, token)


@auth_bp.post("/api/auth/login")
@rate_limit("auth", identifier=json_field("email"))
def login():
    payload = request.get_json(silent=True) or {}
    user = autenticar_usuario(payload.get("email"), payload.get("senha"))
    login_user(user)
    token = user.generate_auth_token()

    resp = jsonify({"user": user.to_dict(), "tipo": user.papel, "token": token})
    return _with_auth_cookie(resp, token)


@auth_bp.post("/api/auth/logout")
def logout():
    if current_user.is_authenticated:
        logout_user()
    resp = jsonify({"message": "Logout realizado com sucesso"})
    resp.delete_cookie(current_app.config.get("AUTH_COOKIE_NAME", "auth_token"))
    return resp


@auth_bp.get("/api/auth/status")
@require_api_access()
@login_required
def auth_status():
    return jsonify(
        {
            "isAuthenticated": True,
            "isSubscriptionActive": is_subscription_active(current_user),
        }
    )


@auth_bp.get("/api/auth/user-details")
@require_api_access()
@login_required
def user_details():
    data = current_user.to_dict()
    data["assinaturas"] = list_user_subscriptions(current_user.id)
    return jsonify(data)


@auth_bp.put("/api/auth/user-details")
@require_api_access()
@login_required
def update_user_details():
    payload = request.get_json(silent=True) or {}
    user = atualizar_dados(current_user, payload)
    return jsonify({"message": "Dados atualizados com sucesso.", "user": user.to_dict()})


@auth_bp.put("/api/auth/change-password")
@require_api_access()
@login_required
def change_password():
    payload = request.get_json(silent=True) or {}
    alterar_senha(current_user, payload.get("senhaAtual"), payload.get("novaSenha"))
    return jsonify({"message": "Senha alterada com sucesso"})


@auth_bp.get("/api/auth/my-subscriptions")
@require_api_access()
@login_required
def my_subscriptions():
    return jsonify({"assinaturas": list_user_subscriptions(current_user.id)})


@auth_bp.get("/api/admin/auth/status")
@require_api_access(admin=True)
@login_required
def admin_auth_status():
    return jsonify({"isAuthenticated": True, "isAdmin": True})


@auth_bp.get("/api/usuarios/<user_id>")
@require_api_access(admin=True)
@login_required
def get_usuario(user_id: str):
    user = obter_usuario(user_id)
    data = user.to_dict()
    data["assinaturas"] = list_user_subscriptions(user.id)
    return jsonify({"usuario": data})
