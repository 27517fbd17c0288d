from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from services.payments import (
    expire_payment,
    get_payment_details,
    get_payment_status,
    initiate_payment,
)
from services.permissions import require_api_access
from services.rate_limiter import client_ip, rate_limit
from services.webhook import handle_webhook

payments_bp = Blueprint("payments", __name__)


@payments_bp.post("/api/payments/initiate")
@require_api_access()
@login_required
@rate_limit("payment")
def initiate():
    return jsonify(initiate_payment(current_user, ip=client_ip()))


@payments_bp.post("/api/payments/webhook")
def webhook():
    payload = request.get_json(silent=True) or {}
    message, status = handle_webhook(request.headers, request.args, payload)
    return jsonify({"message": message}), status


@payments_bp.get("/api/payments/status/<payment_id>")
@require_api_access()
@login_required
@rate_limit("payment_status")
def status(payment_id: str):
    return jsonify(get_payment_status(payment_id, current_user))


@payments_bp.get("/api/payments/<payment_id>")
@require_api_access()
@login_required
@rate_limit("payment_status")
def details(payment_id: str):
    return jsonify(get_payment_details(payment_id, current_user))


@payments_bp.post("/api/payments/<payment_id>/expire")
@require_api_access()
@login_required
def expire(payment_id: str):
    expire_payment(payment_id, current_user)
    return jsonify({"message": "Pagamento expirado com sucesso"})
