from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

import requests
from flask import current_app

logger = logging.getLogger(__name__)

EXTENSION_KEY = "mercadopago"

# Status do Mercado Pago -> status interno do pagamento
_STATUS_MAP = {
    "approved": "aprovado",
    "rejected": "reprovado",
    "cancelled": "cancelado",
}


class MercadoPagoError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class PixCharge:
    transaction_id: str
    status: str
    qr_code_base64: str
    qr_code: str


@dataclass(frozen=True)
class GatewayPayment:
    id: str
    status: str
    external_reference: Optional[str]


def map_status(gateway_status: str | None) -> str:
    """approved/rejected/cancelled viram aprovado/reprovado/cancelado; o resto é pendente."""
    return _STATUS_MAP.get((gateway_status or "").strip().lower(), "pendente")


class MercadoPagoClient:
    """Cliente REST mínimo para pagamentos PIX (POST/GET /v1/payments)."""

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = "https://api.mercadopago.com",
        timeout: int = 25,
        session: requests.Session | None = None,
    ) -> None:
        self.access_token = (access_token or "").strip()
        self.base_url = (base_url or "https://api.mercadopago.com").rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config) -> "MercadoPagoClient":
        return cls(
            config.get("MERCADO_PAGO_ACCESS_TOKEN", ""),
            base_url=config.get("MERCADO_PAGO_BASE_URL", ""),
            timeout=int(config.get("MERCADO_PAGO_TIMEOUT", 25)),
        )

    def _headers(self, idempotency_key: str | None = None) -> Dict[str, str]:
        if not self.access_token:
            raise MercadoPagoError("MERCADO_PAGO_ACCESS_TOKEN não configurado.")
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        return headers

    def _request(self, method: str, path: str, *, json: Any = None, idempotency_key: str | None = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = self._headers(idempotency_key)
        try:
            resp = self.session.request(method, url, json=json, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Mercado Pago: falha na requisicao %s %s", method, path, exc_info=True)
            raise MercadoPagoError(f"Falha de comunicação com o Mercado Pago: {exc}") from exc

        try:
            body = resp.json()
        except ValueError as exc:
            snippet = (resp.text or "").strip()
            logger.warning(
                "Mercado Pago: JSON invalido em %s %s (HTTP %s). Trecho: %s",
                method,
                path,
                resp.status_code,
                snippet[:300],
                exc_info=True,
            )
            raise MercadoPagoError(
                f"Resposta invalida do Mercado Pago (HTTP {resp.status_code})."
            ) from exc

        if not resp.ok:
            err = None
            if isinstance(body, dict):
                err = body.get("message") or body.get("error")
            raise MercadoPagoError(
                f"Erro Mercado Pago (HTTP {resp.status_code}): {err or body}",
                status_code=resp.status_code,
            )

        if not isinstance(body, dict):
            raise MercadoPagoError("Resposta inesperada do Mercado Pago.")
        return body

    def create_pix_payment(
        self,
        *,
        amount: Decimal,
        description: str,
        payer_email: str,
        external_reference: str,
        notification_url: str,
        payer_name: str | None = None,
    ) -> PixCharge:
        payer: Dict[str, str] = {"email": payer_email}
        if payer_name:
            payer["first_name"] = payer_name

        payload = {
            "transaction_amount": float(amount),
            "description": description,
            "payment_method_id": "pix",
            "payer": payer,
            "external_reference": external_reference,
            "notification_url": notification_url,
        }
        # external_reference também é a chave de idempotência
        body = self._request("POST", "/v1/payments", json=payload, idempotency_key=external_reference)

        transaction = (body.get("point_of_interaction") or {}).get("transaction_data") or {}
        transaction_id = body.get("id")
        if not transaction_id:
            raise MercadoPagoError("Mercado Pago não retornou o id do pagamento.")

        return PixCharge(
            transaction_id=str(transaction_id),
            status=str(body.get("status") or "pending"),
            qr_code_base64=transaction.get("qr_code_base64") or "",
            qr_code=transaction.get("qr_code") or "",
        )

    def get_payment(self, payment_id: str) -> GatewayPayment:
        body = self._request("GET", f"/v1/payments/{payment_id}")
        external_reference = body.get("external_reference")
        return GatewayPayment(
            id=str(body.get("id") or payment_id),
            status=str(body.get("status") or ""),
            external_reference=str(external_reference) if external_reference else None,
        )


def init_gateway(app) -> None:
    app.extensions[EXTENSION_KEY] = MercadoPagoClient.from_config(app.config)


def get_gateway():
    gateway = current_app.extensions.get(EXTENSION_KEY)
    if gateway is None:
        raise MercadoPagoError("Gateway de pagamento não inicializado.")
    return gateway
