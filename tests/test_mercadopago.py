from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from services.mercadopago import MercadoPagoClient, MercadoPagoError, map_status


def _response(status_code, body):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 300
    resp.json.return_value = body
    resp.text = str(body)
    return resp


def _client(response=None, side_effect=None):
    session = MagicMock()
    if side_effect is not None:
        session.request.side_effect = side_effect
    else:
        session.request.return_value = response
    return MercadoPagoClient("APP_USR-token", session=session), session


def test_create_pix_payment_posts_idempotent_request():
    body = {
        "id": 123456,
        "status": "pending",
        "point_of_interaction": {
            "transaction_data": {"qr_code_base64": "iVBOR", "qr_code": "000201pix"}
        },
    }
    client, session = _client(_response(201, body))

    charge = client.create_pix_payment(
        amount=Decimal("89.90"),
        description="Assinatura Pro - mensal",
        payer_email="maria@example.com",
        payer_name="Maria",
        external_reference="pay-1",
        notification_url="https://api.example.test/api/payments/webhook",
    )

    assert charge.transaction_id == "123456"
    assert charge.qr_code_base64 == "iVBOR"
    assert charge.qr_code == "000201pix"

    method, url = session.request.call_args.args
    kwargs = session.request.call_args.kwargs
    assert method == "POST"
    assert url == "https://api.mercadopago.com/v1/payments"
    assert kwargs["headers"]["X-Idempotency-Key"] == "pay-1"
    assert kwargs["headers"]["Authorization"] == "Bearer APP_USR-token"
    assert kwargs["json"]["transaction_amount"] == 89.9
    assert kwargs["json"]["payment_method_id"] == "pix"
    assert kwargs["json"]["external_reference"] == "pay-1"


def test_get_payment():
    client, _ = _client(_response(200, {"id": 99, "status": "approved", "external_reference": "pay-1"}))

    payment = client.get_payment("99")

    assert payment.id == "99"
    assert payment.status == "approved"
    assert payment.external_reference == "pay-1"


def test_http_error_keeps_status_code():
    client, _ = _client(_response(404, {"message": "Payment not found"}))

    with pytest.raises(MercadoPagoError) as excinfo:
        client.get_payment("1")

    assert excinfo.value.status_code == 404
    assert "Payment not found" in str(excinfo.value)


def test_network_failure_is_wrapped():
    client, _ = _client(side_effect=requests.ConnectionError("boom"))

    with pytest.raises(MercadoPagoError):
        client.get_payment("1")


def test_missing_access_token():
    client = MercadoPagoClient("", session=MagicMock())
    with pytest.raises(MercadoPagoError):
        client.get_payment("1")


@pytest.mark.parametrize(
    "gateway_status, esperado",
    [
        ("approved", "aprovado"),
        ("rejected", "reprovado"),
        ("cancelled", "cancelado"),
        ("in_process", "pendente"),
        (None, "pendente"),
    ],
)
def test_map_status(gateway_status, esperado):
    assert map_status(gateway_status) == esperado
