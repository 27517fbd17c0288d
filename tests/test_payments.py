from datetime import timedelta
from decimal import Decimal

from conftest import bearer, make_coupon, make_plan, make_user
from models.extensions import db
from models.assinatura_model import Assinatura
from models.pagamento_model import Pagamento
from services.date_utils import utcnow
from services.payments import expire_if_overdue


def _checkout(client, headers, plano_id, periodo="mensal", cupom=None):
    resp = client.post(
        "/api/carrinho",
        json={"planoId": plano_id, "periodo": periodo},
        headers=headers,
    )
    assert resp.status_code == 200
    if cupom:
        assert client.post("/api/carrinho/cupom", json={"codigo": cupom}, headers=headers).status_code == 200
    return client.post("/api/payments/initiate", headers=headers)


def _overdue(app, pagamento_id):
    with app.app_context():
        pagamento = db.session.get(Pagamento, pagamento_id)
        pagamento.data_expiracao = utcnow() - timedelta(minutes=1)
        db.session.commit()


def test_initiate_creates_pending_payment(client, auth_headers, app, plan_id, gateway):
    resp = _checkout(client, auth_headers, plan_id)

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["qrCode"].startswith("data:image/png;base64,")
    assert data["pixCode"] == "00020126580014br.gov.bcb.pix"
    assert data["plan"]["preco"] == 100.0
    assert data["plan"]["precoOriginal"] == 100.0
    assert data["cupom"] is None
    assert data["user"] == {"nome": "Maria Silva", "email": "maria@example.com"}

    call = gateway.calls[0]
    assert call["amount"] == Decimal("100.00")
    assert call["external_reference"] == data["paymentId"]
    assert call["notification_url"] == "https://api.example.test/api/payments/webhook"

    with app.app_context():
        pagamento = db.session.get(Pagamento, data["paymentId"])
        assert pagamento.status_pagamento == "pendente"
        assert pagamento.transaction_id == "1000"
        assert pagamento.data_expiracao > utcnow()
        assert pagamento.assinatura_id is None
        # Nenhuma assinatura antes da aprovação
        assert Assinatura.query.count() == 0


def test_initiate_applies_cart_coupon(client, auth_headers, app, plan_id, gateway):
    make_coupon(app, codigo="SAVE10", valor="10")

    resp = _checkout(client, auth_headers, plan_id, cupom="SAVE10")

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["plan"]["preco"] == 90.0
    assert data["plan"]["precoOriginal"] == 100.0
    assert data["cupom"]["codigo"] == "SAVE10"
    assert data["cupom"]["desconto"] == 10.0
    assert gateway.calls[0]["amount"] == Decimal("90.00")

    with app.app_context():
        pagamento = db.session.get(Pagamento, data["paymentId"])
        assert pagamento.valor == Decimal("90.00")
        assert pagamento.valor_desconto == Decimal("10.00")
        assert pagamento.cupom_id is not None


def test_initiate_with_empty_cart(client, auth_headers, gateway):
    resp = client.post("/api/payments/initiate", headers=auth_headers)
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "empty_cart"
    assert gateway.calls == []


def test_initiate_rejects_zero_final_amount(client, auth_headers, app, gateway):
    plano_id = make_plan(app, nome="Mini", preco="30.00")
    make_coupon(app, codigo="FIX50", tipo="fixo", valor="50")

    resp = _checkout(client, auth_headers, plano_id, cupom="FIX50")

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "invalid_amount"
    assert gateway.calls == []


def test_initiate_gateway_failure(client, auth_headers, app, plan_id, gateway):
    gateway.fail = True

    resp = _checkout(client, auth_headers, plan_id)

    assert resp.status_code == 500
    data = resp.get_json()
    assert data["error"] == "payment_failed"
    assert data["message"] == "Erro ao iniciar pagamento"
    with app.app_context():
        assert Pagamento.query.count() == 0


def test_initiate_requires_authentication(client):
    assert client.post("/api/payments/initiate").status_code == 401


def test_status_and_details_for_owner(client, auth_headers, plan_id):
    payment_id = _checkout(client, auth_headers, plan_id).get_json()["paymentId"]

    resp = client.get(f"/api/payments/status/{payment_id}", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "pendente"}

    resp = client.get(f"/api/payments/{payment_id}", headers=auth_headers)
    assert resp.status_code == 200
    details = resp.get_json()
    assert details["paymentId"] == payment_id
    assert details["status"] == "pendente"
    assert details["nomePlano"] == "Pro"
    assert details["valorFinal"] == 100.0
    assert details["qrCodeText"] == "00020126580014br.gov.bcb.pix"


def test_other_users_cannot_see_payment(client, auth_headers, admin_headers, app, plan_id):
    payment_id = _checkout(client, auth_headers, plan_id).get_json()["paymentId"]
    _, other_token = make_user(app, email="joao@example.com", nome="João")

    resp = client.get(f"/api/payments/status/{payment_id}", headers=bearer(other_token))
    assert resp.status_code == 404

    resp = client.get(f"/api/payments/{payment_id}", headers=admin_headers)
    assert resp.status_code == 200


def test_unknown_payment_is_404(client, auth_headers):
    resp = client.get("/api/payments/status/nao-existe", headers=auth_headers)
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "payment_not_found"


def test_overdue_payment_expires_on_read(client, auth_headers, app, plan_id):
    payment_id = _checkout(client, auth_headers, plan_id).get_json()["paymentId"]
    _overdue(app, payment_id)

    resp = client.get(f"/api/payments/status/{payment_id}", headers=auth_headers)
    assert resp.get_json() == {"status": "expirado"}

    resp = client.get(f"/api/payments/{payment_id}", headers=auth_headers)
    assert resp.get_json()["status"] == "expirado"


def test_expiry_deactivates_linked_subscription(client, auth_headers, app, user, plan_id):
    user_id, _ = user
    payment_id = _checkout(client, auth_headers, plan_id).get_json()["paymentId"]
    now = utcnow()
    with app.app_context():
        assinatura = Assinatura(
            usuario_id=user_id,
            plano_id=plan_id,
            pagamento_id=payment_id,
            status="ativa",
            data_assinatura=now,
            data_vencimento=now + timedelta(days=30),
        )
        db.session.add(assinatura)
        db.session.flush()
        db.session.get(Pagamento, payment_id).assinatura_id = assinatura.id
        db.session.commit()
        assinatura_id = assinatura.id
    _overdue(app, payment_id)

    for _ in range(2):
        resp = client.get(f"/api/payments/status/{payment_id}", headers=auth_headers)
        assert resp.get_json() == {"status": "expirado"}
        with app.app_context():
            assert db.session.get(Assinatura, assinatura_id).status == "inativa"
            assert db.session.get(Pagamento, payment_id).status_pagamento == "expirado"


def test_expiry_transition_happens_once(client, auth_headers, app, plan_id):
    payment_id = _checkout(client, auth_headers, plan_id).get_json()["paymentId"]
    _overdue(app, payment_id)

    with app.app_context():
        assert expire_if_overdue(payment_id) is True
        assert expire_if_overdue(payment_id) is False


def test_pending_payment_within_window_stays_pending(client, auth_headers, app, plan_id):
    payment_id = _checkout(client, auth_headers, plan_id).get_json()["paymentId"]

    with app.app_context():
        assert expire_if_overdue(payment_id) is False
        assert db.session.get(Pagamento, payment_id).status_pagamento == "pendente"


def test_manual_expire(client, auth_headers, plan_id):
    payment_id = _checkout(client, auth_headers, plan_id).get_json()["paymentId"]

    resp = client.post(f"/api/payments/{payment_id}/expire", headers=auth_headers)
    assert resp.status_code == 200

    resp = client.post(f"/api/payments/{payment_id}/expire", headers=auth_headers)
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "payment_not_pending"


def test_payment_rate_limit(client, auth_headers, app, plan_id):
    app.config["RATE_LIMIT_PAYMENT"] = 2
    client.post("/api/carrinho", json={"planoId": plan_id, "periodo": "mensal"}, headers=auth_headers)

    statuses = [client.post("/api/payments/initiate", headers=auth_headers).status_code for _ in range(3)]

    assert statuses[:2] == [200, 200]
    assert statuses[2] == 429


def test_coupon_in_use_cannot_be_deleted(client, auth_headers, admin_headers, app, plan_id):
    cupom_id = make_coupon(app, codigo="SAVE10", valor="10")
    assert _checkout(client, auth_headers, plan_id, cupom="SAVE10").status_code == 200

    resp = client.delete(f"/api/admin/cupons/{cupom_id}", headers=admin_headers)
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "coupon_in_use"


def test_admin_lists_payments(client, auth_headers, admin_headers, plan_id):
    payment_id = _checkout(client, auth_headers, plan_id).get_json()["paymentId"]

    resp = client.get("/api/admin/pagamentos", headers=admin_headers)

    assert resp.status_code == 200
    rows = resp.get_json()["pagamentos"]
    assert rows[0]["id"] == payment_id
    assert rows[0]["usuario_email"] == "maria@example.com"
    assert rows[0]["mercadopago_id"] == "1000"
