from datetime import timedelta

from conftest import make_plan
from services.date_utils import utcnow


def _plan_payload(**overrides):
    payload = {
        "nome": "Empresarial",
        "periodo": "mensal",
        "preco": "89,90",
        "duracaoDias": 30,
        "beneficios": ["Notas fiscais", "Estoque"],
        "quantidadeEmpresas": 3,
    }
    payload.update(overrides)
    return payload


def test_admin_routes_reject_non_admins(client, auth_headers):
    assert client.get("/api/admin/planos").status_code == 401
    assert client.get("/api/admin/planos", headers=auth_headers).status_code == 403
    assert client.get("/api/admin/empresas", headers=auth_headers).status_code == 403
    assert client.get("/api/admin/cupons", headers=auth_headers).status_code == 403
    assert client.get("/api/admin/pagamentos", headers=auth_headers).status_code == 403


def test_admin_plan_upsert(client, admin_headers):
    resp = client.post("/api/admin/planos", json=_plan_payload(), headers=admin_headers)
    assert resp.status_code == 201
    plano = resp.get_json()["plano"]
    assert plano["preco"] == 89.9
    assert plano["quantidade_empresas"] == 3

    resp = client.post("/api/admin/planos", json=_plan_payload(preco="99.90"), headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["id"] == plano["id"]

    planos = client.get("/api/admin/planos", headers=admin_headers).get_json()["planos"]
    assert len(planos) == 1
    assert planos[0]["preco"] == 99.9


def test_admin_plan_validation(client, admin_headers):
    resp = client.post("/api/admin/planos", json=_plan_payload(periodo="diario"), headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "invalid_period"

    resp = client.post("/api/admin/planos", json=_plan_payload(preco=0), headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "invalid_price"

    resp = client.post("/api/admin/planos", json=_plan_payload(beneficios=[]), headers=admin_headers)
    assert resp.status_code == 400


def test_price_ceiling_comes_from_config(client, admin_headers, app):
    app.config["MAX_AMOUNT"] = "500"

    resp = client.post("/api/admin/planos", json=_plan_payload(preco="500,01"), headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "invalid_price"

    resp = client.post("/api/admin/planos", json=_plan_payload(preco="500,00"), headers=admin_headers)
    assert resp.status_code == 201


def test_admin_plan_update_and_delete(client, admin_headers, app):
    plano_id = make_plan(app, nome="Pro", periodo="mensal")
    make_plan(app, nome="Pro", periodo="anual", preco="900.00", duracao_dias=365)

    resp = client.put(f"/api/admin/planos/{plano_id}", json={"periodo": "anual"}, headers=admin_headers)
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "plan_exists"

    resp = client.put(f"/api/admin/planos/{plano_id}", json={"preco": 120}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["plano"]["preco"] == 120.0

    assert client.delete(f"/api/admin/planos/{plano_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/admin/planos/{plano_id}", headers=admin_headers).status_code == 404


def test_plan_with_payments_cannot_be_deleted(client, auth_headers, admin_headers, plan_id):
    client.post("/api/carrinho", json={"planoId": plan_id, "periodo": "mensal"}, headers=auth_headers)
    assert client.post("/api/payments/initiate", headers=auth_headers).status_code == 200

    resp = client.delete(f"/api/admin/planos/{plan_id}", headers=admin_headers)
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "plan_in_use"


def test_public_plans_grouped_by_name(client, app):
    make_plan(app, nome="Pro", periodo="anual", preco="900.00", duracao_dias=365)
    make_plan(app, nome="Pro", periodo="mensal", preco="100.00")
    make_plan(app, nome="Básico", periodo="mensal", preco="10.00")

    resp = client.get("/api/planos")

    assert resp.status_code == 200
    planos = resp.get_json()["planos"]
    assert [p["nome"] for p in planos] == ["Básico", "Pro"]
    pro = planos[1]
    assert pro["mensal"]["preco"] == 100.0
    assert pro["anual"]["duracaoDias"] == 365


def _company_payload(**overrides):
    payload = {
        "nome": "Padaria Central",
        "email": "contato@padaria.com.br",
        "cnpj": "11.222.333/0001-81",
        "telefone": "(11) 98765-4321",
        "cidade": "São Paulo",
        "estado": "sp",
        "periodo": "mensal",
    }
    payload.update(overrides)
    return payload


def test_admin_creates_company(client, admin_headers, plan_id):
    vencimento = (utcnow() + timedelta(days=3)).date().isoformat()

    resp = client.post(
        "/api/admin/empresas",
        json=_company_payload(plano_id=plan_id, data_vencimento=vencimento),
        headers=admin_headers,
    )

    assert resp.status_code == 201
    empresa = resp.get_json()["empresa"]
    assert empresa["cnpj"] == "11222333000181"
    assert empresa["estado"] == "SP"
    assert empresa["status"] == "Pendente"
    assert empresa["status_vencimento"] == "Vence em breve"
    assert empresa["dias_restantes"] == 3

    resp = client.get(f"/api/admin/empresas/{empresa['id']}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.get_json()["empresa"]["nome"] == "Padaria Central"

    empresas = client.get("/api/admin/empresas", headers=admin_headers).get_json()["empresas"]
    assert len(empresas) == 1

    planos = client.get("/api/admin/planos", headers=admin_headers).get_json()["planos"]
    assert [p["empresas_usando"] for p in planos if p["id"] == plan_id] == [1]


def test_admin_company_validation(client, admin_headers):
    resp = client.post("/api/admin/empresas", json=_company_payload(cnpj="11.222.333/0001-82"), headers=admin_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "invalid_cnpj"

    resp = client.post("/api/admin/empresas", json=_company_payload(nome=""), headers=admin_headers)
    assert resp.status_code == 400

    resp = client.post("/api/admin/empresas", json=_company_payload(status="Falido"), headers=admin_headers)
    assert resp.status_code == 400

    assert client.get("/api/admin/empresas/nao-existe", headers=admin_headers).status_code == 404
