import os
import sys
import tempfile


def _setup_env():
    root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    if root not in sys.path:
        sys.path.insert(0, root)
    tmpdir = tempfile.mkdtemp(prefix="security_smoke_")
    db_path = os.path.join(tmpdir, "security_test.db")
    os.environ.setdefault("DATABASE_URL", f"sqlite:///{db_path}")
    os.environ.setdefault("APP_ENV", "production")
    os.environ.setdefault("SECRET_KEY", "test-secret-key-please-change-32chars+")
    os.environ.setdefault("BACKEND_URL", "https://example.test")
    os.environ.setdefault("MERCADO_PAGO_WEBHOOK_SECRET", "testsecret")
    os.environ.setdefault("SEED_DEFAULT_PLANS", "1")
    os.environ.setdefault("RATE_LIMIT_AUTH", "3")


def main():
    _setup_env()

    from app import create_app
    from models.extensions import db
    from models.user_model import User

    app = create_app()

    results = []

    def check(label, condition):
        if not condition:
            raise AssertionError(label)
        results.append(label)

    with app.app_context():
        user = User(nome="Alice", email="alice@example.test", papel="usuario")
        user.set_password("Secret123")
        db.session.add(user)
        db.session.commit()
        user_token = user.generate_auth_token()

    client = app.test_client()
    auth = {"Authorization": f"Bearer {user_token}"}

    # Rotas autenticadas sem token
    resp = client.get("/api/carrinho")
    check("auth_required", resp.status_code == 401)

    # Token adulterado
    resp = client.get("/api/carrinho", headers={"Authorization": f"Bearer {user_token}x"})
    check("tampered_token_rejected", resp.status_code == 401)

    # Usuário comum não acessa rotas de admin
    resp = client.get("/api/admin/planos", headers=auth)
    check("admin_forbidden_for_user", resp.status_code == 403)

    # Login: senha errada
    resp = client.post("/api/auth/login", json={"email": "alice@example.test", "senha": "errada123"})
    check("bad_login_rejected", resp.status_code == 401)

    # Login: ok
    resp = client.post("/api/auth/login", json={"email": "alice@example.test", "senha": "Secret123"})
    data = resp.get_json() or {}
    check("login_ok", resp.status_code == 200 and bool(data.get("token")))
    check("auth_cookie_httponly", "HttpOnly" in (resp.headers.get("Set-Cookie") or ""))

    # Limite de tentativas de autenticação
    statuses = [
        client.post("/api/auth/login", json={"email": "alice@example.test", "senha": "x"}).status_code
        for _ in range(3)
    ]
    check("auth_rate_limited", 429 in statuses)

    # Entrada suspeita bloqueada
    resp = client.post(
        "/api/carrinho/cupom",
        json={"codigo": "<script>alert(1)</script>"},
        headers=auth,
    )
    check("xss_blocked", resp.status_code == 400)

    # Webhook sem cabeçalhos de assinatura
    resp = client.post("/api/payments/webhook", json={"action": "payment.updated", "data": {"id": "1"}})
    check("webhook_signature_required", resp.status_code == 401)

    # Webhook com HMAC inválido
    resp = client.post(
        "/api/payments/webhook?data.id=1&type=payment",
        json={"action": "payment.updated", "data": {"id": "1"}},
        headers={"x-signature": "ts=1,v1=deadbeef", "x-request-id": "req-1"},
    )
    check("webhook_hmac_checked", resp.status_code == 401)

    # Erros não vazam detalhes em produção
    resp = client.get("/api/payments/nao-existe", headers=auth)
    data = resp.get_json() or {}
    check("not_found_without_details", resp.status_code == 404 and "details" not in data)

    print("OK - security smoke tests passed:")
    for item in results:
        print(f"- {item}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
