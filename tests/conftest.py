"""Fixtures compartilhadas: app com SQLite temporário e gateway PIX falso."""

import sys
import uuid
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from app import create_app  # noqa: E402
from config import Config  # noqa: E402
from models.extensions import db  # noqa: E402
from models.cupom_model import Cupom  # noqa: E402
from models.plano_model import Plano  # noqa: E402
from models.user_model import User  # noqa: E402
from services.date_utils import utcnow  # noqa: E402
from services.mercadopago import EXTENSION_KEY, GatewayPayment, MercadoPagoError, PixCharge  # noqa: E402
from services.rate_limiter import limiter  # noqa: E402

PASSWORD = "Senha1234"


class FakeGateway:
    """Substitui o MercadoPagoClient: guarda as cobranças em memória."""

    def __init__(self):
        self.charges = {}
        self.calls = []
        self.fail = False

    def create_pix_payment(self, **kwargs):
        self.calls.append(kwargs)
        if self.fail:
            raise MercadoPagoError("Erro Mercado Pago (HTTP 500): indisponível", status_code=500)
        transaction_id = str(1000 + len(self.charges))
        self.charges[transaction_id] = {
            "status": "pending",
            "external_reference": kwargs["external_reference"],
        }
        return PixCharge(
            transaction_id=transaction_id,
            status="pending",
            qr_code_base64="aVZCT1J3MEtHZ28=",
            qr_code="00020126580014br.gov.bcb.pix",
        )

    def set_status(self, transaction_id, status):
        self.charges[transaction_id]["status"] = status

    def get_payment(self, payment_id):
        charge = self.charges.get(str(payment_id))
        if charge is None:
            raise MercadoPagoError("Erro Mercado Pago (HTTP 404): not found", status_code=404)
        return GatewayPayment(
            id=str(payment_id),
            status=charge["status"],
            external_reference=charge["external_reference"],
        )


def build_app(tmp_path, **overrides):
    class TestConfig(Config):
        TESTING = True
        IS_PRODUCTION = False
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "test.db")
        SEED_DEFAULT_PLANS = False
        DEFAULT_ADMIN_PASSWORD = ""
        DB_RETRY_DELAY = 0
        MERCADO_PAGO_ACCESS_TOKEN = "TEST-token"
        MERCADO_PAGO_WEBHOOK_SECRET = ""
        BACKEND_URL = "https://api.example.test"

    for name, value in overrides.items():
        setattr(TestConfig, name, value)

    app = create_app(TestConfig)
    app.extensions[EXTENSION_KEY] = FakeGateway()
    limiter.reset()
    return app


@pytest.fixture
def app(tmp_path):
    app = build_app(tmp_path)

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()
    limiter.reset()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def gateway(app):
    return app.extensions[EXTENSION_KEY]


def make_user(app, *, email=None, nome="Maria Silva", papel="usuario", password=PASSWORD):
    with app.app_context():
        user = User(nome=nome, email=email or f"{uuid.uuid4().hex[:8]}@example.com", papel=papel)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user.id, user.generate_auth_token()


def make_plan(app, *, nome="Pro", periodo="mensal", preco="100.00", duracao_dias=30):
    with app.app_context():
        plano = Plano(
            nome=nome,
            periodo=periodo,
            preco=Decimal(preco),
            duracao_dias=duracao_dias,
            beneficios=["Relatórios", "Suporte"],
            quantidade_empresas=1,
        )
        db.session.add(plano)
        db.session.commit()
        return plano.id


def make_coupon(app, *, codigo="SAVE10", tipo="percentual", valor="10", quantidade_maxima=None, **extra):
    now = utcnow()
    with app.app_context():
        cupom = Cupom(
            codigo=codigo,
            tipo=tipo,
            valor=Decimal(valor),
            quantidade_maxima=quantidade_maxima,
            quantidade_usada=extra.get("quantidade_usada", 0),
            data_inicio=extra.get("data_inicio", now - timedelta(days=1)),
            data_fim=extra.get("data_fim", now + timedelta(days=30)),
            ativo=extra.get("ativo", True),
        )
        db.session.add(cupom)
        db.session.commit()
        return cupom.id


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user(app):
    return make_user(app, email="maria@example.com")


@pytest.fixture
def auth_headers(user):
    return bearer(user[1])


@pytest.fixture
def admin_headers(app):
    _, token = make_user(app, email="admin@example.com", nome="Admin", papel="admin")
    return bearer(token)


@pytest.fixture
def plan_id(app):
    return make_plan(app)
