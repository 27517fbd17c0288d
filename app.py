import logging

from flask import Flask, jsonify, request
from flask_login import LoginManager
from dotenv import load_dotenv
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

# Carrega variaveis de ambiente de .env (desenvolvimento local)
load_dotenv()

from config import Config
from models.database import init_db
from models.extensions import db
from models.user_model import User

from routes.admin_routes import admin_bp
from routes.auth_routes import auth_bp
from routes.cart_routes import cart_bp
from routes.catalog_routes import catalog_bp
from routes.payment_routes import payments_bp

from services.errors import BillingError
from services.mercadopago import init_gateway
from services.permissions import json_error
from services.security import init_security

logger = logging.getLogger(__name__)


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(level)


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        if token:
            return token
    return None


def _init_login(app: Flask) -> None:
    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        if not user_id:
            return None

        try:
            return db.session.get(User, str(user_id))
        except OperationalError:
            # Conexao SSL instavel em pools remotos: tenta limpar e reabrir.
            db.session.rollback()
            db.session.remove()
            db.engine.dispose()
            try:
                return db.session.get(User, str(user_id))
            except OperationalError:
                db.session.rollback()
                return None

    @login_manager.request_loader
    def load_user_from_request(req):
        token = _bearer_token() or req.cookies.get(app.config.get("AUTH_COOKIE_NAME", "auth_token"))
        if not token:
            return None
        return User.verify_auth_token(token)

    @login_manager.unauthorized_handler
    def unauthorized():
        return json_error("not_authenticated", 401, "Token não fornecido ou inválido")


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(BillingError)
    def handle_billing_error(exc: BillingError):
        db.session.rollback()
        include_details = not app.config.get("IS_PRODUCTION")
        if exc.status >= 500:
            logger.error("%s em %s %s: %s", exc.code, request.method, request.path, exc.details or exc.message)
        return jsonify(exc.to_dict(include_details=include_details)), exc.status

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        error = (exc.name or "error").lower().replace(" ", "_")
        return json_error(error, exc.code or 500, exc.description)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        db.session.rollback()
        logger.exception("Erro inesperado em %s %s", request.method, request.path)
        payload = {"error": "internal_error", "message": "Erro interno do servidor"}
        if not app.config.get("IS_PRODUCTION"):
            payload["details"] = str(exc)
        return jsonify(payload), 500


def create_app(config_class=Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_class)

    _configure_logging(app)

    hops = int(app.config.get("TRUSTED_PROXY_HOPS", 0))
    if hops > 0:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops)

    # DB
    init_db(app)

    # Gateway PIX (um cliente por app)
    init_gateway(app)

    _init_login(app)
    init_security(app)
    _register_error_handlers(app)

    # Blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(admin_bp)

    @app.get("/healthz")
    def healthz():
        return "ok", 200

    return app
