import uuid

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from flask import current_app

from models.extensions import db
from services.date_utils import utcnow

PAPEIS = {"usuario", "admin"}


class User(UserMixin, db.Model):
    __tablename__ = "usuarios"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    nome = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    papel = db.Column(db.String(50), nullable=False, default="usuario")

    criado_em = db.Column(db.DateTime, default=utcnow, nullable=False)
    atualizado_em = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    assinaturas = db.relationship(
        "Assinatura",
        backref="usuario",
        lazy=True,
        cascade="all, delete-orphan",
    )

    @property
    def is_admin(self) -> bool:
        return self.papel == "admin"

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    # Token de acesso (Bearer / cookie), assinado com SECRET_KEY
    @staticmethod
    def _serializer():
        return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt="auth-token")

    def generate_auth_token(self) -> str:
        s = self._serializer()
        return s.dumps({"uid": self.id, "papel": self.papel})

    @staticmethod
    def verify_auth_token(token: str, max_age_seconds: int | None = None):
        if not token:
            return None
        if max_age_seconds is None:
            max_age_seconds = int(current_app.config.get("AUTH_TOKEN_MAX_AGE", 8 * 60 * 60))
        s = User._serializer()
        try:
            data = s.loads(token, max_age=max_age_seconds)
        except (BadSignature, SignatureExpired):
            return None

        user_id = data.get("uid") if isinstance(data, dict) else None
        if not user_id:
            return None
        return db.session.get(User, str(user_id))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "nome": self.nome,
            "email": self.email,
            "papel": self.papel,
        }
