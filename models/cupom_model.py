from __future__ import annotations

import uuid

from models.extensions import db
from services.date_utils import utcnow

TIPOS_CUPOM = ("percentual", "fixo")


class Cupom(db.Model):
    __tablename__ = "cupons"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    codigo = db.Column(db.String(50), unique=True, nullable=False, index=True)
    tipo = db.Column(db.String(20), nullable=False)  # percentual | fixo
    valor = db.Column(db.Numeric(10, 2), nullable=False)

    # None = sem limite de usos
    quantidade_maxima = db.Column(db.Integer, nullable=True)
    # Só cresce: incrementado quando um pagamento com o cupom é aprovado
    quantidade_usada = db.Column(db.Integer, nullable=False, default=0)

    data_inicio = db.Column(db.DateTime, nullable=False)
    data_fim = db.Column(db.DateTime, nullable=False)
    ativo = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)
