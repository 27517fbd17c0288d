from __future__ import annotations

import uuid

from models.extensions import db
from services.date_utils import utcnow


class Empresa(db.Model):
    __tablename__ = "empresas"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    nome = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=True)
    # Armazenamos apenas dígitos (CNPJ / telefone)
    cnpj = db.Column(db.String(20), nullable=True)
    telefone = db.Column(db.String(30), nullable=True)
    endereco = db.Column(db.String(300), nullable=True)
    cidade = db.Column(db.String(100), nullable=True)
    estado = db.Column(db.String(2), nullable=True)
    cep = db.Column(db.String(10), nullable=True)

    periodo = db.Column(db.String(20), nullable=True)
    plano = db.Column(db.String(100), nullable=True)
    plano_id = db.Column(db.String(36), db.ForeignKey("planos.id", ondelete="SET NULL"), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="Pendente")
    data_vencimento = db.Column(db.Date, nullable=True)

    criado_em = db.Column(db.DateTime, default=utcnow, nullable=False)
    atualizado_em = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)
