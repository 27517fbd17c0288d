from __future__ import annotations

import uuid

from models.extensions import db
from services.date_utils import utcnow

# Ordem de exibição (mensal -> anual)
PERIODOS = ("mensal", "trimestral", "semestral", "anual")


class Plano(db.Model):
    __tablename__ = "planos"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    nome = db.Column(db.String(255), nullable=False)
    periodo = db.Column(db.String(20), nullable=False)  # mensal | trimestral | semestral | anual
    preco = db.Column(db.Numeric(10, 2), nullable=False)
    duracao_dias = db.Column(db.Integer, nullable=False)
    beneficios = db.Column(db.JSON, nullable=False, default=list)
    quantidade_empresas = db.Column(db.Integer, nullable=False, default=1)
    empresas_usando = db.Column(db.Integer, nullable=False, default=0)

    criado_em = db.Column(db.DateTime, default=utcnow, nullable=False)
    atualizado_em = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("nome", "periodo", name="planos_nome_periodo_unique"),
    )
