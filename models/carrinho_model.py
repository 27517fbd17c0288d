from __future__ import annotations

import uuid
from decimal import Decimal

from models.extensions import db
from services.date_utils import utcnow


class CarrinhoItem(db.Model):
    """Item do carrinho. Na prática existe no máximo um por usuário."""

    __tablename__ = "carrinho_usuarios"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    usuario_id = db.Column(
        db.String(36), db.ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False, index=True
    )
    plano_id = db.Column(db.String(36), db.ForeignKey("planos.id", ondelete="CASCADE"), nullable=False)
    periodo = db.Column(db.String(20), nullable=False)
    quantidade = db.Column(db.Integer, nullable=False, default=1)

    cupom_codigo = db.Column(db.String(50), nullable=True)
    cupom_desconto = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0"))

    criado_em = db.Column(db.DateTime, default=utcnow, nullable=False)
    atualizado_em = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    plano = db.relationship("Plano", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint(
            "usuario_id", "plano_id", "periodo", name="carrinho_usuario_plano_periodo_unique"
        ),
    )
