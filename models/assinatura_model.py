from __future__ import annotations

import uuid

from models.extensions import db
from services.date_utils import utcnow

STATUS_ATIVA = "ativa"
STATUS_INATIVA = "inativa"
STATUS_CANCELADA = "cancelada"
STATUS_VENCIDA = "vencida"


class Assinatura(db.Model):
    __tablename__ = "assinaturas"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    usuario_id = db.Column(
        db.String(36), db.ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False, index=True
    )
    plano_id = db.Column(db.String(36), db.ForeignKey("planos.id", ondelete="RESTRICT"), nullable=False)

    # Um pagamento aprovado gera no máximo uma assinatura
    pagamento_id = db.Column(db.String(36), unique=True, nullable=True)

    status = db.Column(db.String(20), nullable=False, default=STATUS_ATIVA)
    data_assinatura = db.Column(db.DateTime, nullable=True)
    data_vencimento = db.Column(db.DateTime, nullable=True)

    criado_em = db.Column(db.DateTime, default=utcnow, nullable=False)
    atualizado_em = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    plano = db.relationship("Plano", lazy="joined")
