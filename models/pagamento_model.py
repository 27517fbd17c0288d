from __future__ import annotations

import uuid
from decimal import Decimal

from models.extensions import db
from services.date_utils import utcnow

STATUS_PENDENTE = "pendente"
STATUS_APROVADO = "aprovado"
STATUS_REPROVADO = "reprovado"
STATUS_CANCELADO = "cancelado"
STATUS_EXPIRADO = "expirado"

STATUS_PAGAMENTO = (
    STATUS_PENDENTE,
    STATUS_APROVADO,
    STATUS_REPROVADO,
    STATUS_CANCELADO,
    STATUS_EXPIRADO,
)


class Pagamento(db.Model):
    """Uma tentativa de pagamento PIX. Nunca é apagada.

    O id também é a external_reference enviada ao Mercado Pago.
    """

    __tablename__ = "pagamentos_assinatura"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    usuario_id = db.Column(
        db.String(36), db.ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False, index=True
    )
    plano_id = db.Column(db.String(36), db.ForeignKey("planos.id", ondelete="RESTRICT"), nullable=False)
    assinatura_id = db.Column(
        db.String(36),
        db.ForeignKey("assinaturas.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )

    valor = db.Column(db.Numeric(10, 2), nullable=False)
    metodo_pagamento = db.Column(db.String(50), nullable=False, default="pix")
    status_pagamento = db.Column(db.String(20), nullable=False, default=STATUS_PENDENTE, index=True)
    transaction_id = db.Column(db.String(255), nullable=True)

    data_criacao = db.Column(db.DateTime, default=utcnow, nullable=False)
    data_pagamento = db.Column(db.DateTime, nullable=True)
    data_expiracao = db.Column(db.DateTime, nullable=True)

    qr_code = db.Column(db.Text, nullable=True)
    qr_code_text = db.Column(db.Text, nullable=True)

    cupom_id = db.Column(db.String(36), db.ForeignKey("cupons.id", ondelete="SET NULL"), nullable=True)
    valor_desconto = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0"))
    ip_usuario = db.Column(db.String(45), nullable=True)

    atualizado_em = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    usuario = db.relationship("User", lazy="joined")
    plano = db.relationship("Plano", lazy="joined")
    cupom = db.relationship("Cupom", lazy="joined")
