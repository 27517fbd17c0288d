"""Catálogo de planos.

Cada linha de `planos` é um par (nome, período). A vitrine pública agrupa as
linhas por nome, com uma entrada por período; o admin trabalha linha a linha.
"""

from __future__ import annotations

import logging

from models.extensions import db
from models.assinatura_model import Assinatura
from models.carrinho_model import CarrinhoItem
from models.pagamento_model import Pagamento
from models.plano_model import PERIODOS, Plano
from services.errors import ConflictError, NotFoundError, ValidationError
from services.input_validation import (
    money,
    normalize_periodo,
    normalize_text,
    parse_amount,
    parse_beneficios,
    parse_int,
)

logger = logging.getLogger(__name__)

MAX_PLAN_NAME_LEN = 255


def _periodo_order(plano: Plano) -> int:
    try:
        return PERIODOS.index(plano.periodo)
    except ValueError:
        return len(PERIODOS)


def _ordered_plans() -> list[Plano]:
    rows = Plano.query.order_by(Plano.nome.asc()).all()
    return sorted(rows, key=lambda p: (p.nome, _periodo_order(p)))


def plan_to_dict(plano: Plano) -> dict:
    return {
        "id": plano.id,
        "nome": plano.nome,
        "periodo": plano.periodo,
        "preco": money(plano.preco),
        "duracao_dias": plano.duracao_dias,
        "beneficios": plano.beneficios or [],
        "quantidade_empresas": plano.quantidade_empresas,
        "empresas_usando": plano.empresas_usando,
    }


def list_public_plans() -> list[dict]:
    grouped: dict[str, dict] = {}
    for plano in _ordered_plans():
        entry = grouped.setdefault(
            plano.nome,
            {"id": plano.nome, "nome": plano.nome, "empresas": plano.quantidade_empresas},
        )
        entry[plano.periodo] = {
            "id": plano.id,
            "preco": money(plano.preco),
            "duracaoDias": plano.duracao_dias,
            "beneficios": plano.beneficios or [],
        }
    return list(grouped.values())


def list_admin_plans() -> list[dict]:
    return [plan_to_dict(p) for p in _ordered_plans()]


def get_plan(plano_id: str) -> Plano:
    plano = db.session.get(Plano, plano_id)
    if not plano:
        raise NotFoundError("Plano não encontrado", code="plan_not_found")
    return plano


def _parse_plan_payload(data: dict, *, partial: bool = False) -> dict:
    fields: dict = {}

    if not partial or "nome" in data:
        nome = normalize_text(data.get("nome"), max_len=MAX_PLAN_NAME_LEN, min_len=1)
        if not nome:
            raise ValidationError("Nome do plano inválido", code="invalid_plan_name")
        fields["nome"] = nome

    if not partial or "periodo" in data:
        periodo = normalize_periodo(data.get("periodo"))
        if not periodo:
            raise ValidationError("Período inválido", code="invalid_period")
        fields["periodo"] = periodo

    if not partial or "preco" in data:
        preco = parse_amount(data.get("preco"), allow_zero=False)
        if preco is None:
            raise ValidationError("Preço inválido", code="invalid_price")
        fields["preco"] = preco

    duracao_raw = data.get("duracaoDias", data.get("duracao_dias"))
    if not partial or duracao_raw is not None:
        duracao = parse_int(duracao_raw, min_value=1, max_value=3650)
        if duracao is None:
            raise ValidationError("Duração inválida", code="invalid_duration")
        fields["duracao_dias"] = duracao

    if not partial or "beneficios" in data:
        beneficios = parse_beneficios(data.get("beneficios"))
        if not beneficios:
            raise ValidationError("Informe ao menos um benefício", code="invalid_benefits")
        fields["beneficios"] = beneficios

    empresas_raw = data.get("quantidadeEmpresas", data.get("quantidade_empresas"))
    if empresas_raw is not None:
        empresas = parse_int(empresas_raw, min_value=1, max_value=10000)
        if empresas is None:
            raise ValidationError("Quantidade de empresas inválida", code="invalid_seats")
        fields["quantidade_empresas"] = empresas

    return fields


def upsert_plan(data: dict) -> tuple[Plano, bool]:
    """Cria o plano ou atualiza o existente com o mesmo (nome, período)."""
    fields = _parse_plan_payload(data or {})

    plano = Plano.query.filter_by(nome=fields["nome"], periodo=fields["periodo"]).first()
    created = plano is None
    if created:
        plano = Plano(**fields)
        db.session.add(plano)
    else:
        for key, value in fields.items():
            setattr(plano, key, value)

    db.session.commit()
    logger.info(
        "Plano %s/%s %s", plano.nome, plano.periodo, "criado" if created else "atualizado"
    )
    return plano, created


def update_plan(plano_id: str, data: dict) -> Plano:
    plano = get_plan(plano_id)
    fields = _parse_plan_payload(data or {}, partial=True)
    if not fields:
        raise ValidationError("Nenhum campo para atualizar", code="nothing_to_update")

    nome = fields.get("nome", plano.nome)
    periodo = fields.get("periodo", plano.periodo)
    clash = (
        Plano.query.filter_by(nome=nome, periodo=periodo)
        .filter(Plano.id != plano.id)
        .first()
    )
    if clash:
        raise ConflictError("Já existe um plano com este nome e período", code="plan_exists")

    for key, value in fields.items():
        setattr(plano, key, value)
    db.session.commit()
    return plano


def delete_plan(plano_id: str) -> None:
    plano = get_plan(plano_id)

    in_use = (
        Pagamento.query.filter_by(plano_id=plano.id).first()
        or Assinatura.query.filter_by(plano_id=plano.id).first()
    )
    if in_use:
        raise ConflictError(
            "Plano possui pagamentos ou assinaturas e não pode ser excluído",
            code="plan_in_use",
        )

    CarrinhoItem.query.filter_by(plano_id=plano.id).delete(synchronize_session=False)
    db.session.delete(plano)
    db.session.commit()
    logger.info("Plano %s/%s excluído", plano.nome, plano.periodo)
