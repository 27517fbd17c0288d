from __future__ import annotations

import logging

from sqlalchemy import update

from models.extensions import db
from models.empresa_model import Empresa
from models.plano_model import Plano
from services.date_utils import days_until, isoformat, parse_datetime, utcnow
from services.document_validation import normalize_cnpj, normalize_phone, validate_cnpj, validate_phone
from services.errors import NotFoundError, ValidationError
from services.input_validation import normalize_email, normalize_periodo, normalize_text

logger = logging.getLogger(__name__)

STATUS_EMPRESA = {"Pendente", "Ativo", "Inativo", "Suspenso"}
VENCE_EM_BREVE_DIAS = 7


def status_vencimento(empresa: Empresa, today=None) -> tuple[str, int | None]:
    dias = days_until(empresa.data_vencimento, today)
    if dias is None:
        return "Sem vencimento", None
    if dias < 0:
        return "Vencido", dias
    if dias <= VENCE_EM_BREVE_DIAS:
        return "Vence em breve", dias
    return "Ativo", dias


def company_to_dict(empresa: Empresa, today=None) -> dict:
    status, dias = status_vencimento(empresa, today)
    return {
        "id": empresa.id,
        "nome": empresa.nome,
        "email": empresa.email,
        "cnpj": empresa.cnpj,
        "telefone": empresa.telefone,
        "endereco": empresa.endereco,
        "cidade": empresa.cidade,
        "estado": empresa.estado,
        "cep": empresa.cep,
        "periodo": empresa.periodo,
        "plano": empresa.plano,
        "plano_id": empresa.plano_id,
        "status": empresa.status,
        "data_vencimento": isoformat(empresa.data_vencimento),
        "status_vencimento": status,
        "dias_restantes": dias,
        "criado_em": isoformat(empresa.criado_em),
    }


def list_companies() -> list[dict]:
    rows = Empresa.query.order_by(Empresa.criado_em.desc()).all()
    today = utcnow().date()
    return [company_to_dict(e, today) for e in rows]


def get_company(empresa_id: str) -> Empresa:
    empresa = db.session.get(Empresa, empresa_id)
    if not empresa:
        raise NotFoundError("Empresa não encontrada", code="company_not_found")
    return empresa


def _optional_text(data: dict, key: str, max_len: int) -> str | None:
    value = data.get(key)
    if value in (None, ""):
        return None
    text = normalize_text(value, max_len=max_len)
    if text is None:
        raise ValidationError(f"Campo {key} inválido", code="invalid_field")
    return text or None


def create_company(data: dict) -> Empresa:
    data = data or {}

    nome = normalize_text(data.get("nome"), max_len=200, min_len=1)
    if not nome:
        raise ValidationError("Nome é obrigatório", code="missing_fields")

    email = None
    if data.get("email"):
        email = normalize_email(data.get("email"))
        if not email:
            raise ValidationError("E-mail inválido", code="invalid_email")

    cnpj = None
    if data.get("cnpj"):
        if not validate_cnpj(data.get("cnpj")):
            raise ValidationError("CNPJ inválido", code="invalid_cnpj")
        cnpj = normalize_cnpj(data.get("cnpj"))

    telefone = None
    if data.get("telefone"):
        if not validate_phone(data.get("telefone")):
            raise ValidationError("Telefone inválido", code="invalid_phone")
        telefone = normalize_phone(data.get("telefone"))

    periodo = None
    if data.get("periodo"):
        periodo = normalize_periodo(data.get("periodo"))
        if not periodo:
            raise ValidationError("Período inválido", code="invalid_period")

    plano_id = data.get("plano_id") or data.get("planoId")
    if plano_id and not db.session.get(Plano, str(plano_id)):
        raise NotFoundError("Plano não encontrado", code="plan_not_found")

    status = str(data.get("status") or "Pendente").strip()
    if status not in STATUS_EMPRESA:
        raise ValidationError("Status inválido", code="invalid_status")

    vencimento = None
    if data.get("data_vencimento"):
        parsed = parse_datetime(data.get("data_vencimento"))
        if not parsed:
            raise ValidationError("Data de vencimento inválida", code="invalid_date")
        vencimento = parsed.date()

    estado = _optional_text(data, "estado", 2)
    empresa = Empresa(
        nome=nome,
        email=email,
        cnpj=cnpj,
        telefone=telefone,
        endereco=_optional_text(data, "endereco", 300),
        cidade=_optional_text(data, "cidade", 100),
        estado=estado.upper() if estado else None,
        cep=_optional_text(data, "cep", 10),
        periodo=periodo,
        plano=_optional_text(data, "plano", 100),
        plano_id=str(plano_id) if plano_id else None,
        status=status,
        data_vencimento=vencimento,
    )
    db.session.add(empresa)
    if empresa.plano_id:
        # Contador do plano sobe na mesma transação da empresa
        db.session.execute(
            update(Plano)
            .where(Plano.id == empresa.plano_id)
            .values(empresas_usando=Plano.empresas_usando + 1)
            .execution_options(synchronize_session=False)
        )
    db.session.commit()
    logger.info("Empresa %s criada", empresa.id)
    return empresa
