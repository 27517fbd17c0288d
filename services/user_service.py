from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models.extensions import db
from models.user_model import User
from services.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from services.input_validation import normalize_email, normalize_name
from services.password_policy import validate_password

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security")


def registrar_usuario(nome: str, email: str, senha: str) -> User:
    if not nome or not email or not senha:
        raise ValidationError("Nome, email e senha são obrigatórios", code="missing_fields")

    nome_norm = normalize_name(nome)
    if not nome_norm:
        raise ValidationError(
            f"Nome deve ter entre 2 e {current_app.config.get('NAME_MAX_LEN', 100)} caracteres",
            code="invalid_name",
        )

    email_norm = normalize_email(email)
    if not email_norm:
        raise ValidationError("E-mail inválido", code="invalid_email")

    validate_password(senha)

    if User.query.filter_by(email=email_norm).first():
        raise ConflictError("Email já cadastrado", code="email_taken")

    user = User(nome=nome_norm, email=email_norm, papel="usuario")
    user.set_password(senha)

    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("Email já cadastrado", code="email_taken") from exc

    logger.info("Conta criada para %s", email_norm)
    return user


def autenticar_usuario(email: str, senha: str) -> User:
    email_norm = normalize_email(email)
    if not email_norm or not senha:
        raise ValidationError("Email e senha são obrigatórios", code="missing_fields")

    user = User.query.filter_by(email=email_norm).first()
    if not user or not user.check_password(senha):
        security_logger.warning("Falha de login para %s", email_norm)
        raise AuthenticationError("Email ou senha incorretos", code="invalid_credentials")
    return user


def obter_usuario(user_id: str) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("Usuário não encontrado", code="user_not_found")
    return user


def atualizar_dados(user: User, data: dict) -> User:
    data = data or {}
    if "nome" not in data and "email" not in data:
        raise ValidationError("Nenhum campo para atualizar", code="nothing_to_update")

    if "nome" in data:
        nome = normalize_name(data.get("nome"))
        if not nome:
            raise ValidationError(
                f"Nome deve ter entre 2 e {current_app.config.get('NAME_MAX_LEN', 100)} caracteres",
                code="invalid_name",
            )
        user.nome = nome

    if "email" in data:
        email = normalize_email(data.get("email"))
        if not email:
            raise ValidationError("E-mail inválido", code="invalid_email")
        other = User.query.filter(User.email == email, User.id != user.id).first()
        if other:
            raise ConflictError("Email já cadastrado", code="email_taken")
        user.email = email

    db.session.commit()
    return user


def alterar_senha(user: User, senha_atual: str, nova_senha: str) -> None:
    if not senha_atual or not nova_senha:
        raise ValidationError("Senha atual e nova senha são obrigatórias", code="missing_fields")

    if not user.check_password(senha_atual):
        security_logger.warning("Senha atual incorreta na troca de senha (usuário %s)", user.id)
        raise AuthenticationError("Senha atual incorreta", code="invalid_credentials")

    validate_password(nova_senha)
    user.set_password(nova_senha)
    db.session.commit()
    logger.info("Senha alterada para o usuário %s", user.id)
