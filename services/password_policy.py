import re

from services.errors import ValidationError

MAX_PASSWORD_LEN = 128


class PasswordValidationError(ValidationError):
    code = "invalid_password"


def validate_password(password: str) -> None:
    """Valida politica minima de senha.

    Regras:
    - entre 8 e 128 caracteres
    - ao menos 1 letra
    - ao menos 1 numero
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("A senha deve ter ao menos 8 caracteres.")

    if len(password) > MAX_PASSWORD_LEN:
        raise PasswordValidationError("A senha deve ter no máximo 128 caracteres.")

    if not re.search(r"[A-Za-z]", password):
        raise PasswordValidationError("A senha deve conter ao menos 1 letra.")

    if not re.search(r"\d", password):
        raise PasswordValidationError("A senha deve conter ao menos 1 numero.")
