from __future__ import annotations


class BillingError(Exception):
    """Erro de negócio com status HTTP e código estável (snake_case).

    `message` é o texto em português devolvido ao cliente. `details` só é
    exposto fora de produção.
    """

    status = 400
    code = "erro"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status: int | None = None,
        details: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        if code:
            self.code = code
        if status:
            self.status = status

    def to_dict(self, *, include_details: bool = False) -> dict:
        payload = {"error": self.code, "message": self.message}
        if include_details and self.details:
            payload["details"] = self.details
        return payload


class ValidationError(BillingError):
    status = 400
    code = "validation_error"


class NotFoundError(BillingError):
    status = 404
    code = "not_found"


class ConflictError(BillingError):
    status = 409
    code = "conflict"


class GatewayError(BillingError):
    status = 500
    code = "payment_failed"


class StatePersistenceError(BillingError):
    status = 500
    code = "state_persistence_failed"


class AuthenticationError(BillingError):
    status = 401
    code = "not_authenticated"
