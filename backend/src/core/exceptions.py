"""
Domain exceptions for the signup, invite and password-recovery workflows.

Each exception carries the HTTP status code and a stable machine-readable
``code`` so the API layer can render a consistent ``{"detail", "type"}``
body and the frontend can show a specific message.
"""

from typing import Optional


class AuthFlowError(Exception):
    """Base class for workflow errors surfaced to API callers."""

    status_code: int = 500
    code: str = "internal_error"
    default_detail: str = "Error interno"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(AuthFlowError):
    """Missing or malformed input."""
    status_code = 400
    code = "validation_error"
    default_detail = "Campos incompletos"


class InvalidCode(AuthFlowError):
    status_code = 400
    code = "invalid_code"
    default_detail = "Código inválido"


class InvalidOrExpiredToken(AuthFlowError):
    status_code = 400
    code = "invalid_or_expired_token"
    default_detail = "Token inválido o expirado"


class Unauthorized(AuthFlowError):
    status_code = 401
    code = "unauthorized"
    default_detail = "No autorizado"


class Forbidden(AuthFlowError):
    status_code = 403
    code = "forbidden"
    default_detail = "Acceso denegado"


class NotFound(AuthFlowError):
    status_code = 404
    code = "not_found"
    default_detail = "No encontrado"


class Conflict(AuthFlowError):
    status_code = 409
    code = "conflict"
    default_detail = "Conflicto"


class Expired(AuthFlowError):
    status_code = 410
    code = "expired"
    default_detail = "Expirado"


class CodeExpired(Expired):
    code = "code_expired"
    default_detail = "Código expirado"


class RateLimited(AuthFlowError):
    status_code = 429
    code = "rate_limited"
    default_detail = "Espera antes de solicitar otro código"


class TooManyAttempts(AuthFlowError):
    status_code = 429
    code = "too_many_attempts"
    default_detail = "Demasiados intentos"


class DependencyFailure(AuthFlowError):
    """Store or mail failure not otherwise classified."""
    status_code = 500
    code = "dependency_failure"
    default_detail = "Error interno"


class EmailDeliveryFailed(DependencyFailure):
    code = "email_delivery_failed"
    default_detail = "No se pudo enviar el correo"


class IdentityCreateFailed(DependencyFailure):
    code = "identity_create_failed"
    default_detail = "No se pudo crear el usuario"


class ClinicCreateFailed(DependencyFailure):
    code = "clinic_create_failed"
    default_detail = "No se pudo crear la clínica"


class ProfileCreateFailed(DependencyFailure):
    code = "profile_create_failed"
    default_detail = "No se pudo crear el perfil"
