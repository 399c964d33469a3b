# admin_mfa/core/errors.py
"""
Errores de dominio del módulo MFA.

Cada error lleva el status HTTP y el mensaje estable que se devuelve en el
envelope `{data, error}`. Código inválido y assertion vencida comparten el
mismo mensaje para no revelar cuál de los dos falló.
"""
from fastapi import status

GENERIC_CODE_MESSAGE = "Invalid code, try again"


class MfaError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    message: str = "Bad Request"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidCode(MfaError):
    message = GENERIC_CODE_MESSAGE


class ExpiredOrInvalidAssertion(MfaError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = GENERIC_CODE_MESSAGE


class NoPendingEnrollment(MfaError):
    message = "No MFA setup in progress"


class AlreadyEnabled(MfaError):
    message = "MFA is already enabled for this user"


class MfaNotEnabled(MfaError):
    message = "MFA is not enabled for this user"


class MfaGloballyDisabled(MfaError):
    message = "MFA is disabled for this application"


class Unauthorized(MfaError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Unauthorized"


class Forbidden(MfaError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Forbidden"


class StorageError(MfaError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Server Error"


class ConfigWriteError(MfaError):
    # el admin es de confianza: el mensaje original se devuelve tal cual
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Failed to update MFA config"


class SessionIssuanceError(MfaError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Server Error"
