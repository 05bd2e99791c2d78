from typing import Optional


class PBError(Exception):
    """Fallo al hablar con PocketBase (red, regla, constraint...)."""
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class AuthError(PBError):
    """No hay sesión o expiró."""


class AccessDenied(PBError):
    """El proyecto/tarea no pertenece al usuario de la sesión."""


class NotFound(PBError):
    pass


class ValidationError(PBError):
    """Entrada inválida; se rechaza antes de escribir nada."""
