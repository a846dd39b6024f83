# ==============================================================================
# TAXONOMÍA DE ERRORES
# ==============================================================================
# Todos los errores del núcleo comparten la misma forma (kind + message) para
# que la capa de presentación pueda mostrarlos sin conocer su origen.
# ==============================================================================

from typing import Any, Dict, List, Optional


class InventarioError(Exception):
    """Error base del sistema de inventario."""

    kind = 'error'
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        """Forma estable del error para la UI: {kind, message}."""
        return {'kind': self.kind, 'message': self.message}


class ValidationError(InventarioError):
    """Entrada mal formada o incompleta en un create/update."""

    kind = 'validation'
    http_status = 400

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors) if errors else [message]

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['errors'] = self.errors
        return data


class NotFoundError(InventarioError):
    """La operación referenció un id inexistente."""

    kind = 'not_found'
    http_status = 404

    def __init__(self, table: str, record_id: Any):
        super().__init__(f"Registro {record_id} no encontrado en '{table}'")
        self.table = table
        self.record_id = record_id


class StorageError(InventarioError):
    """
    El almacenamiento persistente falló (ej. cuota agotada).

    El estado en memoria sigue siendo válido para la sesión actual aunque
    no haya podido guardarse.
    """

    kind = 'storage'
    http_status = 507


class SessionExpiredError(InventarioError):
    """No hay sesión válida para la operación solicitada."""

    kind = 'session'
    http_status = 401

    def __init__(self, message: str = 'Sesión expirada. Por favor, inicia sesión nuevamente.'):
        super().__init__(message)


class PermissionDeniedError(InventarioError):
    """El rol del usuario no permite la operación."""

    kind = 'permission'
    http_status = 403

    def __init__(self, message: str = 'No tienes permisos para realizar esta acción'):
        super().__init__(message)
