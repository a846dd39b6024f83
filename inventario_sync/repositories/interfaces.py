# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Contratos (protocolos) que cumplen las implementaciones de persistencia.
# Los servicios dependen de estas interfaces, no de las clases concretas:
#
# 1. INDEPENDENCIA DE ALMACENAMIENTO
#    - Hoy: archivos JSON en disco (KeyValueStorage)
#    - Cambiar el backend solo requiere otra implementación
#
# 2. TESTING
#    - Fácil crear dobles que implementen estas interfaces
#
# ==============================================================================

from contextlib import AbstractContextManager
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class IKeyValueStorage(Protocol):
    """
    Almacenamiento clave-valor de strings.
    Usado por: DocumentStore, BackupService, SessionService.
    """

    def get_item(self, key: str) -> Optional[str]:
        """Valor de la clave o None."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Guarda el valor; lanza StorageError si falla."""
        ...

    def remove_item(self, key: str) -> bool:
        """Elimina la clave."""
        ...

    def keys(self) -> List[str]:
        """Claves existentes."""
        ...


@runtime_checkable
class IDocumentStore(Protocol):
    """
    Documento persistente con todas las tablas.
    """

    last_error: Optional[str]

    def load(self) -> Dict[str, Any]:
        """Documento persistido o semilla."""
        ...

    def load_seed(self) -> Dict[str, Any]:
        """Documento semilla."""
        ...

    def save(self, document: Dict[str, Any]) -> bool:
        """Persiste el documento; False si no se pudo."""
        ...


@runtime_checkable
class IEntityRepository(Protocol):
    """
    CRUD genérico por nombre de tabla.
    Usado por todos los servicios de entidades.
    """

    def get_all(self, table: str) -> List[Dict[str, Any]]:
        """Registros de la tabla."""
        ...

    def get_by_id(self, table: str, record_id: Any) -> Optional[Dict[str, Any]]:
        """Registro o None."""
        ...

    def create(self, table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Crea con id y timestamps."""
        ...

    def update(self, table: str, record_id: Any, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Mezcla campos; NotFoundError si no existe."""
        ...

    def delete(self, table: str, record_id: Any) -> Dict[str, Any]:
        """Borrado físico; NotFoundError si no existe."""
        ...

    def replace_table(self, table: str, rows: List[Dict[str, Any]]) -> None:
        """Reemplaza la tabla completa."""
        ...

    def transaction(self) -> AbstractContextManager:
        """Agrupa escrituras con rollback."""
        ...

    def now(self) -> str:
        """Timestamp ISO actual."""
        ...
