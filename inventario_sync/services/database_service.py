# ==============================================================================
# SERVICIO DE BASE DE DATOS
# ==============================================================================
# Utilidades sobre el documento completo: exportar, importar, reiniciar desde
# la semilla, uso del almacenamiento, salud y backups.
# ==============================================================================

from typing import Any, Dict, Optional

from inventario_sync.errors import StorageError
from inventario_sync.repositories.document_store import DocumentStore
from inventario_sync.repositories.entity_repository import EntityRepository
from inventario_sync.services.backup_service import BackupService
from inventario_sync.services.cache_service import CacheService, invalidates_cache


class DatabaseService:
    """Operaciones de mantenimiento del documento persistido."""

    def __init__(
        self,
        repo: EntityRepository,
        store: DocumentStore,
        backup_service: BackupService,
        cache: Optional[CacheService] = None
    ):
        self.repo = repo
        self.store = store
        self.backup_service = backup_service
        self.cache = cache

    def export_data(self) -> str:
        """Documento completo como JSON."""
        return self.repo.export_data()

    @invalidates_cache
    def import_data(self, raw: str) -> Dict[str, int]:
        """
        Reemplaza todos los datos por el JSON recibido.

        Raises:
            ValidationError: Si el JSON no es válido
        """
        return self.repo.import_data(raw)

    @invalidates_cache
    def reset(self) -> None:
        """Vuelve a los datos semilla."""
        self.repo.reset()

    def get_storage_info(self) -> Dict[str, Any]:
        info = self.store.get_storage_info()
        info['backupStatus'] = self.backup_service.get_backup_status(self.store.key)
        return info

    def check_health(self) -> Dict[str, Any]:
        return self.store.check_health()

    def create_backup(self) -> Dict[str, Any]:
        """
        Snapshot manual del documento persistido.

        Raises:
            StorageError: Si no hay documento guardado o no pudo escribirse
        """
        result = self.backup_service.create_backup(self.store.key)
        if not result['success']:
            raise StorageError(result['message'])
        return result

    def cleanup_storage(self) -> int:
        """Deja solo el backup más reciente por clave."""
        return self.backup_service.cleanup_storage(keep=1)
