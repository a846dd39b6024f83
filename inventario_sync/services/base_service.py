# ==============================================================================
# SERVICIO BASE DE ENTIDADES
# ==============================================================================
# Comportamiento común de los servicios por tabla:
#   - Lecturas a través de la caché
#   - Punto único de borrado según DELETE_POLICIES (físico o lógico)
#   - Invalidación de caché tras cada escritura
# ==============================================================================

from typing import Any, Callable, Dict, List, Optional

from inventario_sync.errors import NotFoundError
from inventario_sync.models import DELETE_POLICIES, DeletePolicy
from inventario_sync.repositories.interfaces import IEntityRepository
from inventario_sync.services.activity_service import ActivityService
from inventario_sync.services.cache_service import CacheService, invalidates_cache


class EntityService:
    """
    Base de los servicios de productos, categorías, movimientos y usuarios.

    Las subclases definen `table` y, si necesitan, los hooks
    _before_delete / _after_delete.
    """

    table: str = ''

    def __init__(
        self,
        repo: IEntityRepository,
        cache: Optional[CacheService] = None,
        activity_service: Optional[ActivityService] = None
    ):
        """
        Args:
            repo: Repositorio de entidades
            cache: Caché de lecturas (opcional; sin caché se lee siempre del repo)
            activity_service: Registro de actividad reciente (opcional)
        """
        self.repo = repo
        self.cache = cache
        self.activity_service = activity_service

    def _read(self, operation: str, params: Any, loader: Callable[[], Any]) -> Any:
        if self.cache is None:
            return loader()
        return self.cache.read(operation, params, loader)

    # =========================================================================
    # LECTURA GENÉRICA
    # =========================================================================

    def get_all(self) -> List[Dict[str, Any]]:
        """Todos los registros de la tabla (incluye inactivos)."""
        return self._read(self.table, {}, lambda: self.repo.get_all(self.table))

    def get_by_id(self, record_id: Any) -> Optional[Dict[str, Any]]:
        """Registro o None si no existe."""
        return self._read(
            f"{self.table}_by_id", {'id': record_id},
            lambda: self.repo.get_by_id(self.table, record_id)
        )

    def require(self, record_id: Any) -> Dict[str, Any]:
        """
        Como get_by_id, pero sin pasar por la caché.

        Raises:
            NotFoundError: Si no existe
        """
        record = self.repo.get_by_id(self.table, record_id)
        if record is None:
            raise NotFoundError(self.table, record_id)
        return record

    # =========================================================================
    # BORRADO
    # =========================================================================

    @property
    def delete_policy(self) -> DeletePolicy:
        return DELETE_POLICIES.get(self.table, DeletePolicy.HARD)

    def _before_delete(self, record: Dict[str, Any]) -> None:
        pass

    def _after_delete(self, record: Dict[str, Any], user: Optional[str]) -> None:
        pass

    @invalidates_cache
    def delete(self, record_id: Any, user: Optional[str] = None) -> Dict[str, Any]:
        """
        Elimina un registro aplicando la política de la tabla.

        - HARD: se quita de la tabla
        - SOFT: queda con isActive=False

        Returns:
            El registro eliminado (o desactivado)

        Raises:
            NotFoundError: Si el id no existe
        """
        with self.repo.transaction():
            record = self.require(record_id)
            self._before_delete(record)
            if self.delete_policy == DeletePolicy.SOFT:
                deleted = self.repo.update(self.table, record['id'], {'isActive': False})
            else:
                deleted = self.repo.delete(self.table, record['id'])
            self._after_delete(deleted, user)
        return deleted
