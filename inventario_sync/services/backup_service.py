# ==============================================================================
# SERVICIO DE BACKUPS
# ==============================================================================
# Guarda snapshots de una clave del almacenamiento bajo claves derivadas:
#
#   backup_<clave_base>_<epoch_ms>
#
# Mantiene solo los últimos N backups por clave base (rotación automática) y
# permite restaurar el más reciente cuando la clave principal está corrupta.
# ==============================================================================

import time
from typing import Callable, Dict, List, Optional

from inventario_sync.errors import StorageError
from inventario_sync.repositories.storage import KeyValueStorage


class BackupService:
    """
    Servicio de backups sobre el almacenamiento clave-valor.

    Responsabilidades:
    - Crear un snapshot antes de sobrescribir datos críticos
    - Rotar backups antiguos (mantener solo los últimos N por clave)
    - Liberar espacio cuando se agota la cuota
    - Restaurar desde el backup legible más reciente

    Uso:
        backups = BackupService(storage, max_backups=5)
        backups.create_backup('inventario_database')
    """

    BACKUP_PREFIX = 'backup_'

    def __init__(
        self,
        storage: KeyValueStorage,
        max_backups: int = 5,
        clock: Callable[[], float] = time.time
    ):
        """
        Args:
            storage: Almacenamiento donde viven datos y backups
            max_backups: Cantidad de backups a mantener por clave base
            clock: Fuente de tiempo (segundos epoch)
        """
        self.storage = storage
        self.max_backups = max_backups
        self.clock = clock

    # =========================================================================
    # CLAVES DE BACKUP
    # =========================================================================

    def _backup_key(self, base_key: str, timestamp_ms: int) -> str:
        return f"{self.BACKUP_PREFIX}{base_key}_{timestamp_ms}"

    @classmethod
    def parse_backup_key(cls, key: str) -> Optional[tuple]:
        """
        Separa una clave de backup en (clave_base, timestamp_ms).

        Returns:
            Tupla o None si la clave no tiene formato de backup
        """
        if not key.startswith(cls.BACKUP_PREFIX):
            return None
        body = key[len(cls.BACKUP_PREFIX):]
        base_key, sep, stamp = body.rpartition('_')
        if not sep or not base_key or not stamp.isdigit():
            return None
        return base_key, int(stamp)

    def get_existing_backups(self, base_key: str) -> List[str]:
        """
        Backups de una clave base, más reciente primero.
        """
        backups = []
        for key in self.storage.keys():
            parsed = self.parse_backup_key(key)
            if parsed and parsed[0] == base_key:
                backups.append((parsed[1], key))
        backups.sort(reverse=True)
        return [key for _, key in backups]

    def _backup_groups(self) -> Dict[str, List[str]]:
        """Todos los backups agrupados por clave base (más reciente primero)."""
        groups: Dict[str, List[tuple]] = {}
        for key in self.storage.keys():
            parsed = self.parse_backup_key(key)
            if parsed:
                groups.setdefault(parsed[0], []).append((parsed[1], key))
        return {
            base: [key for _, key in sorted(items, reverse=True)]
            for base, items in groups.items()
        }

    # =========================================================================
    # CREACIÓN Y ROTACIÓN
    # =========================================================================

    def create_backup(self, base_key: str) -> dict:
        """
        Crea un snapshot del valor actual de una clave.

        Nunca lanza: un backup fallido no debe impedir el guardado.

        Returns:
            Dict con resultado: {success, message, backup_key, errors}
        """
        result = {
            'success': False,
            'message': '',
            'backup_key': None,
            'errors': []
        }

        current = self.storage.get_item(base_key)
        if current is None:
            result['message'] = 'No hay datos para respaldar'
            return result

        timestamp_ms = int(self.clock() * 1000)
        backup_key = self._backup_key(base_key, timestamp_ms)
        while self.storage.get_item(backup_key) is not None:
            timestamp_ms += 1
            backup_key = self._backup_key(base_key, timestamp_ms)

        try:
            self.storage.set_item(backup_key, current)
        except StorageError as e:
            result['message'] = f'Error al crear backup: {e.message}'
            result['errors'].append(e.message)
            print(f"[BACKUP ERROR] {e.message}")
            return result

        result['success'] = True
        result['backup_key'] = backup_key
        result['message'] = f'Backup creado: {backup_key}'

        self.rotate_backups(base_key)
        return result

    def rotate_backups(self, base_key: str, keep: int = None) -> dict:
        """
        Elimina backups antiguos de una clave, manteniendo los más recientes.

        Args:
            base_key: Clave base
            keep: Cuántos conservar (por defecto max_backups)

        Returns:
            Dict con resultado: {deleted_count, remaining_count}
        """
        keep = self.max_backups if keep is None else keep
        backups = self.get_existing_backups(base_key)
        deleted = 0

        for backup_key in backups[keep:]:
            if self.storage.remove_item(backup_key):
                deleted += 1

        return {
            'deleted_count': deleted,
            'remaining_count': len(backups) - deleted
        }

    def cleanup_storage(self, keep: int = 1) -> int:
        """
        Libera espacio dejando solo los `keep` backups más recientes por clave.

        Se usa como remediación cuando el almacenamiento agota su cuota.

        Returns:
            Cantidad de backups eliminados
        """
        deleted = 0
        for base_key, backups in self._backup_groups().items():
            for backup_key in backups[keep:]:
                if self.storage.remove_item(backup_key):
                    deleted += 1
                    print(f"[BACKUP] Backup antiguo eliminado: {backup_key}")
        print(f"[BACKUP] Limpieza de almacenamiento completada ({deleted} eliminados)")
        return deleted

    # =========================================================================
    # RESTAURACIÓN
    # =========================================================================

    def restore_latest_backup(
        self,
        base_key: str,
        is_valid: Callable[[str], bool] = None
    ) -> Optional[str]:
        """
        Restaura la clave base desde el backup válido más reciente.

        Args:
            base_key: Clave a restaurar
            is_valid: Validador del contenido (ej. que sea JSON legible)

        Returns:
            Clave del backup restaurado, o None si ninguno sirvió
        """
        for backup_key in self.get_existing_backups(base_key):
            raw = self.storage.get_item(backup_key)
            if raw is None:
                continue
            if is_valid is not None and not is_valid(raw):
                print(f"[BACKUP] Backup ilegible ignorado: {backup_key}")
                continue
            try:
                self.storage.set_item(base_key, raw)
            except StorageError as e:
                print(f"[BACKUP ERROR] No se pudo restaurar {backup_key}: {e.message}")
                return None
            print(f"[BACKUP] Datos restaurados desde {backup_key}")
            return backup_key
        return None

    def get_backup_status(self, base_key: str) -> dict:
        """
        Estado actual de los backups de una clave.
        """
        backups = self.get_existing_backups(base_key)
        backup_info = []
        for backup_key in backups:
            size_bytes = self.storage.item_size(backup_key)
            backup_info.append({
                'key': backup_key,
                'timestamp': self.parse_backup_key(backup_key)[1],
                'size_bytes': size_bytes,
                'size_kb': round(size_bytes / 1024, 2)
            })

        return {
            'total_backups': len(backups),
            'max_backups': self.max_backups,
            'backups': backup_info,
        }
