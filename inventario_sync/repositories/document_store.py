# ==============================================================================
# DOCUMENTO PERSISTENTE - Las tablas del inventario en un solo blob
# ==============================================================================
# Las cuatro tablas (products, categories, movements, users) más reports y
# activities se guardan juntas como un único documento JSON bajo una clave
# fija. Cada mutación vuelve a persistir el documento completo.
#
# Formato:
# {
#     "products":   [{"id": 1, "name": "...", "quantity": 10, ...}],
#     "categories": [{"id": 1, "name": "...", "isActive": true, ...}],
#     "movements":  [...],
#     "users":      [...],
#     "reports":    [...],
#     "activities": [...]
# }
# ==============================================================================

import json
import os
from typing import Any, Dict, Optional

from inventario_sync.errors import StorageError
from inventario_sync.models import TABLES, normalize_document
from inventario_sync.performance_logger import profile_function
from inventario_sync.repositories.storage import KeyValueStorage


def _is_document(raw: str) -> bool:
    """True si el string es un documento JSON (objeto) legible."""
    try:
        return isinstance(json.loads(raw), dict)
    except (TypeError, ValueError):
        return False


class DocumentStore:
    """
    Almacén del documento principal.

    - load(): último documento persistido, o la semilla si no existe
    - save(): persiste el documento completo; devuelve False si falla
      (nunca lanza hacia quien llama)

    Ante un documento corrupto intenta restaurar el backup más reciente y,
    si no hay ninguno legible, vuelve a la semilla.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str,
        seed_path: Optional[str] = None,
        backup_service=None,
        default_color: str = '#3B82F6',
        default_user_id: int = 1
    ):
        """
        Args:
            storage: Almacenamiento clave-valor
            key: Clave fija del documento
            seed_path: Ruta al JSON semilla empaquetado
            backup_service: BackupService para snapshots y restauración (opcional)
            default_color: Color por defecto de categorías al normalizar
            default_user_id: Usuario por defecto de movimientos al normalizar
        """
        self.storage = storage
        self.key = key
        self.seed_path = seed_path
        self.backup_service = backup_service
        self.default_color = default_color
        self.default_user_id = default_user_id
        self.last_error: Optional[str] = None

    def _normalize(self, document: Any) -> Dict[str, Any]:
        return normalize_document(document, self.default_color, self.default_user_id)

    # =========================================================================
    # LECTURA
    # =========================================================================

    def load_seed(self) -> Dict[str, Any]:
        """
        Lee el documento semilla.

        Returns:
            Documento normalizado (vacío si no hay semilla legible)
        """
        if not self.seed_path or not os.path.exists(self.seed_path):
            return self._normalize({})
        try:
            with open(self.seed_path, 'r', encoding='utf-8') as f:
                return self._normalize(json.load(f))
        except (OSError, ValueError) as e:
            print(f"[STORAGE ERROR] Semilla ilegible en {self.seed_path}: {e}")
            return self._normalize({})

    @profile_function(name='DocumentStore.load')
    def load(self) -> Dict[str, Any]:
        """
        Carga el documento persistido.

        Returns:
            Documento normalizado: persistido, restaurado desde backup o semilla
        """
        raw = self.storage.get_item(self.key)
        if raw is None:
            print(f"[STORAGE] '{self.key}' no existe, inicializando desde semilla")
            return self.load_seed()

        if _is_document(raw):
            return self._normalize(json.loads(raw))

        print(f"[STORAGE ERROR] Documento '{self.key}' corrupto")
        if self.backup_service is not None:
            restored = self.backup_service.restore_latest_backup(self.key, _is_document)
            if restored:
                return self._normalize(json.loads(self.storage.get_item(self.key)))

        print(f"[STORAGE] Sin backups legibles para '{self.key}', usando semilla")
        return self.load_seed()

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    @profile_function(name='DocumentStore.save')
    def save(self, document: Dict[str, Any]) -> bool:
        """
        Persiste el documento completo.

        Ante un fallo de almacenamiento intenta una remediación (limpiar
        backups antiguos) y reintenta una vez.

        Returns:
            True si quedó guardado, False si no (ver last_error)
        """
        payload = json.dumps(document, ensure_ascii=False)

        if self.backup_service is not None:
            self.backup_service.create_backup(self.key)

        try:
            self.storage.set_item(self.key, payload)
            self.last_error = None
            return True
        except StorageError as e:
            print(f"[STORAGE ERROR] {e.message}")
            if self.backup_service is None:
                self.last_error = e.message
                return False

        print("[STORAGE] Espacio agotado, limpiando backups antiguos...")
        self.backup_service.cleanup_storage(keep=1)
        try:
            self.storage.set_item(self.key, payload)
            self.last_error = None
            return True
        except StorageError as e:
            print(f"[STORAGE ERROR] Error persistente guardando '{self.key}': {e.message}")
            self.last_error = e.message
            return False

    # =========================================================================
    # INFORMACIÓN Y SALUD
    # =========================================================================

    def get_storage_info(self) -> Dict[str, Any]:
        """
        Uso del almacenamiento por categoría (inventario, backups, otros).
        """
        groups = {
            'inventory': {'bytes': 0, 'items': 0},
            'backups': {'bytes': 0, 'items': 0},
            'other': {'bytes': 0, 'items': 0},
        }
        for key in self.storage.keys():
            if key == self.key:
                group = 'inventory'
            elif key.startswith('backup_'):
                group = 'backups'
            else:
                group = 'other'
            groups[group]['bytes'] += self.storage.item_size(key)
            groups[group]['items'] += 1

        total = sum(g['bytes'] for g in groups.values())
        info = {name: dict(g, size=_format_size(g['bytes'])) for name, g in groups.items()}
        info['total'] = {
            'bytes': total,
            'items': sum(g['items'] for g in groups.values()),
            'size': _format_size(total),
        }
        quota = self.storage.quota_bytes
        info['quota'] = {
            'bytes': quota,
            'usage': f"{(total / quota) * 100:.1f}%" if quota else None,
        }
        return info

    def check_health(self) -> Dict[str, Any]:
        """
        Verifica integridad y espacio del almacenamiento.

        Returns:
            Dict {status: healthy|warning|error, issues, recommendations}
        """
        health = {'status': 'healthy', 'issues': [], 'recommendations': []}
        info = self.get_storage_info()

        quota = self.storage.quota_bytes
        if quota and info['total']['bytes'] > quota * 0.8:
            health['status'] = 'warning'
            health['issues'].append('Alto uso de almacenamiento')
            health['recommendations'].append('Considerar limpiar backups antiguos')

        if info['backups']['items'] > 20:
            health['status'] = 'warning'
            health['issues'].append('Muchos backups almacenados')
            health['recommendations'].append('Ejecutar limpieza de almacenamiento')

        raw = self.storage.get_item(self.key)
        if raw is not None:
            if not _is_document(raw):
                health['status'] = 'error'
                health['issues'].append(f"Datos corruptos en {self.key}")
                health['recommendations'].append(f"Restaurar {self.key} desde backup")
            else:
                document = json.loads(raw)
                for table in TABLES[:4]:
                    if not isinstance(document.get(table, []), list):
                        health['status'] = 'error'
                        health['issues'].append(f"Tabla '{table}' corrupta")
                        health['recommendations'].append(f"Restaurar {self.key} desde backup")

        return health


def _format_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"
