# ==============================================================================
# ALMACENAMIENTO CLAVE-VALOR - Equivalente a localStorage en disco
# ==============================================================================
# Cada clave es un archivo dentro de la carpeta de datos. Los valores son
# strings (normalmente JSON serializado por quien llama).
#
# - Escritura atómica: archivo temporal + os.replace
# - Cuota opcional en bytes: al superarla se lanza StorageQuotaError, igual
#   que el QuotaExceededError del navegador
# ==============================================================================

import os
import re
import threading
from typing import List, Optional

from inventario_sync.errors import StorageError


class StorageQuotaError(StorageError):
    """La escritura superaría la cuota configurada."""


_KEY_RE = re.compile(r'^[A-Za-z0-9_.\-]+$')


class KeyValueStorage:
    """
    Almacén clave-valor persistente basado en archivos.

    Uso:
        storage = KeyValueStorage('/app/instance', quota_bytes=5 * 1024 * 1024)
        storage.set_item('inventario_database', json.dumps(doc))
        raw = storage.get_item('inventario_database')
    """

    SUFFIX = '.json'

    def __init__(self, base_dir: str, quota_bytes: int = 0):
        """
        Args:
            base_dir: Carpeta donde se guardan los archivos
            quota_bytes: Límite total en bytes (0 = sin límite)
        """
        self.base_dir = base_dir
        self.quota_bytes = quota_bytes or 0
        self._lock = threading.RLock()
        os.makedirs(self.base_dir, exist_ok=True)

    def _path(self, key: str) -> str:
        if not key or not _KEY_RE.match(key):
            raise ValueError(f"Clave de almacenamiento inválida: {key!r}")
        return os.path.join(self.base_dir, key + self.SUFFIX)

    # =========================================================================
    # OPERACIONES BÁSICAS
    # =========================================================================

    def get_item(self, key: str) -> Optional[str]:
        """
        Lee el valor de una clave.

        Returns:
            El string guardado o None si la clave no existe
        """
        path = self._path(key)
        with self._lock:
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    return f.read()
            except FileNotFoundError:
                return None

    def set_item(self, key: str, value: str) -> None:
        """
        Guarda el valor de una clave.

        Raises:
            StorageQuotaError: Si la escritura supera la cuota
            StorageError: Si el sistema de archivos falla
        """
        path = self._path(key)
        encoded = value.encode('utf-8')

        with self._lock:
            if self.quota_bytes:
                projected = self.usage() - self.item_size(key) + len(encoded)
                if projected > self.quota_bytes:
                    raise StorageQuotaError(
                        f"Cuota de almacenamiento excedida al guardar '{key}' "
                        f"({projected} > {self.quota_bytes} bytes)"
                    )

            # Escribir a archivo temporal primero para atomicidad
            temp_path = path + '.tmp'
            try:
                with open(temp_path, 'wb') as f:
                    f.write(encoded)
                os.replace(temp_path, path)
            except OSError as e:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise StorageError(f"No se pudo escribir '{key}': {e}") from e

    def remove_item(self, key: str) -> bool:
        """
        Elimina una clave.

        Returns:
            True si existía
        """
        path = self._path(key)
        with self._lock:
            try:
                os.remove(path)
                return True
            except FileNotFoundError:
                return False

    def keys(self) -> List[str]:
        """Lista de claves existentes, ordenadas."""
        with self._lock:
            return sorted(
                name[:-len(self.SUFFIX)]
                for name in os.listdir(self.base_dir)
                if name.endswith(self.SUFFIX)
            )

    def clear(self) -> None:
        """Elimina todas las claves."""
        with self._lock:
            for key in self.keys():
                self.remove_item(key)

    # =========================================================================
    # TAMAÑOS
    # =========================================================================

    def item_size(self, key: str) -> int:
        """Bytes ocupados por una clave (0 si no existe)."""
        try:
            return os.path.getsize(self._path(key))
        except FileNotFoundError:
            return 0

    def usage(self) -> int:
        """Bytes totales ocupados por todas las claves."""
        with self._lock:
            return sum(self.item_size(key) for key in self.keys())
