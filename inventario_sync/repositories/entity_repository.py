# ==============================================================================
# REPOSITORIO DE ENTIDADES - CRUD genérico por tabla
# ==============================================================================
# Mantiene el documento en memoria y lo vuelve a persistir completo tras cada
# mutación. Asigna ids sintéticos (max + 1) y timestamps.
#
# No decide entre borrado físico o lógico: eso lo hace el servicio de cada
# entidad consultando DELETE_POLICIES.
# ==============================================================================

import copy
import json
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from inventario_sync.errors import NotFoundError, StorageError, ValidationError
from inventario_sync.models import TABLES, normalize_document, to_int
from inventario_sync.repositories.document_store import DocumentStore


def format_timestamp(ts: float) -> str:
    """Epoch en segundos → ISO 8601 UTC con milisegundos (2024-01-15T10:30:00.000Z)."""
    moment = datetime.fromtimestamp(ts, tz=timezone.utc)
    return moment.strftime('%Y-%m-%dT%H:%M:%S.') + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> Optional[float]:
    """
    ISO 8601 → epoch en segundos. Tolera el sufijo Z y fechas sin hora.

    Returns:
        Segundos epoch o None si no se puede interpretar
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.timestamp()


class EntityRepository:
    """
    Repositorio genérico sobre el documento persistido.

    Todas las escrituras pasan por un único lock re-entrante, de modo que
    dos requests concurrentes no pueden pisarse el guardado.

    Uso:
        repo = EntityRepository(store)
        product = repo.create('products', {'name': 'Taladro', 'quantity': 5})
        repo.update('products', product['id'], {'price': 120})

        with repo.transaction():
            repo.create('movements', {...})
            repo.update('products', 1, {'quantity': 0})
    """

    def __init__(
        self,
        store: DocumentStore,
        clock: Callable[[], float] = time.time,
        latency: float = 0.0
    ):
        """
        Args:
            store: Documento persistente
            clock: Fuente de tiempo (segundos epoch)
            latency: Demora simulada por operación, en segundos
        """
        self.store = store
        self.clock = clock
        self.latency = latency
        self._lock = threading.RLock()
        self._tx_depth = 0
        self._dirty = False
        self._document = store.load()

    # =========================================================================
    # HELPERS INTERNOS
    # =========================================================================

    def _simulate_latency(self) -> None:
        if self.latency > 0:
            time.sleep(self.latency)

    def _rows(self, table: str) -> List[Dict[str, Any]]:
        if table not in TABLES:
            raise ValidationError(f"Tabla desconocida: '{table}'")
        return self._document.setdefault(table, [])

    @staticmethod
    def _index_of(rows: List[Dict[str, Any]], record_id: Optional[int]) -> int:
        if record_id is None:
            return -1
        for index, row in enumerate(rows):
            if row.get('id') == record_id:
                return index
        return -1

    def now(self) -> str:
        """Timestamp actual en formato ISO."""
        return format_timestamp(self.clock())

    def _persist(self) -> None:
        """
        Guarda el documento completo (o lo difiere si hay transacción abierta).

        Raises:
            StorageError: Si el guardado falló; el estado en memoria se conserva
        """
        if self._tx_depth > 0:
            self._dirty = True
            return
        if not self.store.save(self._document):
            raise StorageError(
                f"No se pudieron guardar los cambios: {self.store.last_error or 'error desconocido'}"
            )

    # =========================================================================
    # LECTURA
    # =========================================================================

    def get_all(self, table: str) -> List[Dict[str, Any]]:
        """
        Todos los registros de una tabla, en orden de inserción.

        Returns:
            Copia de la lista (modificarla no afecta al repositorio)
        """
        self._simulate_latency()
        with self._lock:
            return copy.deepcopy(self._rows(table))

    def get_by_id(self, table: str, record_id: Any) -> Optional[Dict[str, Any]]:
        """
        Busca un registro por id.

        Returns:
            Copia del registro o None si no existe
        """
        self._simulate_latency()
        with self._lock:
            rows = self._rows(table)
            index = self._index_of(rows, to_int(record_id, None))
            return copy.deepcopy(rows[index]) if index >= 0 else None

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def create(self, table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Crea un registro con id = max + 1 (o 1 si la tabla está vacía).

        Returns:
            Copia del registro creado
        """
        self._simulate_latency()
        with self._lock:
            rows = self._rows(table)
            new_id = max((row.get('id', 0) for row in rows), default=0) + 1
            timestamp = self.now()

            record = {k: v for k, v in fields.items() if k not in ('id', 'createdAt', 'updatedAt')}
            record['id'] = new_id
            record['createdAt'] = timestamp
            record['updatedAt'] = timestamp

            rows.append(record)
            self._persist()
            return copy.deepcopy(record)

    def update(self, table: str, record_id: Any, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Mezcla campos en un registro existente y actualiza updatedAt.

        Raises:
            NotFoundError: Si el id no existe
        """
        self._simulate_latency()
        with self._lock:
            rows = self._rows(table)
            index = self._index_of(rows, to_int(record_id, None))
            if index < 0:
                raise NotFoundError(table, record_id)

            record = rows[index]
            for key, value in fields.items():
                if key not in ('id', 'createdAt', 'updatedAt'):
                    record[key] = value
            record['updatedAt'] = self.now()

            self._persist()
            return copy.deepcopy(record)

    def delete(self, table: str, record_id: Any) -> Dict[str, Any]:
        """
        Elimina físicamente un registro.

        Returns:
            Copia del registro eliminado

        Raises:
            NotFoundError: Si el id no existe
        """
        self._simulate_latency()
        with self._lock:
            rows = self._rows(table)
            index = self._index_of(rows, to_int(record_id, None))
            if index < 0:
                raise NotFoundError(table, record_id)

            removed = rows.pop(index)
            self._persist()
            return removed

    def replace_table(self, table: str, rows: List[Dict[str, Any]]) -> None:
        """Reemplaza una tabla completa (ej. recorte de actividades)."""
        with self._lock:
            self._rows(table)
            self._document[table] = copy.deepcopy(rows)
            self._persist()

    # =========================================================================
    # TRANSACCIONES
    # =========================================================================

    @contextmanager
    def transaction(self):
        """
        Agrupa varias escrituras en un solo guardado.

        Si algo dentro del bloque lanza una excepción, el documento en memoria
        vuelve al estado previo y no se persiste nada. Las transacciones
        anidadas revierten solo su propio tramo.
        """
        with self._lock:
            snapshot = copy.deepcopy(self._document)
            self._tx_depth += 1
            try:
                yield self
            except Exception:
                self._document = snapshot
                self._tx_depth -= 1
                if self._tx_depth == 0:
                    self._dirty = False
                print("[STORAGE] Transacción revertida")
                raise

            self._tx_depth -= 1
            if self._tx_depth == 0 and self._dirty:
                self._dirty = False
                self._persist()

    # =========================================================================
    # UTILIDADES DE BASE DE DATOS
    # =========================================================================

    def export_data(self) -> str:
        """Documento completo como JSON legible."""
        with self._lock:
            return json.dumps(self._document, indent=2, ensure_ascii=False)

    def import_data(self, raw: str) -> Dict[str, int]:
        """
        Reemplaza el documento por uno importado (normalizado).

        Returns:
            Cantidad de registros por tabla

        Raises:
            ValidationError: Si el contenido no es un documento JSON
        """
        try:
            document = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Formato de datos inválido: {e}")
        if not isinstance(document, dict):
            raise ValidationError("Formato de datos inválido: se esperaba un objeto JSON")

        with self._lock:
            self._document = normalize_document(
                document, self.store.default_color, self.store.default_user_id
            )
            self._persist()
            print("[STORAGE] Datos importados correctamente")
            return {table: len(self._document[table]) for table in TABLES}

    def reset(self) -> None:
        """Vuelve al documento semilla y lo persiste."""
        with self._lock:
            self._document = self.store.load_seed()
            self._persist()
            print("[STORAGE] Base de datos reiniciada desde semilla")

    def reload(self) -> None:
        """Descarta el estado en memoria y relee el documento persistido."""
        with self._lock:
            self._document = self.store.load()
