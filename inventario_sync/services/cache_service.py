# ==============================================================================
# CACHÉ DE LECTURAS
# ==============================================================================
# Caché en memoria con vencimiento por tiempo (TTL) delante del repositorio.
#
# - Clave: nombre de operación + parámetros serializados
#     getProducts_{}            products_with_category_{"q": "taladro"}
# - Vencimiento perezoso: solo se evalúa al leer, no hay barrido en segundo plano
# - Invalidación gruesa: cualquier escritura limpia todo (o una operación)
# ==============================================================================

import json
import threading
import time
from functools import wraps
from typing import Any, Callable, Dict, Optional

from inventario_sync.models import CacheEntry


def make_cache_key(operation: str, params: Any = None) -> str:
    """Clave estable: operación + JSON ordenado de los parámetros."""
    serialized = json.dumps(params if params is not None else {}, sort_keys=True, default=str)
    return f"{operation}_{serialized}"


class CacheService:
    """
    Caché read-through con TTL.

    Uso:
        cache = CacheService(ttl=300)
        products = cache.read('products', {}, lambda: repo.get_all('products'))
        cache.invalidate()            # tras cualquier escritura
        cache.invalidate('products')  # solo las lecturas de 'products'
    """

    def __init__(self, ttl: float = 300, clock: Callable[[], float] = time.time):
        """
        Args:
            ttl: Segundos que una entrada se considera fresca
            clock: Fuente de tiempo (segundos epoch)
        """
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0
        # Sube con cada invalidación; un loader iniciado antes no guarda su valor
        self._generation = 0

    def read(self, operation: str, params: Any, loader: Callable[[], Any]) -> Any:
        """
        Devuelve el valor cacheado si está fresco; si no, llama a loader().

        Un loader que lanza no deja entrada en la caché, y tampoco uno que
        termina después de una invalidación.
        """
        key = make_cache_key(operation, params)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_fresh(self.clock(), self.ttl):
                self.hits += 1
                return entry.value

            self.misses += 1
            generation = self._generation

        value = loader()
        with self._lock:
            if generation == self._generation:
                self._entries[key] = CacheEntry(
                    key=key, value=value, timestamp=self.clock(), operation=operation
                )
        return value

    def invalidate(self, operation: Optional[str] = None) -> int:
        """
        Limpia entradas.

        Args:
            operation: Si se indica, solo las entradas de esa operación;
                si es None, toda la caché

        Returns:
            Cantidad de entradas eliminadas
        """
        with self._lock:
            self._generation += 1
            if operation is None:
                removed = len(self._entries)
                self._entries.clear()
                return removed

            matching = [
                key for key, entry in self._entries.items() if entry.operation == operation
            ]
            for key in matching:
                del self._entries[key]
            return len(matching)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'entries': len(self._entries),
                'hits': self.hits,
                'misses': self.misses,
                'ttl': self.ttl,
            }


def invalidates_cache(func):
    """
    Decorador para métodos de servicio que escriben.

    Limpia la caché del servicio (self.cache) al terminar, también cuando
    la operación lanza (ej. StorageError con el cambio ya aplicado en memoria).
    """
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        finally:
            if getattr(self, 'cache', None) is not None:
                self.cache.invalidate()
    return wrapper
