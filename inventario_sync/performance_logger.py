# ==============================================================================
# PROFILING DE LA API Y DEL NÚCLEO
# ==============================================================================
# Tiempos de cada request de la API y de las operaciones costosas del núcleo
# (carga/guardado del documento, movimientos de stock).
#
#   performance.log       una línea por request
#   slow_operations.log   requests y funciones que superan los umbrales
#
# Formato de línea:
#   2024-01-15 10:30:00 | Registrar movimiento | POST /api/movements | 12 ms | admin
#
# ACTIVAR/DESACTIVAR: configure(enabled=False) o INVENTARIO_ENABLE_PROFILING=0
# ==============================================================================

import os
import threading
import time
from datetime import datetime
from functools import wraps
from typing import Callable, Dict, Optional

from inventario_sync import config

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = config.ENABLE_PROFILING
LOGS_DIR = config.LOGS_DIR

# Umbrales en milisegundos
WARNING_MS = 300
CRITICAL_MS = 700

PERFORMANCE_LOG = 'performance.log'
SLOW_LOG = 'slow_operations.log'

# Nombre legible de cada regla de la API
ROUTE_NAMES = {
    'POST /api/auth/login': 'Iniciar sesión',
    'POST /api/auth/logout': 'Cerrar sesión',
    'GET /api/auth/session': 'Consultar sesión',
    'POST /api/auth/extend': 'Extender sesión',
    'GET /api/products': 'Listar productos',
    'POST /api/products': 'Crear producto',
    'GET /api/products/low-stock': 'Productos con stock bajo',
    'GET /api/products/<int:product_id>': 'Ver producto',
    'PUT /api/products/<int:product_id>': 'Editar producto',
    'DELETE /api/products/<int:product_id>': 'Eliminar producto',
    'GET /api/categories': 'Listar categorías',
    'POST /api/categories': 'Crear categoría',
    'PUT /api/categories/<int:category_id>': 'Editar categoría',
    'DELETE /api/categories/<int:category_id>': 'Desactivar categoría',
    'GET /api/movements': 'Listar movimientos',
    'POST /api/movements': 'Registrar movimiento',
    'DELETE /api/movements/<int:movement_id>': 'Revertir movimiento',
    'GET /api/movements/export': 'Exportar movimientos CSV',
    'GET /api/users': 'Listar usuarios',
    'POST /api/users': 'Crear usuario',
    'PUT /api/users/<int:user_id>': 'Editar usuario',
    'DELETE /api/users/<int:user_id>': 'Desactivar usuario',
    'GET /api/dashboard/stats': 'Ver panel principal',
    'GET /api/activities': 'Ver actividad reciente',
    'DELETE /api/activities': 'Limpiar actividad',
    'GET /api/reports': 'Listar reportes',
    'POST /api/reports': 'Generar reporte',
    'GET /api/reports/<int:report_id>/export': 'Exportar reporte CSV',
    'GET /api/database/export': 'Exportar datos',
    'GET /api/database/info': 'Uso del almacenamiento',
    'GET /api/database/health': 'Salud del almacenamiento',
    'POST /api/database/reset': 'Reiniciar base de datos',
    'POST /api/database/import': 'Importar datos',
    'POST /api/database/backup': 'Crear backup',
    'POST /api/database/cleanup': 'Limpiar backups',
}


def configure(
    enabled: Optional[bool] = None,
    logs_dir: Optional[str] = None,
    warning_ms: Optional[float] = None,
    critical_ms: Optional[float] = None
) -> None:
    """Cambia la configuración en tiempo de ejecución (create_app, tests)."""
    global ENABLE_PROFILING, LOGS_DIR, WARNING_MS, CRITICAL_MS
    if enabled is not None:
        ENABLE_PROFILING = enabled
    if logs_dir is not None:
        LOGS_DIR = logs_dir
    if warning_ms is not None:
        WARNING_MS = warning_ms
    if critical_ms is not None:
        CRITICAL_MS = critical_ms


def severity_for(time_ms: float) -> Optional[str]:
    """'CRITICAL', 'WARNING' o None según los umbrales."""
    if time_ms >= CRITICAL_MS:
        return 'CRITICAL'
    if time_ms >= WARNING_MS:
        return 'WARNING'
    return None


# ═══════════════════════════════════════════════════════════════════════════
# ACUMULADORES
# ═══════════════════════════════════════════════════════════════════════════

class _Timings:
    """Llamadas, tiempo total y máximo por nombre (thread-safe)."""

    def __init__(self):
        self._lock = threading.Lock()
        self._data: Dict[str, Dict[str, float]] = {}

    def record(self, name: str, time_ms: float) -> None:
        with self._lock:
            entry = self._data.setdefault(name, {'calls': 0, 'total': 0.0, 'max': 0.0})
            entry['calls'] += 1
            entry['total'] += time_ms
            entry['max'] = max(entry['max'], time_ms)

    def snapshot(self) -> Dict[str, Dict[str, float]]:
        with self._lock:
            return {
                name: {
                    'calls': entry['calls'],
                    'avg_time': round(entry['total'] / entry['calls'], 2),
                    'max_time': round(entry['max'], 2),
                }
                for name, entry in self._data.items()
            }

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


_functions = _Timings()
_routes = _Timings()
_log_lock = threading.Lock()


# ═══════════════════════════════════════════════════════════════════════════
# ESCRITURA DE LOGS
# ═══════════════════════════════════════════════════════════════════════════

def _append(filename: str, line: str) -> None:
    try:
        with _log_lock:
            os.makedirs(LOGS_DIR, exist_ok=True)
            with open(os.path.join(LOGS_DIR, filename), 'a', encoding='utf-8') as f:
                f.write(line + '\n')
    except OSError as e:
        # Un log que no se puede escribir no corta la request
        print(f"[PROFILING] No se pudo escribir {filename}: {e}")


def _line(*fields) -> str:
    stamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
    return ' | '.join([stamp] + [str(f) for f in fields])


def route_label(method: str, rule: str) -> str:
    return ROUTE_NAMES.get(f"{method} {rule}", f"{method} {rule}")


# ═══════════════════════════════════════════════════════════════════════════
# RUTAS DE LA API
# ═══════════════════════════════════════════════════════════════════════════

def record_request(method: str, path: str, rule: str, time_ms: float, user: Optional[str] = None) -> None:
    """
    Registra el tiempo de una request.

    Siempre escribe en performance.log; además en slow_operations.log si
    supera WARNING_MS.
    """
    if not ENABLE_PROFILING:
        return

    label = route_label(method, rule)
    _routes.record(label, time_ms)
    _append(PERFORMANCE_LOG, _line(label, f"{method} {path}", f"{time_ms:.0f} ms", user or 'anónimo'))

    level = severity_for(time_ms)
    if level:
        _append(SLOW_LOG, _line(level, 'ruta', label, f"{method} {path}", f"{time_ms:.0f} ms"))


def init_profiling(app, user_getter: Optional[Callable[[], Optional[str]]] = None) -> None:
    """
    Engancha before_request/after_request a la app Flask.

    Args:
        app: Aplicación Flask
        user_getter: Devuelve el usuario de la sesión actual (o None)
    """
    if not ENABLE_PROFILING:
        return

    from flask import g, request

    @app.before_request
    def _profiling_start():
        g.profiling_start = time.perf_counter()

    @app.after_request
    def _profiling_end(response):
        start = g.pop('profiling_start', None)
        if start is None:
            return response
        rule = str(request.url_rule) if request.url_rule else request.path
        record_request(
            request.method, request.path, rule,
            (time.perf_counter() - start) * 1000,
            user_getter() if user_getter else None
        )
        return response


# ═══════════════════════════════════════════════════════════════════════════
# FUNCIONES DEL NÚCLEO
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Mide una función del núcleo; también sirve sin paréntesis.

        @profile_function(name='DocumentStore.save')
        def save(self, document): ...
    """
    def decorator(fn):
        label = name or fn.__qualname__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not ENABLE_PROFILING:
                return fn(*args, **kwargs)
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                time_ms = (time.perf_counter() - start) * 1000
                _functions.record(label, time_ms)
                level = severity_for(time_ms)
                if level:
                    _append(SLOW_LOG, _line(level, 'función', label, f"{time_ms:.0f} ms"))
        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


# ═══════════════════════════════════════════════════════════════════════════
# CONSULTAS
# ═══════════════════════════════════════════════════════════════════════════

def get_function_stats() -> Dict[str, Dict[str, float]]:
    """{nombre: {calls, avg_time, max_time}} de las funciones medidas."""
    return _functions.snapshot()


def get_route_stats() -> Dict[str, Dict[str, float]]:
    """Igual que get_function_stats, por ruta de la API."""
    return _routes.snapshot()


def reset_stats() -> None:
    _functions.clear()
    _routes.clear()


def get_log_summary() -> Dict[str, Dict[str, float]]:
    """{performance|slow: {exists, size_kb, lines}}"""
    summary = {}
    for key, filename in (('performance', PERFORMANCE_LOG), ('slow', SLOW_LOG)):
        path = os.path.join(LOGS_DIR, filename)
        if not os.path.exists(path):
            summary[key] = {'exists': False, 'size_kb': 0, 'lines': 0}
            continue
        with open(path, 'r', encoding='utf-8') as f:
            lines = sum(1 for _ in f)
        summary[key] = {
            'exists': True,
            'size_kb': round(os.path.getsize(path) / 1024, 2),
            'lines': lines,
        }
    return summary
