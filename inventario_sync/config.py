# ==============================================================================
# CONFIGURACIÓN DEL SISTEMA
# ==============================================================================
# Constantes de configuración de la capa de sincronización y caché.
# Cada valor puede sobrescribirse con una variable de entorno INVENTARIO_*.
#
# Ejemplo:
#   export INVENTARIO_SESSION_DURATION=900    # 15 minutos
#   export INVENTARIO_DATA_DIR=/var/lib/inventario
# ==============================================================================

import os


def _env_int(name: str, default: int) -> int:
    """Lee un entero desde el entorno, usando el default si no es válido."""
    raw = os.environ.get(f'INVENTARIO_{name}')
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"[CONFIG] Valor inválido para INVENTARIO_{name}: {raw!r}, usando {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(f'INVENTARIO_{name}')
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        print(f"[CONFIG] Valor inválido para INVENTARIO_{name}: {raw!r}, usando {default}")
        return default


# ═══════════════════════════════════════════════════════════════════════════
# ALMACENAMIENTO
# ═══════════════════════════════════════════════════════════════════════════

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Carpeta donde viven los archivos clave-valor (equivalente a localStorage)
DATA_DIR = os.environ.get('INVENTARIO_DATA_DIR', os.path.join(os.getcwd(), 'instance'))

# Documento semilla empaquetado con la aplicación
SEED_PATH = os.path.join(BASE_DIR, 'data', 'seed.json')

# Clave fija del documento principal
STORAGE_KEY = os.environ.get('INVENTARIO_STORAGE_KEY', 'inventario_database')

# Cuota de almacenamiento en bytes (0 = sin límite)
STORAGE_QUOTA_BYTES = _env_int('STORAGE_QUOTA_BYTES', 0)

# Backups a mantener por clave base
MAX_BACKUPS = _env_int('MAX_BACKUPS', 5)

# Latencia simulada de cada operación del repositorio (segundos)
SIMULATED_LATENCY = _env_float('SIMULATED_LATENCY', 0.0)

# ═══════════════════════════════════════════════════════════════════════════
# CACHÉ
# ═══════════════════════════════════════════════════════════════════════════

CACHE_TTL = _env_int('CACHE_TTL', 5 * 60)  # 5 minutos

# ═══════════════════════════════════════════════════════════════════════════
# SESIÓN
# ═══════════════════════════════════════════════════════════════════════════

SESSION_DURATION = _env_int('SESSION_DURATION', 5 * 60)  # 5 minutos
WARNING_WINDOW = _env_int('WARNING_WINDOW', 60)          # 1 minuto antes de expirar
ACTIVITY_DEBOUNCE = _env_int('ACTIVITY_DEBOUNCE', 10)    # segundos entre extensiones implícitas

# Timer en el servidor que registra el aviso y la expiración de la sesión
WATCH_SESSION = os.environ.get('INVENTARIO_WATCH_SESSION', '1') == '1'

# ═══════════════════════════════════════════════════════════════════════════
# REGLAS DE DOMINIO
# ═══════════════════════════════════════════════════════════════════════════

DEFAULT_CATEGORY_COLOR = '#3B82F6'

# Usuario asignado a un movimiento cuando no se conoce al responsable
DEFAULT_USER_ID = 1

# Máximo de actividades recientes conservadas
MAX_ACTIVITIES = 20

# Si es True, una salida mayor al stock disponible se rechaza en vez de
# quedar recortada a 0
ENFORCE_AVAILABLE_STOCK = os.environ.get('INVENTARIO_ENFORCE_AVAILABLE_STOCK', '0') == '1'

# Si es True, las contraseñas nuevas se guardan como hash de werkzeug
HASH_PASSWORDS = os.environ.get('INVENTARIO_HASH_PASSWORDS', '0') == '1'

# ═══════════════════════════════════════════════════════════════════════════
# APLICACIÓN WEB
# ═══════════════════════════════════════════════════════════════════════════

_DEFAULT_SECRET = 'inventario_dev_secret_key_change_in_production'
SECRET_KEY = os.environ.get('INVENTARIO_SECRET_KEY')

ENABLE_PROFILING = os.environ.get('INVENTARIO_ENABLE_PROFILING', '1') == '1'
LOGS_DIR = os.environ.get('INVENTARIO_LOGS_DIR', os.path.join(os.getcwd(), 'logs'))


def get_secret_key() -> str:
    """Devuelve la clave secreta de Flask, avisando si se usa la de desarrollo."""
    if not SECRET_KEY:
        print("[ADVERTENCIA] INVENTARIO_SECRET_KEY no definida, usando clave de desarrollo")
        return _DEFAULT_SECRET
    return SECRET_KEY


def as_dict() -> dict:
    """Configuración por defecto para AppContainer y create_app()."""
    return {
        'DATA_DIR': DATA_DIR,
        'SEED_PATH': SEED_PATH,
        'STORAGE_KEY': STORAGE_KEY,
        'STORAGE_QUOTA_BYTES': STORAGE_QUOTA_BYTES,
        'MAX_BACKUPS': MAX_BACKUPS,
        'SIMULATED_LATENCY': SIMULATED_LATENCY,
        'CACHE_TTL': CACHE_TTL,
        'SESSION_DURATION': SESSION_DURATION,
        'WARNING_WINDOW': WARNING_WINDOW,
        'ACTIVITY_DEBOUNCE': ACTIVITY_DEBOUNCE,
        'WATCH_SESSION': WATCH_SESSION,
        'DEFAULT_CATEGORY_COLOR': DEFAULT_CATEGORY_COLOR,
        'DEFAULT_USER_ID': DEFAULT_USER_ID,
        'MAX_ACTIVITIES': MAX_ACTIVITIES,
        'ENFORCE_AVAILABLE_STOCK': ENFORCE_AVAILABLE_STOCK,
        'HASH_PASSWORDS': HASH_PASSWORDS,
        'ENABLE_PROFILING': ENABLE_PROFILING,
        'LOGS_DIR': LOGS_DIR,
    }
