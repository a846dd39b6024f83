# ==============================================================================
# INVENTARIO SYNC - Capa de datos, caché y sesión del sistema de inventario
# ==============================================================================
# Uso rápido:
#   from inventario_sync import create_app
#   app = create_app({'DATA_DIR': '/var/lib/inventario'})
# ==============================================================================

__version__ = '1.0.0'


def create_app(overrides=None, **kwargs):
    """Atajo a inventario_sync.main.create_app (importa Flask solo al usarse)."""
    from inventario_sync.main import create_app as _create_app
    return _create_app(overrides, **kwargs)
