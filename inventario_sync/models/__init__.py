# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Esquema canónico de cada tabla del documento persistido (dataclasses) y las
# enumeraciones compartidas por repositorios y servicios.
# ==============================================================================

from .entities import (
    # Enumeraciones
    MovementType,
    UserRole,
    DeletePolicy,
    SessionState,

    # Tablas y políticas
    TABLES,
    DELETE_POLICIES,

    # Entidades
    Product,
    Category,
    Movement,
    User,
    CacheEntry,

    # Helpers
    normalize_document,
    strip_password,
    to_int,
    to_float,
    to_bool,
)

__all__ = [
    'MovementType',
    'UserRole',
    'DeletePolicy',
    'SessionState',

    'TABLES',
    'DELETE_POLICIES',

    'Product',
    'Category',
    'Movement',
    'User',
    'CacheEntry',

    'normalize_document',
    'strip_password',
    'to_int',
    'to_float',
    'to_bool',
]
