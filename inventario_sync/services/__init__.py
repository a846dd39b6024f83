# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Los servicios contienen las reglas del dominio (stock, sesión, permisos,
# caché). Dependen de los repositorios solo a través de sus interfaces.
# ==============================================================================

from .backup_service import BackupService
from .cache_service import CacheService, invalidates_cache, make_cache_key
from .activity_service import ActivityService
from .base_service import EntityService
from .inventory_service import InventoryService
from .category_service import CategoryService
from .movement_service import MovementService, resolve_movement_type
from .user_service import UserService, normalize_role
from .session_service import SessionService, SessionWatcher
from .report_service import ReportService
from .database_service import DatabaseService

__all__ = [
    'BackupService',
    'CacheService',
    'invalidates_cache',
    'make_cache_key',
    'ActivityService',
    'EntityService',
    'InventoryService',
    'CategoryService',
    'MovementService',
    'resolve_movement_type',
    'UserService',
    'normalize_role',
    'SessionService',
    'SessionWatcher',
    'ReportService',
    'DatabaseService',
]
