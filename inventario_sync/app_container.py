# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Punto único donde se construyen almacenamiento, repositorio, caché y
# servicios. Cada aplicación (y cada test) crea su propio contenedor: no hay
# estado global compartido.
#
# Orden de construcción (todo lazy):
#   KeyValueStorage → BackupService → DocumentStore → EntityRepository
#   CacheService + ActivityService → servicios de entidades → sesión
# ==============================================================================

import threading
import time
from typing import Any, Callable, Dict, Optional

from inventario_sync import config
from inventario_sync.repositories import DocumentStore, EntityRepository, KeyValueStorage
from inventario_sync.services import (
    ActivityService,
    BackupService,
    CacheService,
    CategoryService,
    DatabaseService,
    InventoryService,
    MovementService,
    ReportService,
    SessionService,
    SessionWatcher,
    UserService,
)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Uso:
        container = AppContainer({'DATA_DIR': '/tmp/inventario'})
        container.movement_service.create_movement(1, 'entrada', 5, 'Compra')
    """

    def __init__(
        self,
        settings: Optional[Dict[str, Any]] = None,
        clock: Callable[[], float] = time.time,
        timer_factory: Callable = threading.Timer
    ):
        """
        Args:
            settings: Configuración (claves de config.as_dict()); lo que falte
                toma el valor por defecto
            clock: Fuente de tiempo compartida por todos los componentes
            timer_factory: Constructor de timers del vigilante de sesión
        """
        self.settings = config.as_dict()
        self.settings.update(settings or {})
        self.clock = clock
        self.timer_factory = timer_factory

        self._storage: Optional[KeyValueStorage] = None
        self._backup_service: Optional[BackupService] = None
        self._document_store: Optional[DocumentStore] = None
        self._repo: Optional[EntityRepository] = None
        self._cache: Optional[CacheService] = None
        self._activity_service: Optional[ActivityService] = None
        self._inventory_service: Optional[InventoryService] = None
        self._category_service: Optional[CategoryService] = None
        self._movement_service: Optional[MovementService] = None
        self._user_service: Optional[UserService] = None
        self._session_service: Optional[SessionService] = None
        self._session_watcher: Optional[SessionWatcher] = None
        self._report_service: Optional[ReportService] = None
        self._database_service: Optional[DatabaseService] = None

    # =========================================================================
    # PERSISTENCIA
    # =========================================================================

    @property
    def storage(self) -> KeyValueStorage:
        if self._storage is None:
            self._storage = KeyValueStorage(
                self.settings['DATA_DIR'],
                quota_bytes=self.settings['STORAGE_QUOTA_BYTES']
            )
        return self._storage

    @property
    def backup_service(self) -> BackupService:
        if self._backup_service is None:
            self._backup_service = BackupService(
                self.storage,
                max_backups=self.settings['MAX_BACKUPS'],
                clock=self.clock
            )
        return self._backup_service

    @property
    def document_store(self) -> DocumentStore:
        if self._document_store is None:
            self._document_store = DocumentStore(
                self.storage,
                self.settings['STORAGE_KEY'],
                seed_path=self.settings['SEED_PATH'],
                backup_service=self.backup_service,
                default_color=self.settings['DEFAULT_CATEGORY_COLOR'],
                default_user_id=self.settings['DEFAULT_USER_ID']
            )
        return self._document_store

    @property
    def repo(self) -> EntityRepository:
        if self._repo is None:
            self._repo = EntityRepository(
                self.document_store,
                clock=self.clock,
                latency=self.settings['SIMULATED_LATENCY']
            )
        return self._repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def cache(self) -> CacheService:
        if self._cache is None:
            self._cache = CacheService(ttl=self.settings['CACHE_TTL'], clock=self.clock)
        return self._cache

    @property
    def activity_service(self) -> ActivityService:
        if self._activity_service is None:
            self._activity_service = ActivityService(
                self.repo, max_activities=self.settings['MAX_ACTIVITIES']
            )
        return self._activity_service

    @property
    def inventory_service(self) -> InventoryService:
        if self._inventory_service is None:
            self._inventory_service = InventoryService(
                self.repo, self.cache, self.activity_service
            )
        return self._inventory_service

    @property
    def category_service(self) -> CategoryService:
        if self._category_service is None:
            self._category_service = CategoryService(
                self.repo, self.cache, self.activity_service,
                default_color=self.settings['DEFAULT_CATEGORY_COLOR']
            )
        return self._category_service

    @property
    def movement_service(self) -> MovementService:
        if self._movement_service is None:
            self._movement_service = MovementService(
                self.repo, self.cache, self.activity_service,
                default_user_id=self.settings['DEFAULT_USER_ID'],
                enforce_stock=self.settings['ENFORCE_AVAILABLE_STOCK']
            )
        return self._movement_service

    @property
    def user_service(self) -> UserService:
        if self._user_service is None:
            self._user_service = UserService(
                self.repo, self.cache, self.activity_service,
                hash_passwords=self.settings['HASH_PASSWORDS']
            )
        return self._user_service

    @property
    def session_service(self) -> SessionService:
        if self._session_service is None:
            self._session_service = SessionService(
                self.storage,
                self.user_service,
                clock=self.clock,
                duration=self.settings['SESSION_DURATION'],
                warning_window=self.settings['WARNING_WINDOW'],
                activity_debounce=self.settings['ACTIVITY_DEBOUNCE']
            )
        return self._session_service

    @property
    def session_watcher(self) -> SessionWatcher:
        if self._session_watcher is None:
            self._session_watcher = SessionWatcher(
                self.session_service,
                on_warning=_log_session_warning,
                on_expired=_log_session_expired,
                timer_factory=self.timer_factory
            )
        return self._session_watcher

    @property
    def report_service(self) -> ReportService:
        if self._report_service is None:
            self._report_service = ReportService(
                self.repo, self.inventory_service, self.movement_service,
                self.cache, self.activity_service,
                default_user_id=self.settings['DEFAULT_USER_ID']
            )
        return self._report_service

    @property
    def database_service(self) -> DatabaseService:
        if self._database_service is None:
            self._database_service = DatabaseService(
                self.repo, self.document_store, self.backup_service, self.cache
            )
        return self._database_service


def _log_session_warning(remaining: int) -> None:
    print(f"[SESION] La sesión expira en {remaining} segundos")


def _log_session_expired() -> None:
    print("[SESION] Sesión expirada por inactividad")
