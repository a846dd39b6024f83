# ==============================================================================
# SERVICIO DE SESIÓN
# ==============================================================================
# Máquina de estados de la sesión:
#
#   ANONYMOUS ──login──► AUTHENTICATED ──(quedan < WARNING_WINDOW)──► WARNING_PENDING
#       ▲                     ▲                                           │
#       │                     └──────────── extend_session() ◄────────────┤
#       │                                                                 ▼
#       └────────────── logout / check_session() ◄──────────────────── EXPIRED
#
# El estado se calcula a partir de dos timestamps (loginTime, lastActivity)
# y del usuario autenticado, guardados en el almacenamiento clave-valor para
# sobrevivir un reinicio. Las consultas (is_authenticated, get_state,
# get_remaining_time) no modifican nada.
# ==============================================================================

import json
import math
import threading
import time
from typing import Any, Callable, Dict, Optional

from inventario_sync.errors import SessionExpiredError, StorageError
from inventario_sync.models import SessionState, UserRole
from inventario_sync.repositories.interfaces import IKeyValueStorage


class SessionService:
    """
    Sesión única del proceso (un usuario autenticado a la vez).

    Uso:
        result = sessions.login('admin', 'admin123')
        if sessions.is_authenticated():
            print(sessions.get_formatted_time())   # "4:59"
    """

    SESSION_KEY = 'inventario_session'

    def __init__(
        self,
        storage: IKeyValueStorage,
        user_service,
        clock: Callable[[], float] = time.time,
        duration: float = 300,
        warning_window: float = 60,
        activity_debounce: float = 10
    ):
        """
        Args:
            storage: Dónde persisten los timestamps de la sesión
            user_service: Servicio que verifica credenciales
            clock: Fuente de tiempo (segundos epoch)
            duration: Duración total de la sesión en segundos
            warning_window: Segundos antes de expirar en que se avisa
            activity_debounce: Segundos mínimos entre extensiones implícitas
        """
        self.storage = storage
        self.user_service = user_service
        self.clock = clock
        self.duration = duration
        self.warning_window = warning_window
        self.activity_debounce = activity_debounce
        self.watcher: Optional['SessionWatcher'] = None
        self._lock = threading.RLock()
        self._state = self._load()

    # =========================================================================
    # PERSISTENCIA DE LOS TIMESTAMPS
    # =========================================================================

    def _load(self) -> Optional[Dict[str, Any]]:
        raw = self.storage.get_item(self.SESSION_KEY)
        if raw is None:
            return None
        try:
            state = json.loads(raw)
            float(state['loginTime'])
            float(state['lastActivity'])
            if not isinstance(state['user'], dict):
                raise ValueError('usuario inválido')
        except (TypeError, ValueError, KeyError) as e:
            print(f"[SESION] Sesión persistida ilegible, se descarta: {e}")
            return None
        return state

    def _save(self) -> None:
        try:
            if self._state is None:
                self.storage.remove_item(self.SESSION_KEY)
            else:
                self.storage.set_item(self.SESSION_KEY, json.dumps(self._state, ensure_ascii=False))
        except StorageError as e:
            # La sesión sigue válida en memoria
            print(f"[SESION] No se pudo persistir la sesión: {e.message}")

    def _notify(self) -> None:
        if self.watcher is not None:
            self.watcher.schedule()

    # =========================================================================
    # TRANSICIONES
    # =========================================================================

    def login(self, identifier: str, password: str) -> Dict[str, Any]:
        """
        ANONYMOUS → AUTHENTICATED si las credenciales son de un usuario activo.

        Returns:
            {'success': True, 'user': {...}} o {'success': False, 'message': '...'}
        """
        user = self.user_service.authenticate(identifier, password)
        if user is None:
            print(f"[SESION] Login fallido para '{identifier}'")
            return {'success': False, 'message': 'Credenciales inválidas'}

        now = self.clock()
        with self._lock:
            self._state = {'user': user, 'loginTime': now, 'lastActivity': now}
            self._save()
        print(f"[SESION] Sesión iniciada: {user.get('username')}")
        self._notify()
        return {'success': True, 'user': user}

    def logout(self, reason: str = 'manual') -> None:
        """Cualquier estado → ANONYMOUS."""
        with self._lock:
            if self._state is not None:
                username = self._state['user'].get('username')
                print(f"[SESION] Sesión cerrada ({reason}): {username}")
            self._state = None
            self._save()
        self._notify()

    def extend_session(self) -> int:
        """
        WARNING_PENDING/AUTHENTICATED → AUTHENTICATED, reiniciando el conteo.

        Returns:
            Segundos restantes tras extender

        Raises:
            SessionExpiredError: Si no hay sesión o ya expiró
        """
        with self._lock:
            if not self.is_authenticated():
                raise SessionExpiredError()
            now = self.clock()
            self._state['loginTime'] = now
            self._state['lastActivity'] = now
            self._save()
        self._notify()
        return self.get_remaining_time()

    def record_activity(self) -> bool:
        """
        Registra actividad del usuario (click, tecla, request).

        Extiende la sesión implícitamente si pasaron más de activity_debounce
        segundos desde la última actividad y no hay aviso pendiente.

        Returns:
            True si la sesión se extendió
        """
        with self._lock:
            if self.get_state() != SessionState.AUTHENTICATED:
                return False
            now = self.clock()
            if now - self._state['lastActivity'] <= self.activity_debounce:
                return False
            self._state['loginTime'] = now
            self._state['lastActivity'] = now
            self._save()
        self._notify()
        return True

    def check_session(self) -> SessionState:
        """
        Evalúa la sesión y hace el logout automático si expiró.

        Returns:
            Estado observado antes del logout automático (EXPIRED si ocurrió)
        """
        state = self.get_state()
        if state == SessionState.EXPIRED:
            self.logout(reason='expirada')
        return state

    # =========================================================================
    # CONSULTAS (sin efectos)
    # =========================================================================

    def current_user(self) -> Optional[Dict[str, Any]]:
        """Usuario de una sesión vigente, o None."""
        with self._lock:
            if not self.is_authenticated():
                return None
            return dict(self._state['user'])

    def _elapsed(self) -> Optional[float]:
        if self._state is None:
            return None
        return self.clock() - float(self._state['loginTime'])

    def is_authenticated(self) -> bool:
        with self._lock:
            elapsed = self._elapsed()
            return elapsed is not None and elapsed <= self.duration

    def get_state(self) -> SessionState:
        with self._lock:
            elapsed = self._elapsed()
            if elapsed is None:
                return SessionState.ANONYMOUS
            if elapsed > self.duration:
                return SessionState.EXPIRED
            if elapsed > self.duration - self.warning_window:
                return SessionState.WARNING_PENDING
            return SessionState.AUTHENTICATED

    def seconds_left(self) -> float:
        """Tiempo restante exacto en segundos (0 si no hay sesión)."""
        with self._lock:
            elapsed = self._elapsed()
            if elapsed is None:
                return 0.0
            return max(0.0, self.duration - elapsed)

    def get_remaining_time(self) -> int:
        """Segundos enteros restantes: max(0, duration - elapsed)."""
        return int(math.floor(self.seconds_left()))

    def get_formatted_time(self) -> str:
        """Tiempo restante como M:SS."""
        remaining = self.get_remaining_time()
        return f"{remaining // 60}:{remaining % 60:02d}"

    def should_show_warning(self) -> bool:
        return self.get_state() == SessionState.WARNING_PENDING

    def get_session_info(self) -> Dict[str, Any]:
        """Resumen para la UI."""
        state = self.get_state()
        user = self.current_user()
        return {
            'state': state.value,
            'authenticated': self.is_authenticated(),
            'user': user,
            'remainingTime': self.get_remaining_time(),
            'formattedTime': self.get_formatted_time(),
            'showWarning': state == SessionState.WARNING_PENDING,
            'isAdmin': bool(user) and user.get('role') == UserRole.ADMIN.value,
            'canEdit': bool(user) and user.get('role') in (UserRole.ADMIN.value, UserRole.EDITOR.value),
            'isViewer': bool(user) and user.get('role') == UserRole.VIEWER.value,
        }


class SessionWatcher:
    """
    Despertador de la sesión: en lugar de revisar cada segundo, programa un
    único timer hasta el próximo cambio de estado (aviso o expiración) y lo
    reprograma en cada login/extensión/actividad.

    Uso:
        watcher = SessionWatcher(sessions, on_warning=avisar, on_expired=redirigir)
        watcher.start()
    """

    MIN_DELAY = 0.05

    def __init__(
        self,
        session_service: SessionService,
        on_warning: Optional[Callable[[int], None]] = None,
        on_expired: Optional[Callable[[], None]] = None,
        timer_factory: Callable = threading.Timer
    ):
        self.session_service = session_service
        self.on_warning = on_warning
        self.on_expired = on_expired
        self.timer_factory = timer_factory
        self._timer = None
        self._lock = threading.Lock()
        self.next_delay: Optional[float] = None

    def start(self) -> None:
        self.session_service.watcher = self
        self.schedule()

    def stop(self) -> None:
        if self.session_service.watcher is self:
            self.session_service.watcher = None
        self._cancel()

    def _cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self.next_delay = None

    def schedule(self) -> None:
        """Programa el próximo despertar según el estado actual."""
        self._cancel()
        service = self.session_service
        state = service.get_state()
        if state == SessionState.ANONYMOUS:
            return

        left = service.seconds_left()
        if state == SessionState.AUTHENTICATED:
            delay = left - service.warning_window
        elif state == SessionState.WARNING_PENDING:
            delay = left
        else:
            delay = 0
        delay = max(self.MIN_DELAY, delay)

        with self._lock:
            self._timer = self.timer_factory(delay, self._fire)
            self._timer.daemon = True
            self._timer.start()
            self.next_delay = delay

    def _fire(self) -> None:
        service = self.session_service
        state = service.get_state()

        if state == SessionState.EXPIRED:
            service.check_session()  # logout → schedule() sin sesión no reprograma
            if self.on_expired:
                self.on_expired()
            return

        if state == SessionState.WARNING_PENDING and self.on_warning:
            self.on_warning(service.get_remaining_time())
        self.schedule()
