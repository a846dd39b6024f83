# -*- coding: utf-8 -*-
"""
Máquina de estados de la sesión: login, aviso, extensión, expiración y
actividad implícita con debounce.
"""
import pytest

from inventario_sync.errors import SessionExpiredError
from inventario_sync.models import SessionState
from inventario_sync.services import SessionService, SessionWatcher


@pytest.fixture
def sessions(container):
    return container.session_service


def test_starts_anonymous(sessions):
    assert sessions.get_state() == SessionState.ANONYMOUS
    assert sessions.is_authenticated() is False
    assert sessions.current_user() is None
    assert sessions.get_remaining_time() == 0


def test_login_with_username_or_email(sessions):
    result = sessions.login('admin', 'admin123')
    assert result['success'] is True
    assert result['user']['username'] == 'admin'
    assert 'password' not in result['user']
    sessions.logout()

    assert sessions.login('ADMIN@inventario.com', 'admin123')['success'] is True


def test_login_failures(sessions, container):
    assert sessions.login('admin', 'mala') == {'success': False, 'message': 'Credenciales inválidas'}
    assert sessions.login('nadie', 'admin123')['success'] is False
    assert sessions.login('', '')['success'] is False

    container.repo.update('users', 3, {'isActive': False})
    assert sessions.login('viewer', 'viewer123')['success'] is False
    assert sessions.get_state() == SessionState.ANONYMOUS


def test_state_transitions(sessions, clock):
    sessions.login('admin', 'admin123')
    assert sessions.get_state() == SessionState.AUTHENTICATED
    assert sessions.get_formatted_time() == '5:00'

    clock.advance(240)
    assert sessions.get_state() == SessionState.AUTHENTICATED
    assert sessions.should_show_warning() is False

    clock.advance(1)
    assert sessions.get_state() == SessionState.WARNING_PENDING
    assert sessions.should_show_warning() is True
    assert sessions.get_formatted_time() == '0:59'

    clock.advance(59)
    assert sessions.is_authenticated() is True
    assert sessions.get_remaining_time() == 0

    clock.advance(1)
    assert sessions.get_state() == SessionState.EXPIRED
    assert sessions.is_authenticated() is False
    assert sessions.current_user() is None


def test_queries_have_no_side_effects(sessions, clock, container):
    sessions.login('admin', 'admin123')
    clock.advance(301)

    sessions.is_authenticated()
    sessions.get_state()
    sessions.get_remaining_time()
    assert container.storage.get_item(SessionService.SESSION_KEY) is not None

    assert sessions.check_session() == SessionState.EXPIRED
    assert sessions.get_state() == SessionState.ANONYMOUS
    assert container.storage.get_item(SessionService.SESSION_KEY) is None


def test_extend_session_resets_countdown(sessions, clock):
    sessions.login('admin', 'admin123')
    clock.advance(250)
    assert sessions.get_state() == SessionState.WARNING_PENDING

    assert sessions.extend_session() == 300
    assert sessions.get_state() == SessionState.AUTHENTICATED
    assert sessions.get_formatted_time() == '5:00'


def test_extend_expired_session_raises(sessions, clock):
    with pytest.raises(SessionExpiredError):
        sessions.extend_session()

    sessions.login('admin', 'admin123')
    clock.advance(301)
    with pytest.raises(SessionExpiredError):
        sessions.extend_session()


def test_activity_is_debounced(sessions, clock):
    sessions.login('admin', 'admin123')

    clock.advance(10)
    assert sessions.record_activity() is False  # no pasó más del debounce
    assert sessions.get_remaining_time() == 290

    clock.advance(1)
    assert sessions.record_activity() is True
    assert sessions.get_remaining_time() == 300


def test_activity_does_not_extend_during_warning(sessions, clock):
    sessions.login('admin', 'admin123')
    clock.advance(245)
    assert sessions.record_activity() is False
    assert sessions.get_state() == SessionState.WARNING_PENDING


def test_session_survives_restart(sessions, container, clock):
    sessions.login('editor', 'editor123')
    clock.advance(30)

    restored = SessionService(container.storage, container.user_service, clock=clock)
    assert restored.current_user()['username'] == 'editor'
    assert restored.get_remaining_time() == 270


def test_corrupt_persisted_session_is_discarded(container, clock):
    container.storage.set_item(SessionService.SESSION_KEY, '{"user": "x"}')
    restored = SessionService(container.storage, container.user_service, clock=clock)
    assert restored.get_state() == SessionState.ANONYMOUS


def test_session_info_flags(sessions):
    sessions.login('viewer', 'viewer123')
    info = sessions.get_session_info()
    assert info['state'] == 'authenticated'
    assert info['isViewer'] is True
    assert info['canEdit'] is False
    assert info['isAdmin'] is False
    assert info['formattedTime'] == '5:00'


# ═══════════════════════════════════════════════════════════════════════════
# WATCHER
# ═══════════════════════════════════════════════════════════════════════════

class FakeTimer:
    """Timer que no corre solo: el test decide cuándo dispara."""

    created = []

    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.started = False
        self.daemon = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.callback()


@pytest.fixture
def fake_timers():
    FakeTimer.created = []
    return FakeTimer.created


def test_watcher_schedules_warning_then_expiry(sessions, clock, fake_timers):
    warnings = []
    expired = []
    watcher = SessionWatcher(
        sessions,
        on_warning=warnings.append,
        on_expired=lambda: expired.append(True),
        timer_factory=FakeTimer
    )
    watcher.start()
    assert fake_timers == []  # sin sesión no hay nada que vigilar

    sessions.login('admin', 'admin123')
    assert watcher.next_delay == 240

    clock.advance(241)
    fake_timers[-1].fire()
    assert warnings == [59]
    assert watcher.next_delay == 59

    clock.advance(60)
    fake_timers[-1].fire()
    assert expired == [True]
    assert sessions.get_state() == SessionState.ANONYMOUS
    assert watcher.next_delay is None


def test_watcher_reschedules_on_extend(sessions, clock, fake_timers):
    watcher = SessionWatcher(sessions, timer_factory=FakeTimer)
    watcher.start()
    sessions.login('admin', 'admin123')
    first = fake_timers[-1]

    clock.advance(100)
    sessions.extend_session()

    assert first.cancelled is True
    assert fake_timers[-1] is not first
    assert watcher.next_delay == 240

    watcher.stop()
    assert fake_timers[-1].cancelled is True
    assert sessions.watcher is None


def test_app_watches_session_and_logs_expiry(settings, clock, fake_timers, capsys):
    from inventario_sync.main import create_app

    app = create_app(
        dict(settings, TESTING=True, WATCH_SESSION=True),
        clock=clock, timer_factory=FakeTimer
    )
    with app.test_client() as client:
        client.post('/api/auth/login', json={'username': 'admin', 'password': 'admin123'})
    watcher = app.extensions['inventario'].session_watcher
    assert watcher.next_delay == 240

    clock.advance(241)
    fake_timers[-1].fire()
    clock.advance(60)
    fake_timers[-1].fire()

    out = capsys.readouterr().out
    assert '[SESION] La sesión expira en 59 segundos' in out
    assert '[SESION] Sesión expirada por inactividad' in out
    assert app.extensions['inventario'].session_service.current_user() is None
