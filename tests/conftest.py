# -*- coding: utf-8 -*-
"""
Fixtures compartidas: cada test trabaja sobre su propia carpeta de datos y
un reloj controlado, sin tocar instance/ ni logs/ del proyecto.
"""
import pytest

from inventario_sync import config, performance_logger
from inventario_sync.app_container import AppContainer
from inventario_sync.main import create_app


# 2027-01-15: posterior a todos los movimientos de la semilla
START_TIME = 1800000000.0


class FakeClock:
    """Reloj manual: solo avanza cuando el test lo pide."""

    def __init__(self, start=START_TIME):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
        return self.now


@pytest.fixture(autouse=True)
def _no_profiling(tmp_path):
    performance_logger.configure(enabled=False, logs_dir=str(tmp_path / 'logs'))
    yield
    performance_logger.reset_stats()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return {
        'DATA_DIR': str(tmp_path / 'data'),
        'SEED_PATH': config.SEED_PATH,
        'ENABLE_PROFILING': False,
        'LOGS_DIR': str(tmp_path / 'logs'),
        'SIMULATED_LATENCY': 0.0,
        'WATCH_SESSION': False,
    }


@pytest.fixture
def container(settings, clock):
    return AppContainer(settings, clock=clock)


@pytest.fixture
def app(settings, clock):
    overrides = dict(settings, TESTING=True, SECRET_KEY='test')
    return create_app(overrides, clock=clock)


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


@pytest.fixture
def login(client):
    """Inicia sesión por la API con los usuarios de la semilla (clave: <usuario>123)."""
    def _login(username='admin', password=None):
        password = password or f'{username}123'
        r = client.post('/api/auth/login', json={'username': username, 'password': password})
        assert r.status_code == 200, r.get_json()
        return r.get_json()['data']['user']
    return _login
