# -*- coding: utf-8 -*-
"""
Profiling: estadísticas por función y por ruta, y logs de operaciones lentas.
"""
import os

from inventario_sync import performance_logger


def test_profile_function_collects_stats():
    performance_logger.configure(enabled=True)

    @performance_logger.profile_function(name='Operación de prueba')
    def operacion(x):
        return x * 2

    assert operacion(2) == 4
    assert operacion(3) == 6

    stats = performance_logger.get_function_stats()['Operación de prueba']
    assert stats['calls'] == 2
    assert stats['max_time'] >= stats['avg_time'] >= 0


def test_profile_disabled_records_nothing():
    performance_logger.configure(enabled=False)

    @performance_logger.profile_function
    def silenciosa():
        return 'ok'

    assert silenciosa() == 'ok'
    assert performance_logger.get_function_stats() == {}


def test_severity_thresholds():
    assert performance_logger.severity_for(10) is None
    assert performance_logger.severity_for(300) == 'WARNING'
    assert performance_logger.severity_for(700) == 'CRITICAL'


def test_slow_request_goes_to_both_logs(tmp_path):
    logs_dir = tmp_path / 'perf'
    performance_logger.configure(enabled=True, logs_dir=str(logs_dir))

    performance_logger.record_request('POST', '/api/movements', '/api/movements', 12)
    performance_logger.record_request('POST', '/api/movements', '/api/movements', 900, user='admin')

    summary = performance_logger.get_log_summary()
    assert summary['performance']['lines'] == 2
    assert summary['slow']['lines'] == 1
    with open(os.path.join(logs_dir, 'slow_operations.log'), encoding='utf-8') as f:
        content = f.read()
    assert 'CRITICAL | ruta | Registrar movimiento' in content

    stats = performance_logger.get_route_stats()['Registrar movimiento']
    assert stats['calls'] == 2
    assert stats['max_time'] == 900


def test_profiled_routes_write_performance_log(settings, clock, tmp_path):
    from inventario_sync.main import create_app

    logs_dir = str(tmp_path / 'route-logs')
    app = create_app(
        dict(settings, TESTING=True, ENABLE_PROFILING=True, LOGS_DIR=logs_dir),
        clock=clock
    )
    with app.test_client() as client:
        client.post('/api/auth/login', json={'username': 'admin', 'password': 'admin123'})
        info = client.get('/api/database/info').get_json()['data']

    assert 'DocumentStore.load' in info['profiling']['functions']
    assert 'Iniciar sesión' in info['profiling']['routes']
    with open(os.path.join(logs_dir, 'performance.log'), encoding='utf-8') as f:
        assert '| Iniciar sesión | POST /api/auth/login |' in f.read()
