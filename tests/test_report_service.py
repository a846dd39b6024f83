# -*- coding: utf-8 -*-
"""
Panel principal, reportes guardados y exportación CSV.
"""
import csv
import io

import pytest

from inventario_sync.app_container import AppContainer
from inventario_sync.errors import NotFoundError, StorageError, ValidationError


def _rows(content):
    return list(csv.DictReader(io.StringIO(content)))


def test_dashboard_stats(container):
    stats = container.report_service.get_dashboard_stats()

    assert stats['totalProducts'] == 4
    # 10*850 + 2*420.5 + 40*4.75 + 6*120
    assert stats['totalValue'] == 10251.0
    assert stats['lowStockItems'] == 1
    assert stats['totalCategories'] == 3
    assert stats['recentMovements'] == 0


def test_dashboard_counts_recent_movements_and_active_categories(container, clock):
    container.movement_service.create_movement(1, 'salida', 1, 'Préstamo')
    container.category_service.delete_category(3)

    stats = container.report_service.get_dashboard_stats()
    assert stats['recentMovements'] == 1
    assert stats['totalCategories'] == 2

    clock.advance(8 * 24 * 60 * 60)
    container.cache.invalidate()
    assert container.report_service.get_dashboard_stats()['recentMovements'] == 0


def test_generate_reports(container):
    reports = container.report_service

    inventory = reports.generate_report('inventory', user_id=2, user='Editor')
    assert inventory['type'] == 'inventory'
    assert inventory['userId'] == 2
    assert inventory['status'] == 'completed'
    assert len(inventory['data']) == 4

    low = reports.generate_report('lowstock')
    assert low['userId'] == 1
    assert [p['id'] for p in low['data']] == [2]
    assert low['data'][0]['category']['name'] == 'Tecnología'

    movements = reports.generate_report('movements')
    assert len(movements['data']) == 2

    assert [r['id'] for r in reports.get_reports()] == [1, 2, 3]


def test_report_without_user_uses_configured_default(settings, clock):
    container = AppContainer(dict(settings, DEFAULT_USER_ID=3), clock=clock)
    report = container.report_service.generate_report('inventory')
    assert report['userId'] == 3


def test_report_is_a_snapshot(container):
    report = container.report_service.generate_report('inventory')
    container.movement_service.create_movement(1, 'entrada', 5, 'Compra')

    stored = container.repo.get_by_id('reports', report['id'])
    first = next(p for p in stored['data'] if p['id'] == 1)
    assert first['quantity'] == 10


def test_invalid_report_type(container):
    with pytest.raises(ValidationError):
        container.report_service.generate_report('ventas')


def test_export_movements_csv(container):
    content = container.report_service.export_movements_csv()
    rows = _rows(content)

    assert list(rows[0].keys()) == list(container.report_service.MOVEMENT_COLUMNS)
    assert [r['id'] for r in rows] == ['2', '1']
    assert rows[0]['productName'] == 'Proyector Epson'
    assert rows[0]['userName'] == 'Editor de Inventario'


def test_export_report_csv(container):
    reports = container.report_service
    report = reports.generate_report('lowstock')

    rows = _rows(reports.export_report_csv(report['id']))
    assert rows[0]['name'] == 'Proyector Epson'
    assert rows[0]['categoryName'] == 'Tecnología'

    with pytest.raises(NotFoundError):
        reports.export_report_csv(999)


def test_database_service_reset_and_import(container):
    database = container.database_service
    container.inventory_service.create_product({'name': 'Temporal', 'categoryId': 1})

    exported = database.export_data()
    database.reset()
    assert len(container.inventory_service.get_products()) == 4

    counts = database.import_data(exported)
    assert counts['products'] == 5
    assert len(container.inventory_service.get_products()) == 5


def test_database_service_storage_info(container):
    container.category_service.create_category({'name': 'Uno'})
    container.category_service.create_category({'name': 'Dos'})

    info = container.database_service.get_storage_info()
    assert info['inventory']['items'] == 1
    assert info['backupStatus']['total_backups'] == 1
    assert container.database_service.check_health()['status'] == 'healthy'


def test_database_service_manual_backup_and_cleanup(container):
    database = container.database_service

    # Sin documento guardado no hay nada que respaldar
    with pytest.raises(StorageError):
        database.create_backup()

    container.category_service.create_category({'name': 'Uno'})
    container.category_service.create_category({'name': 'Dos'})
    result = database.create_backup()
    assert result['success'] is True
    assert database.get_storage_info()['backupStatus']['total_backups'] == 2

    assert database.cleanup_storage() == 1
    assert database.get_storage_info()['backupStatus']['total_backups'] == 1
