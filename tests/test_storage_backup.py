# -*- coding: utf-8 -*-
"""
Almacenamiento clave-valor y backups: cuota, rotación, limpieza y
restauración.
"""
import pytest

from inventario_sync.errors import StorageError
from inventario_sync.repositories import KeyValueStorage, StorageQuotaError
from inventario_sync.services import BackupService


@pytest.fixture
def storage(tmp_path):
    return KeyValueStorage(str(tmp_path / 'kv'))


def test_get_set_remove(storage):
    assert storage.get_item('clave') is None
    storage.set_item('clave', '{"a": 1}')
    assert storage.get_item('clave') == '{"a": 1}'
    assert storage.keys() == ['clave']
    assert storage.remove_item('clave') is True
    assert storage.remove_item('clave') is False
    assert storage.get_item('clave') is None


def test_invalid_key_rejected(storage):
    with pytest.raises(ValueError):
        storage.set_item('../fuera', 'x')


def test_quota_exceeded_raises_storage_error(tmp_path):
    storage = KeyValueStorage(str(tmp_path / 'kv'), quota_bytes=20)
    storage.set_item('a', 'x' * 15)

    with pytest.raises(StorageQuotaError) as exc:
        storage.set_item('b', 'y' * 10)
    assert isinstance(exc.value, StorageError)
    assert exc.value.kind == 'storage'

    # Sobrescribir la misma clave descuenta su tamaño actual
    storage.set_item('a', 'z' * 20)
    assert storage.usage() == 20


def test_backup_rotation_keeps_latest(storage, clock):
    backups = BackupService(storage, max_backups=2, clock=clock)
    storage.set_item('doc', '{"v": 0}')

    for i in range(4):
        clock.advance(1)
        result = backups.create_backup('doc')
        assert result['success'] is True

    existing = backups.get_existing_backups('doc')
    assert len(existing) == 2
    # Más reciente primero
    stamps = [BackupService.parse_backup_key(k)[1] for k in existing]
    assert stamps == sorted(stamps, reverse=True)


def test_backup_without_data_is_noop(storage, clock):
    backups = BackupService(storage, clock=clock)
    result = backups.create_backup('doc')
    assert result['success'] is False
    assert storage.keys() == []


def test_backup_key_collision_same_millisecond(storage, clock):
    backups = BackupService(storage, clock=clock)
    storage.set_item('doc', '{}')
    first = backups.create_backup('doc')['backup_key']
    second = backups.create_backup('doc')['backup_key']
    assert first != second


def test_cleanup_storage_keeps_one_per_key(storage, clock):
    backups = BackupService(storage, max_backups=5, clock=clock)
    storage.set_item('doc', '{}')
    storage.set_item('otro', '{}')
    for _ in range(3):
        clock.advance(1)
        backups.create_backup('doc')
        backups.create_backup('otro')

    deleted = backups.cleanup_storage(keep=1)

    assert deleted == 4
    assert len(backups.get_existing_backups('doc')) == 1
    assert len(backups.get_existing_backups('otro')) == 1


def test_parse_backup_key():
    assert BackupService.parse_backup_key('backup_inventario_database_1700000000000') == (
        'inventario_database', 1700000000000
    )
    assert BackupService.parse_backup_key('inventario_database') is None
    assert BackupService.parse_backup_key('backup_sin_timestamp_x') is None


def test_restore_latest_skips_invalid(storage, clock):
    backups = BackupService(storage, clock=clock)
    storage.set_item('doc', '{"v": 1}')
    clock.advance(1)
    backups.create_backup('doc')

    storage.set_item('doc', 'corrupto')
    clock.advance(1)
    backups.create_backup('doc')

    restored = backups.restore_latest_backup('doc', is_valid=lambda raw: raw.startswith('{'))

    assert restored is not None
    assert storage.get_item('doc') == '{"v": 1}'


def test_backup_status(storage, clock):
    backups = BackupService(storage, max_backups=3, clock=clock)
    storage.set_item('doc', '{"v": 1}')
    backups.create_backup('doc')

    status = backups.get_backup_status('doc')
    assert status['total_backups'] == 1
    assert status['max_backups'] == 3
    assert status['backups'][0]['size_bytes'] == len('{"v": 1}')
