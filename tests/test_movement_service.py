# -*- coding: utf-8 -*-
"""
Motor de movimientos: el movimiento y el ajuste de stock son atómicos, el
stock nunca queda negativo y borrar un movimiento revierte su efecto.
"""
import json

import pytest

from inventario_sync.errors import NotFoundError, StorageError, ValidationError
from inventario_sync.services import resolve_movement_type


def _quantity(container, product_id):
    return container.repo.get_by_id('products', product_id)['quantity']


def test_entrada_and_salida_adjust_stock(container):
    movements = container.movement_service

    movements.create_movement(1, 'entrada', 5, 'Compra proveedor')
    assert _quantity(container, 1) == 15

    movements.create_movement(1, 'salida', 3, 'Juan Pérez')
    assert _quantity(container, 1) == 12


def test_loan_return_scenario(container):
    """10 → salida 4 → 6 → devolución (borrar) → 10 → salida 15 → 0."""
    movements = container.movement_service
    assert _quantity(container, 1) == 10

    loan = movements.create_movement(1, 'salida', 4, 'Juan Pérez')
    assert _quantity(container, 1) == 6

    movements.delete_movement(loan['id'])
    assert _quantity(container, 1) == 10
    assert container.repo.get_by_id('movements', loan['id']) is None

    movements.create_movement(1, 'salida', 15, 'Aula 5')
    assert _quantity(container, 1) == 0


def test_delete_entrada_clamps_to_zero(container):
    movements = container.movement_service
    entrada = movements.create_movement(2, 'entrada', 3, 'Compra')   # 2 → 5
    movements.create_movement(2, 'salida', 5, 'Préstamo')            # 5 → 0

    movements.delete_movement(entrada['id'])
    assert _quantity(container, 2) == 0


def test_movement_record_fields(container):
    movement = container.movement_service.create_movement(
        '1', 'ENTRADA', '2', '  Compra  ', notes='Factura 12'
    )
    assert movement['productId'] == 1
    assert movement['type'] == 'entrada'
    assert movement['quantity'] == 2
    assert movement['reason'] == 'Compra'
    assert movement['notes'] == 'Factura 12'
    assert movement['userId'] == 1  # responsable por defecto


@pytest.mark.parametrize('kwargs, message', [
    ({'product_id': None}, 'producto'),
    ({'movement_type': 'ajuste'}, 'tipo'),
    ({'quantity': 0}, 'cantidad'),
    ({'quantity': -2}, 'cantidad'),
    ({'quantity': 1.5}, 'cantidad'),
    ({'quantity': 'muchos'}, 'cantidad'),
    ({'reason': 'ab'}, 'motivo'),
])
def test_validation_errors(container, kwargs, message):
    data = {'product_id': 1, 'movement_type': 'entrada', 'quantity': 1, 'reason': 'Compra'}
    data.update(kwargs)

    with pytest.raises(ValidationError) as exc:
        container.movement_service.create_movement(**data)
    assert message in exc.value.message.lower()
    assert _quantity(container, 1) == 10
    assert len(container.repo.get_all('movements')) == 2


def test_enforce_stock_rejects_oversized_salida(container):
    movements = container.movement_service
    with pytest.raises(ValidationError) as exc:
        movements.create_movement(2, 'salida', 5, 'Aula 3', enforce_stock=True)
    assert 'Disponible: 2' in exc.value.message
    assert _quantity(container, 2) == 2
    assert len(container.repo.get_all('movements')) == 2


def test_prestamo_alias_checks_stock(container):
    movements = container.movement_service

    with pytest.raises(ValidationError):
        movements.create_movement(2, 'prestamo', 3, 'Aula 3')

    loan = movements.create_movement(2, 'prestamo', 2, 'Aula 3')
    assert loan['type'] == 'salida'
    assert _quantity(container, 2) == 0

    back = movements.create_movement(2, 'devolucion', 2, 'Aula 3')
    assert back['type'] == 'entrada'
    assert _quantity(container, 2) == 2


def test_resolve_movement_type():
    assert resolve_movement_type('Prestamo') == ('salida', True)
    assert resolve_movement_type('devolucion') == ('entrada', False)
    assert resolve_movement_type('salida') == ('salida', False)
    assert resolve_movement_type(None) == ('', False)


def test_missing_product_records_movement_without_adjusting(container):
    before = container.repo.get_all('products')
    movement = container.movement_service.create_movement(999, 'entrada', 5, 'Huérfano')

    assert container.repo.get_by_id('movements', movement['id']) is not None
    assert container.repo.get_all('products') == before


def test_delete_missing_movement_raises(container):
    with pytest.raises(NotFoundError):
        container.movement_service.delete_movement(999)


def test_batch_is_all_or_nothing(container):
    movements = container.movement_service

    with pytest.raises(ValidationError):
        movements.create_movements_batch(
            [{'productId': 1, 'quantity': 2}, {'productId': 2, 'quantity': 9}],
            'prestamo', 'María López'
        )
    assert _quantity(container, 1) == 10
    assert _quantity(container, 2) == 2
    assert len(container.repo.get_all('movements')) == 2

    created = movements.create_movements_batch(
        [{'productId': 1, 'quantity': 2}, {'productId': 2, 'quantity': 1}],
        'prestamo', 'María López'
    )
    assert [m['productId'] for m in created] == [1, 2]
    assert _quantity(container, 1) == 8
    assert _quantity(container, 2) == 1


def test_batch_requires_items(container):
    with pytest.raises(ValidationError):
        container.movement_service.create_movements_batch([], 'entrada', 'Compra')


def test_movement_and_stock_persisted_together(container):
    container.movement_service.create_movement(1, 'salida', 4, 'Juan Pérez')

    document = json.loads(container.storage.get_item('inventario_database'))
    product = next(p for p in document['products'] if p['id'] == 1)
    assert product['quantity'] == 6
    assert document['movements'][-1]['quantity'] == 4


def test_storage_failure_still_invalidates_cache(container):
    movements = container.movement_service
    assert movements.get_movements_with_details()  # llena la caché

    container.storage.quota_bytes = 10
    with pytest.raises(StorageError):
        movements.create_movement(1, 'entrada', 1, 'Sin espacio')

    assert container.cache.get_stats()['entries'] == 0
    assert _quantity(container, 1) == 11


def test_movements_with_details_newest_first(container, clock):
    movements = container.movement_service
    clock.advance(10)
    first = movements.create_movement(1, 'entrada', 1, 'Primera')
    clock.advance(10)
    second = movements.create_movement(4, 'salida', 1, 'Segunda')

    detailed = movements.get_movements_with_details()
    assert [m['id'] for m in detailed[:2]] == [second['id'], first['id']]
    assert detailed[0]['product']['name'] == 'Silla ergonómica'
    assert detailed[0]['user']['username'] == 'admin'
    assert 'password' not in detailed[0]['user']


def test_search_movements(container, clock):
    movements = container.movement_service
    movements.create_movement(4, 'salida', 1, 'Préstamo oficina 2')

    salidas = movements.search_movements(movement_type='salida')
    assert {m['type'] for m in salidas} == {'salida'}
    assert len(salidas) == 2

    assert len(movements.search_movements(query='oficina')) == 1
    assert len(movements.search_movements(query='silla')) == 1
    assert len(movements.search_movements(product_id=1)) == 1

    january = movements.search_movements(date_from='2024-01-01', date_to='2024-01-15')
    assert [m['id'] for m in january] == [2, 1]

    assert movements.search_movements(date_from='2024-01-11', date_to='2024-01-14') == []
