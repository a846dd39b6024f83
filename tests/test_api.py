# -*- coding: utf-8 -*-
"""
API Flask: sesión, permisos por rol, forma de los errores y exportaciones.
"""
import json


def test_requires_session(client):
    r = client.get('/api/products')
    assert r.status_code == 401
    body = r.get_json()
    assert body['ok'] is False
    assert body['kind'] == 'session'


def test_login_and_session_info(client, login):
    user = login('admin')
    assert user['role'] == 'admin'
    assert 'password' not in user

    info = client.get('/api/auth/session').get_json()['data']
    assert info['authenticated'] is True
    assert info['isAdmin'] is True
    assert info['formattedTime'] == '5:00'


def test_login_failure(client):
    r = client.post('/api/auth/login', json={'username': 'admin', 'password': 'x'})
    assert r.status_code == 401
    assert r.get_json() == {'ok': False, 'kind': 'auth', 'message': 'Credenciales inválidas'}


def test_login_requires_json_body(client):
    r = client.post('/api/auth/login', data='no json', content_type='text/plain')
    assert r.status_code == 400
    assert r.get_json()['kind'] == 'validation'


def test_session_expires(client, login, clock):
    login('admin')
    clock.advance(301)

    r = client.get('/api/products')
    assert r.status_code == 401
    assert client.get('/api/auth/session').get_json()['data']['state'] == 'anonymous'


def test_requests_extend_session(client, login, clock):
    login('admin')
    clock.advance(100)
    client.get('/api/products')
    clock.advance(250)
    assert client.get('/api/products').status_code == 200


def test_extend_and_logout(client, login, clock):
    login('editor')
    clock.advance(250)
    data = client.post('/api/auth/extend').get_json()['data']
    assert data['remainingTime'] == 300

    assert client.post('/api/auth/logout').status_code == 200
    assert client.post('/api/auth/extend').status_code == 401


def test_list_and_search_products(client, login):
    login('viewer')
    products = client.get('/api/products').get_json()['data']
    assert len(products) == 4
    assert products[0]['category']['name'] == 'Tecnología'

    found = client.get('/api/products?q=silla').get_json()['data']
    assert [p['id'] for p in found] == [4]

    low = client.get('/api/products/low-stock').get_json()['data']
    assert [p['id'] for p in low] == [2]


def test_get_missing_product_is_404(client, login):
    login('viewer')
    r = client.get('/api/products/999')
    assert r.status_code == 404
    assert r.get_json()['kind'] == 'not_found'


def test_viewer_cannot_write(client, login):
    login('viewer')
    r = client.post('/api/products', json={'name': 'Nuevo', 'categoryId': 1})
    assert r.status_code == 403
    assert r.get_json()['kind'] == 'permission'

    assert client.post('/api/movements', json={}).status_code == 403
    assert client.get('/api/users').status_code == 403


def test_editor_cannot_manage_users(client, login):
    login('editor')
    assert client.get('/api/users').status_code == 403
    assert client.post('/api/database/reset').status_code == 403


def test_product_crud(client, login):
    login('editor')
    r = client.post('/api/products', json={'name': 'Teclado', 'categoryId': 1, 'quantity': 3})
    assert r.status_code == 201
    product = r.get_json()['data']

    r = client.put(f"/api/products/{product['id']}", json={'price': 25})
    assert r.get_json()['data']['price'] == 25.0

    r = client.delete(f"/api/products/{product['id']}")
    assert r.status_code == 200
    assert client.get(f"/api/products/{product['id']}").status_code == 404


def test_validation_error_shape(client, login):
    login('editor')
    r = client.post('/api/products', json={'name': 'X'})
    assert r.status_code == 400
    body = r.get_json()
    assert body['ok'] is False
    assert body['kind'] == 'validation'
    assert len(body['errors']) == 2


def test_movement_flow(client, login):
    user = login('editor')
    r = client.post('/api/movements', json={
        'productId': 1, 'type': 'salida', 'quantity': 4, 'reason': 'Juan Pérez'
    })
    assert r.status_code == 201
    movement = r.get_json()['data']
    assert movement['userId'] == user['id']
    assert client.get('/api/products/1').get_json()['data']['quantity'] == 6

    assert client.delete(f"/api/movements/{movement['id']}").status_code == 200
    assert client.get('/api/products/1').get_json()['data']['quantity'] == 10


def test_movement_batch_and_stock_check(client, login):
    login('editor')
    r = client.post('/api/movements', json={
        'type': 'prestamo', 'reason': 'Aula 4',
        'items': [{'productId': 1, 'quantity': 1}, {'productId': 2, 'quantity': 5}]
    })
    assert r.status_code == 400
    assert 'Stock insuficiente' in r.get_json()['message']

    r = client.post('/api/movements', json={
        'type': 'prestamo', 'reason': 'Aula 4',
        'items': [{'productId': 1, 'quantity': 1}, {'productId': 2, 'quantity': 2}]
    })
    assert r.status_code == 201
    assert len(r.get_json()['data']) == 2


def test_movement_filters_and_csv(client, login):
    login('viewer')
    salidas = client.get('/api/movements?type=salida').get_json()['data']
    assert [m['id'] for m in salidas] == [2]

    r = client.get('/api/movements/export?type=entrada')
    assert r.status_code == 200
    assert r.mimetype == 'text/csv'
    assert 'attachment' in r.headers['Content-Disposition']
    lines = r.get_data(as_text=True).strip().splitlines()
    assert lines[0].startswith('id,createdAt,type')
    assert len(lines) == 2


def test_categories_soft_delete(client, login):
    login('editor')
    assert client.delete('/api/categories/3').status_code == 200
    ids = [c['id'] for c in client.get('/api/categories').get_json()['data']]
    assert 3 not in ids
    ids = [c['id'] for c in client.get('/api/categories?all=1').get_json()['data']]
    assert 3 in ids


def test_users_admin(client, login):
    login('admin')
    r = client.post('/api/users', json={
        'name': 'Luis', 'username': 'luis', 'email': 'luis@inventario.com',
        'password': 'clave123', 'role': 'viewer'
    })
    assert r.status_code == 201
    assert all('password' not in u for u in client.get('/api/users').get_json()['data'])

    r = client.delete('/api/users/1')
    assert r.status_code == 400
    assert 'administrador' in r.get_json()['message']


def test_dashboard_activities_and_reports(client, login):
    login('editor')
    client.post('/api/movements', json={
        'productId': 1, 'type': 'entrada', 'quantity': 2, 'reason': 'Compra'
    })

    stats = client.get('/api/dashboard/stats').get_json()['data']
    assert stats['recentMovements'] == 1

    activities = client.get('/api/activities?limit=5').get_json()['data']
    assert activities[0]['category'] == 'movements'
    assert activities[0]['user'] == 'Editor de Inventario'

    r = client.post('/api/reports', json={'type': 'lowstock'})
    assert r.status_code == 201
    report = r.get_json()['data']
    assert report['userId'] == 2

    r = client.get(f"/api/reports/{report['id']}/export")
    assert r.status_code == 200
    assert 'Proyector Epson' in r.get_data(as_text=True)


def test_database_export_import_reset(client, login):
    login('admin')
    exported = client.get('/api/database/export')
    assert exported.status_code == 200
    document = json.loads(exported.get_data(as_text=True))
    document['products'] = document['products'][:2]

    r = client.post('/api/database/import', data=json.dumps(document), content_type='application/json')
    assert r.get_json()['data']['products'] == 2
    assert len(client.get('/api/products').get_json()['data']) == 2

    r = client.post('/api/database/import', data='{roto', content_type='application/json')
    assert r.status_code == 400

    stats = client.post('/api/database/reset').get_json()['data']
    assert stats['totalProducts'] == 4


def test_database_info_and_health(client, login):
    login('admin')
    info = client.get('/api/database/info').get_json()['data']
    assert 'cache' in info
    assert 'backupStatus' in info
    assert client.get('/api/database/health').get_json()['data']['status'] == 'healthy'


def test_storage_failure_maps_to_507(client, login, app):
    login('editor')
    app.extensions['inventario'].storage.quota_bytes = 10

    r = client.post('/api/categories', json={'name': 'Sin espacio'})
    assert r.status_code == 507
    assert r.get_json()['kind'] == 'storage'


def test_clear_activities(client, login):
    login('admin')
    client.post('/api/categories', json={'name': 'Limpieza'})
    assert client.get('/api/activities').get_json()['data']

    assert client.delete('/api/activities').status_code == 200
    assert client.get('/api/activities').get_json()['data'] == []


def test_viewer_cannot_clear_activities(client, login):
    login('viewer')
    assert client.delete('/api/activities').status_code == 403


def test_database_backup_and_cleanup(client, login):
    login('admin')
    client.post('/api/categories', json={'name': 'Uno'})
    client.post('/api/categories', json={'name': 'Dos'})

    r = client.post('/api/database/backup')
    assert r.status_code == 201
    assert r.get_json()['data']['backup_key']

    r = client.post('/api/database/cleanup')
    assert r.get_json()['data']['deleted'] == 1
    info = client.get('/api/database/info').get_json()['data']
    assert info['backupStatus']['total_backups'] == 1
