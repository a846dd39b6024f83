# ==============================================================================
# API DEL INVENTARIO - Aplicación Flask
# ==============================================================================
# Capa delgada sobre los servicios: cada ruta toma los datos del request,
# llama a un servicio y devuelve JSON.
#
#   Éxito:  {"ok": true, "data": ...}
#   Error:  {"ok": false, "kind": "validation", "message": "..."}  + status HTTP
#
# Permisos:
#   - Lectura: cualquier sesión vigente
#   - Inventario (productos, categorías, movimientos, reportes): admin/editor
#   - Usuarios y reinicio de base de datos: solo admin
# ==============================================================================

import threading
import time
from functools import wraps

from flask import Blueprint, Flask, Response, current_app, g, request

from inventario_sync import config
from inventario_sync.app_container import AppContainer
from inventario_sync.errors import (
    InventarioError,
    NotFoundError,
    PermissionDeniedError,
    SessionExpiredError,
    ValidationError,
)
from inventario_sync.models import to_bool
from inventario_sync import performance_logger
from inventario_sync.performance_logger import init_profiling


api = Blueprint('api', __name__, url_prefix='/api')


def get_container() -> AppContainer:
    """Contenedor de la aplicación actual."""
    return current_app.extensions['inventario']


def _ok(data=None, status=200):
    return {'ok': True, 'data': data}, status


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Se esperaba un cuerpo JSON')
    return data


def _actor():
    user = getattr(g, 'user', None) or {}
    return user.get('name') or user.get('username')


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'}
    )


# ═══════════════════════════════════════════════════════════════════════════
# DECORADORES DE ACCESO
# ═══════════════════════════════════════════════════════════════════════════

def login_required(f):
    """Exige sesión vigente; cada request cuenta como actividad del usuario."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        sessions = get_container().session_service
        sessions.check_session()
        user = sessions.current_user()
        if user is None:
            raise SessionExpiredError()
        sessions.record_activity()
        g.user = user
        return f(*args, **kwargs)
    return wrapper


def role_required(*roles):
    """Exige sesión vigente y uno de los roles indicados."""
    def deco(f):
        @wraps(f)
        @login_required
        def wrapper(*args, **kwargs):
            if g.user.get('role') not in roles:
                raise PermissionDeniedError()
            return f(*args, **kwargs)
        return wrapper
    return deco


editor_required = role_required('admin', 'editor')
admin_required = role_required('admin')


# ═══════════════════════════════════════════════════════════════════════════
# SESIÓN
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/auth/login', methods=['POST'])
def login():
    data = _json_body()
    identifier = data.get('username') or data.get('email') or ''
    result = get_container().session_service.login(identifier, data.get('password') or '')
    if not result['success']:
        return {'ok': False, 'kind': 'auth', 'message': result['message']}, 401
    return _ok({
        'user': result['user'],
        'session': get_container().session_service.get_session_info(),
    })


@api.route('/auth/logout', methods=['POST'])
def logout():
    get_container().session_service.logout()
    return _ok()


@api.route('/auth/session', methods=['GET'])
def session_info():
    sessions = get_container().session_service
    sessions.check_session()
    return _ok(sessions.get_session_info())


@api.route('/auth/extend', methods=['POST'])
def extend_session():
    sessions = get_container().session_service
    sessions.extend_session()
    return _ok(sessions.get_session_info())


# ═══════════════════════════════════════════════════════════════════════════
# PRODUCTOS
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/products', methods=['GET'])
@login_required
def list_products():
    inventory = get_container().inventory_service
    query = request.args.get('q', '')
    category_id = request.args.get('categoryId')
    low_stock = to_bool(request.args.get('lowStock'), False)
    if query or category_id or low_stock:
        return _ok(inventory.search_products(query, category_id, low_stock))
    return _ok(inventory.get_products_with_category())


@api.route('/products/low-stock', methods=['GET'])
@login_required
def low_stock_products():
    return _ok(get_container().inventory_service.get_low_stock())


@api.route('/products/<int:product_id>', methods=['GET'])
@login_required
def get_product(product_id):
    product = get_container().inventory_service.get_product(product_id)
    if product is None:
        raise NotFoundError('products', product_id)
    return _ok(product)


@api.route('/products', methods=['POST'])
@editor_required
def create_product():
    product = get_container().inventory_service.create_product(_json_body(), _actor())
    return _ok(product, 201)


@api.route('/products/<int:product_id>', methods=['PUT'])
@editor_required
def update_product(product_id):
    return _ok(get_container().inventory_service.update_product(product_id, _json_body(), _actor()))


@api.route('/products/<int:product_id>', methods=['DELETE'])
@editor_required
def delete_product(product_id):
    return _ok(get_container().inventory_service.delete_product(product_id, _actor()))


# ═══════════════════════════════════════════════════════════════════════════
# CATEGORÍAS
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/categories', methods=['GET'])
@login_required
def list_categories():
    include_inactive = to_bool(request.args.get('all'), False)
    return _ok(get_container().category_service.get_categories(include_inactive))


@api.route('/categories', methods=['POST'])
@editor_required
def create_category():
    return _ok(get_container().category_service.create_category(_json_body(), _actor()), 201)


@api.route('/categories/<int:category_id>', methods=['PUT'])
@editor_required
def update_category(category_id):
    return _ok(get_container().category_service.update_category(category_id, _json_body(), _actor()))


@api.route('/categories/<int:category_id>', methods=['DELETE'])
@editor_required
def delete_category(category_id):
    return _ok(get_container().category_service.delete_category(category_id, _actor()))


# ═══════════════════════════════════════════════════════════════════════════
# MOVIMIENTOS
# ═══════════════════════════════════════════════════════════════════════════

def _movement_filters() -> dict:
    return {
        'movement_type': request.args.get('type') or None,
        'date_from': request.args.get('from') or None,
        'date_to': request.args.get('to') or None,
        'query': request.args.get('q', ''),
        'product_id': request.args.get('productId'),
    }


@api.route('/movements', methods=['GET'])
@login_required
def list_movements():
    movements = get_container().movement_service
    filters = _movement_filters()
    if any(v for v in filters.values()):
        return _ok(movements.search_movements(**filters))
    return _ok(movements.get_movements_with_details())


@api.route('/movements', methods=['POST'])
@editor_required
def create_movement():
    data = _json_body()
    movements = get_container().movement_service
    user_id = g.user.get('id')

    # Varios productos en un solo registro (ej. préstamo)
    if 'items' in data:
        items = data.get('items')
        if not isinstance(items, list):
            raise ValidationError("'items' debe ser una lista")
        created = movements.create_movements_batch(
            items, data.get('type'), data.get('reason'),
            user_id=user_id, user=_actor()
        )
        return _ok(created, 201)

    movement = movements.create_movement(
        data.get('productId'),
        data.get('type'),
        data.get('quantity'),
        data.get('reason'),
        user_id=user_id,
        notes=data.get('notes', ''),
        user=_actor()
    )
    return _ok(movement, 201)


@api.route('/movements/<int:movement_id>', methods=['DELETE'])
@editor_required
def delete_movement(movement_id):
    return _ok(get_container().movement_service.delete_movement(movement_id, _actor()))


@api.route('/movements/export', methods=['GET'])
@login_required
def export_movements():
    container = get_container()
    filters = _movement_filters()
    rows = None
    if any(v for v in filters.values()):
        rows = container.movement_service.search_movements(**filters)
    return _csv_response(container.report_service.export_movements_csv(rows), 'movimientos.csv')


# ═══════════════════════════════════════════════════════════════════════════
# USUARIOS
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/users', methods=['GET'])
@admin_required
def list_users():
    return _ok(get_container().user_service.get_users())


@api.route('/users', methods=['POST'])
@admin_required
def create_user():
    return _ok(get_container().user_service.create_user(_json_body(), _actor()), 201)


@api.route('/users/<int:user_id>', methods=['PUT'])
@admin_required
def update_user(user_id):
    return _ok(get_container().user_service.update_user(user_id, _json_body(), _actor()))


@api.route('/users/<int:user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    return _ok(get_container().user_service.delete_user(user_id, _actor()))


# ═══════════════════════════════════════════════════════════════════════════
# PANEL, ACTIVIDAD Y REPORTES
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/dashboard/stats', methods=['GET'])
@login_required
def dashboard_stats():
    return _ok(get_container().report_service.get_dashboard_stats())


@api.route('/activities', methods=['GET'])
@login_required
def recent_activities():
    limit = request.args.get('limit', type=int)
    category = request.args.get('category') or None
    return _ok(get_container().activity_service.get_recent(limit, category))


@api.route('/activities', methods=['DELETE'])
@admin_required
def clear_activities():
    get_container().activity_service.clear()
    return _ok({'cleared': True})


@api.route('/reports', methods=['GET'])
@login_required
def list_reports():
    return _ok(get_container().report_service.get_reports())


@api.route('/reports', methods=['POST'])
@editor_required
def generate_report():
    data = _json_body()
    report = get_container().report_service.generate_report(
        data.get('type'), user_id=g.user.get('id'), user=_actor()
    )
    return _ok(report, 201)


@api.route('/reports/<int:report_id>/export', methods=['GET'])
@login_required
def export_report(report_id):
    content = get_container().report_service.export_report_csv(report_id)
    return _csv_response(content, f'reporte_{report_id}.csv')


# ═══════════════════════════════════════════════════════════════════════════
# BASE DE DATOS
# ═══════════════════════════════════════════════════════════════════════════

@api.route('/database/export', methods=['GET'])
@admin_required
def export_database():
    return Response(
        get_container().database_service.export_data(),
        mimetype='application/json',
        headers={'Content-Disposition': 'attachment; filename=inventario.json'}
    )


@api.route('/database/import', methods=['POST'])
@admin_required
def import_database():
    counts = get_container().database_service.import_data(request.get_data(as_text=True))
    return _ok(counts)


@api.route('/database/reset', methods=['POST'])
@admin_required
def reset_database():
    container = get_container()
    container.database_service.reset()
    return _ok(container.report_service.get_dashboard_stats())


@api.route('/database/backup', methods=['POST'])
@admin_required
def backup_database():
    return _ok(get_container().database_service.create_backup(), 201)


@api.route('/database/cleanup', methods=['POST'])
@admin_required
def cleanup_database():
    deleted = get_container().database_service.cleanup_storage()
    return _ok({'deleted': deleted})


@api.route('/database/info', methods=['GET'])
@admin_required
def database_info():
    container = get_container()
    info = container.database_service.get_storage_info()
    info['cache'] = container.cache.get_stats()
    info['profiling'] = {
        'functions': performance_logger.get_function_stats(),
        'routes': performance_logger.get_route_stats(),
        'logs': performance_logger.get_log_summary(),
    }
    return _ok(info)


@api.route('/database/health', methods=['GET'])
@login_required
def database_health():
    return _ok(get_container().database_service.check_health())


# ═══════════════════════════════════════════════════════════════════════════
# ERRORES
# ═══════════════════════════════════════════════════════════════════════════

def handle_inventario_error(error: InventarioError):
    body = {'ok': False}
    body.update(error.to_dict())
    return body, error.http_status


# ═══════════════════════════════════════════════════════════════════════════
# FÁBRICA DE LA APLICACIÓN
# ═══════════════════════════════════════════════════════════════════════════

def create_app(overrides: dict = None, clock=time.time, timer_factory=threading.Timer) -> Flask:
    """
    Crea la aplicación con su propio contenedor de servicios.

    Args:
        overrides: Valores que reemplazan la configuración por defecto
            (mismas claves que config.as_dict(), más las de Flask)
        clock: Fuente de tiempo para repositorio, caché y sesión
        timer_factory: Timers del vigilante de sesión (WATCH_SESSION)

    Returns:
        Aplicación Flask lista para servir o para test_client()
    """
    app = Flask(__name__)
    app.config.update(config.as_dict())
    app.config['SECRET_KEY'] = config.get_secret_key()
    if overrides:
        app.config.update(overrides)

    settings = {key: app.config[key] for key in config.as_dict()}
    container = AppContainer(settings, clock=clock, timer_factory=timer_factory)
    app.extensions['inventario'] = container

    performance_logger.configure(
        enabled=app.config['ENABLE_PROFILING'],
        logs_dir=app.config['LOGS_DIR']
    )

    def _current_username():
        user = container.session_service.current_user()
        return user.get('username') if user else None

    init_profiling(app, user_getter=_current_username)

    app.register_blueprint(api)
    app.register_error_handler(InventarioError, handle_inventario_error)

    if settings['WATCH_SESSION']:
        container.session_watcher.start()

    # Cargar el documento al arrancar (semilla en el primer uso)
    products = container.repo.get_all('products')
    print(f"[STORAGE] Datos en {settings['DATA_DIR']}: {len(products)} productos")
    return app
