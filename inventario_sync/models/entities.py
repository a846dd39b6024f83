# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad define el esquema canónico de su tabla. Los registros viven
# como diccionarios dentro del documento persistido; estas clases se usan
# para normalizarlos una sola vez al cargar (migración de campos legacy) y
# para construir registros nuevos con sus valores por defecto.
# ==============================================================================

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum


# ==============================================================================
# ENUMERACIONES
# ==============================================================================

class MovementType(str, Enum):
    """Tipos de movimiento de stock."""
    ENTRADA = "entrada"  # Ingreso, suma al stock
    SALIDA = "salida"    # Egreso, resta del stock


class UserRole(str, Enum):
    """Roles de usuario disponibles en el sistema."""
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class DeletePolicy(str, Enum):
    """Cómo se elimina un registro de una tabla."""
    HARD = "hard"  # Se quita de la tabla
    SOFT = "soft"  # Se marca isActive=False


class SessionState(str, Enum):
    """Estados de la máquina de sesión."""
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    WARNING_PENDING = "warning_pending"
    EXPIRED = "expired"


# Tablas del documento persistido
TABLES = ('products', 'categories', 'movements', 'users', 'reports', 'activities')

# Política de borrado por tabla
DELETE_POLICIES = {
    'products': DeletePolicy.HARD,
    'movements': DeletePolicy.HARD,
    'categories': DeletePolicy.SOFT,
    'users': DeletePolicy.SOFT,
    'reports': DeletePolicy.HARD,
    'activities': DeletePolicy.HARD,
}


# ==============================================================================
# HELPERS DE CONVERSIÓN
# ==============================================================================

def to_int(value: Any, default: int = 0) -> int:
    """Convierte a int tolerando strings y floats; usa default si no se puede."""
    if value is None or value == '':
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def to_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == '':
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_bool(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() not in ('false', '0', 'no', '')
    return bool(value)


def _split_extra(data: Dict[str, Any], known: tuple) -> Dict[str, Any]:
    """Campos no declarados en el esquema: se conservan tal cual."""
    return {k: v for k, v in data.items() if k not in known}


# ==============================================================================
# ENTIDADES DE INVENTARIO
# ==============================================================================

@dataclass
class Product:
    """
    Producto del inventario.

    Attributes:
        quantity: Stock actual (nunca negativo, solo lo modifica el motor de movimientos)
        minStock: Umbral de stock bajo
        categoryId: Categoría (puede apuntar a una categoría ya desactivada)
    """
    id: Optional[int] = None
    name: str = ''
    code: str = ''
    categoryId: Optional[int] = None
    quantity: int = 0
    minStock: int = 0
    price: float = 0.0
    status: str = 'active'
    description: str = ''
    supplier: str = ''
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    # Nombres legacy del stock, en orden de preferencia
    QUANTITY_ALIASES = ('quantity', 'stock', 'qty')

    _FIELDS = ('id', 'name', 'code', 'categoryId', 'quantity', 'stock', 'qty', 'minStock',
               'price', 'status', 'description', 'supplier', 'createdAt', 'updatedAt')

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.minStock

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia."""
        d = dict(self.extra)
        d.update({
            'id': self.id,
            'name': self.name,
            'code': self.code,
            'categoryId': self.categoryId,
            'quantity': self.quantity,
            'minStock': self.minStock,
            'price': self.price,
            'status': self.status,
            'description': self.description,
            'supplier': self.supplier,
            'createdAt': self.createdAt,
            'updatedAt': self.updatedAt,
        })
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        """Crea instancia desde diccionario, migrando stock/qty a quantity."""
        raw_quantity = 0
        for alias in cls.QUANTITY_ALIASES:
            if data.get(alias) is not None:
                raw_quantity = data[alias]
                break

        category_id = data.get('categoryId')
        return cls(
            id=to_int(data.get('id'), None),
            name=str(data.get('name') or ''),
            code=str(data.get('code') or ''),
            categoryId=to_int(category_id, None),
            quantity=max(0, to_int(raw_quantity)),
            minStock=max(0, to_int(data.get('minStock'))),
            price=max(0.0, to_float(data.get('price'))),
            status=str(data.get('status') or 'active'),
            description=str(data.get('description') or ''),
            supplier=str(data.get('supplier') or ''),
            createdAt=data.get('createdAt'),
            updatedAt=data.get('updatedAt'),
            extra=_split_extra(data, cls._FIELDS),
        )


@dataclass
class Category:
    """Categoría de productos. Se elimina con soft delete (isActive=False)."""
    id: Optional[int] = None
    name: str = ''
    description: str = ''
    isActive: bool = True
    color: str = ''
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _FIELDS = ('id', 'name', 'description', 'isActive', 'color', 'createdAt', 'updatedAt')

    def to_dict(self) -> Dict[str, Any]:
        d = dict(self.extra)
        d.update({
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'isActive': self.isActive,
            'color': self.color,
            'createdAt': self.createdAt,
            'updatedAt': self.updatedAt,
        })
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_color: str = '#3B82F6') -> 'Category':
        return cls(
            id=to_int(data.get('id'), None),
            name=str(data.get('name') or ''),
            description=str(data.get('description') or ''),
            isActive=to_bool(data.get('isActive'), True),
            color=str(data.get('color') or default_color),
            createdAt=data.get('createdAt'),
            updatedAt=data.get('updatedAt'),
            extra=_split_extra(data, cls._FIELDS),
        )


@dataclass
class Movement:
    """
    Movimiento de stock (entrada o salida).

    Inmutable una vez creado; al eliminarlo se revierte su efecto en el producto.
    """
    id: Optional[int] = None
    productId: Optional[int] = None
    type: str = MovementType.ENTRADA.value
    quantity: int = 0
    reason: str = ''
    userId: Optional[int] = None
    notes: str = ''
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _FIELDS = ('id', 'productId', 'type', 'quantity', 'reason', 'userId', 'notes',
               'createdAt', 'updatedAt')

    @property
    def signed_quantity(self) -> int:
        """Efecto del movimiento sobre el stock (+ entrada, - salida)."""
        if self.type == MovementType.SALIDA.value:
            return -self.quantity
        return self.quantity

    def to_dict(self) -> Dict[str, Any]:
        d = dict(self.extra)
        d.update({
            'id': self.id,
            'productId': self.productId,
            'type': self.type,
            'quantity': self.quantity,
            'reason': self.reason,
            'userId': self.userId,
            'notes': self.notes,
            'createdAt': self.createdAt,
            'updatedAt': self.updatedAt,
        })
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_user_id: int = 1) -> 'Movement':
        movement_type = str(data.get('type') or '').strip().lower()
        if movement_type not in (MovementType.ENTRADA.value, MovementType.SALIDA.value):
            movement_type = MovementType.ENTRADA.value
        return cls(
            id=to_int(data.get('id'), None),
            productId=to_int(data.get('productId'), None),
            type=movement_type,
            quantity=max(0, to_int(data.get('quantity'))),
            reason=str(data.get('reason') or ''),
            userId=to_int(data.get('userId'), default_user_id),
            notes=str(data.get('notes') or ''),
            createdAt=data.get('createdAt'),
            updatedAt=data.get('updatedAt'),
            extra=_split_extra(data, cls._FIELDS),
        )


# ==============================================================================
# ENTIDADES DE USUARIO
# ==============================================================================

@dataclass
class User:
    """
    Usuario del sistema.

    La contraseña se guarda tal cual la entregó el formulario (texto plano o
    hash de werkzeug) y nunca sale del repositorio: ver to_safe_dict().
    """
    id: Optional[int] = None
    username: str = ''
    name: str = ''
    email: str = ''
    password: str = ''
    role: str = UserRole.VIEWER.value
    isActive: bool = True
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _FIELDS = ('id', 'username', 'name', 'email', 'password', 'role', 'isActive',
               'createdAt', 'updatedAt')

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def can_edit(self) -> bool:
        return self.role in (UserRole.ADMIN.value, UserRole.EDITOR.value)

    def to_dict(self) -> Dict[str, Any]:
        d = dict(self.extra)
        d.update({
            'id': self.id,
            'username': self.username,
            'name': self.name,
            'email': self.email,
            'password': self.password,
            'role': self.role,
            'isActive': self.isActive,
            'createdAt': self.createdAt,
            'updatedAt': self.updatedAt,
        })
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        role = str(data.get('role') or '').strip().lower()
        if role not in {r.value for r in UserRole}:
            role = UserRole.VIEWER.value
        return cls(
            id=to_int(data.get('id'), None),
            username=str(data.get('username') or ''),
            name=str(data.get('name') or ''),
            email=str(data.get('email') or ''),
            password=str(data.get('password') or ''),
            role=role,
            isActive=to_bool(data.get('isActive'), True),
            createdAt=data.get('createdAt'),
            updatedAt=data.get('updatedAt'),
            extra=_split_extra(data, cls._FIELDS),
        )


def strip_password(record: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Copia del registro de usuario sin el campo password."""
    if record is None:
        return None
    return {k: v for k, v in record.items() if k != 'password'}


# ==============================================================================
# CACHÉ
# ==============================================================================

@dataclass
class CacheEntry:
    """Resultado cacheado de una operación de lectura."""
    key: str
    value: Any
    timestamp: float
    operation: str = ''

    def is_fresh(self, now: float, ttl: float) -> bool:
        return (now - self.timestamp) < ttl


# ==============================================================================
# NORMALIZACIÓN DEL DOCUMENTO
# ==============================================================================

def normalize_document(
    document: Optional[Dict[str, Any]],
    default_color: str = '#3B82F6',
    default_user_id: int = 1
) -> Dict[str, Any]:
    """
    Lleva un documento cargado (semilla, persistido o importado) al esquema canónico.

    - Tablas faltantes o que no son listas quedan como lista vacía
    - Registros sin id entero se descartan
    - Productos: quantity desde quantity | stock | qty
    - Categorías y usuarios: isActive=True por defecto
    - Categorías: color por defecto

    Args:
        document: Documento crudo
        default_color: Color para categorías sin color
        default_user_id: Usuario para movimientos sin responsable

    Returns:
        Documento nuevo con el esquema normalizado
    """
    document = document if isinstance(document, dict) else {}
    normalized: Dict[str, Any] = {
        k: v for k, v in document.items() if k not in TABLES
    }

    for table in TABLES:
        rows = document.get(table)
        if not isinstance(rows, list):
            rows = []

        clean: List[Dict[str, Any]] = []
        for row in rows:
            if not isinstance(row, dict) or to_int(row.get('id'), None) is None:
                continue
            if table == 'products':
                row = Product.from_dict(row).to_dict()
            elif table == 'categories':
                row = Category.from_dict(row, default_color).to_dict()
            elif table == 'movements':
                row = Movement.from_dict(row, default_user_id).to_dict()
            elif table == 'users':
                row = User.from_dict(row).to_dict()
            else:
                row = dict(row, id=to_int(row.get('id')))
            clean.append(row)
        normalized[table] = clean

    return normalized
