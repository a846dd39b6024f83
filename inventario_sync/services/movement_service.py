# ==============================================================================
# MOTOR DE MOVIMIENTOS DE STOCK
# ==============================================================================
# Un movimiento y el ajuste del stock de su producto son UNA sola operación:
# ambos cambios se aplican dentro de la misma transacción del repositorio y
# se persisten con un único guardado. Si algo falla, no queda ninguno.
#
# Reglas:
#   entrada → quantity + n          salida → quantity - n
#   El stock nunca queda negativo: una salida mayor al stock se recorta a 0,
#   salvo que se pida validar stock disponible (enforce_stock / préstamo).
#   Borrar un movimiento revierte su efecto (también recortado a 0).
# ==============================================================================

from typing import Any, Dict, List, Optional

from inventario_sync.errors import ValidationError
from inventario_sync.models import Movement, MovementType, strip_password, to_float, to_int
from inventario_sync.performance_logger import profile_function
from inventario_sync.repositories.entity_repository import parse_timestamp
from inventario_sync.services.base_service import EntityService
from inventario_sync.services.cache_service import invalidates_cache


# Tipos del formulario que se traducen a entrada/salida.
# El préstamo siempre exige stock disponible.
TYPE_ALIASES = {
    'prestamo': (MovementType.SALIDA.value, True),
    'devolucion': (MovementType.ENTRADA.value, False),
}

VALID_TYPES = frozenset(t.value for t in MovementType)


def resolve_movement_type(movement_type: Any) -> tuple:
    """
    Traduce el tipo recibido a (tipo_canónico, exige_stock).

    Un tipo desconocido se devuelve tal cual para que la validación lo rechace.
    """
    value = str(movement_type or '').strip().lower()
    if value in TYPE_ALIASES:
        return TYPE_ALIASES[value]
    return value, False


class MovementService(EntityService):
    """
    Motor de movimientos de stock.

    Uso:
        movements.create_movement(product_id=1, movement_type='salida',
                                  quantity=4, reason='Juan Pérez')
        movements.delete_movement(movement_id)   # revierte el stock
    """

    table = 'movements'

    def __init__(
        self,
        repo,
        cache=None,
        activity_service=None,
        default_user_id: int = 1,
        enforce_stock: bool = False
    ):
        """
        Args:
            default_user_id: Responsable asignado cuando no se indica userId
            enforce_stock: Si True, toda salida mayor al stock se rechaza
        """
        super().__init__(repo, cache, activity_service)
        self.default_user_id = default_user_id
        self.enforce_stock = enforce_stock

    # =========================================================================
    # VALIDACIÓN
    # =========================================================================

    def validate_movement(self, data: Dict[str, Any]) -> List[str]:
        """
        Valida un movimiento ya traducido a entrada/salida.

        Returns:
            Lista de mensajes de error (vacía si es válido)
        """
        errors = []

        if to_int(data.get('productId'), None) is None:
            errors.append('El producto es requerido')

        if data.get('type') not in VALID_TYPES:
            errors.append("El tipo debe ser 'entrada' o 'salida'")

        quantity = to_float(data.get('quantity'), 0.0)
        if quantity <= 0 or not quantity.is_integer():
            errors.append('La cantidad debe ser un número entero mayor a 0')

        if len(str(data.get('reason') or '').strip()) < 3:
            errors.append('El motivo o responsable debe tener al menos 3 caracteres')

        return errors

    def _prepare(self, data: Dict[str, Any]) -> tuple:
        fields = dict(data)
        fields['type'], alias_enforces = resolve_movement_type(fields.get('type'))
        errors = self.validate_movement(fields)
        if errors:
            raise ValidationError(errors[0], errors)
        fields['reason'] = str(fields['reason']).strip()
        if to_int(fields.get('userId'), None) is None:
            fields['userId'] = self.default_user_id
        return fields, alias_enforces

    # =========================================================================
    # NÚCLEO: APLICAR Y REVERTIR
    # =========================================================================

    def _apply(self, fields: Dict[str, Any], enforce: bool, user: Optional[str]) -> Dict[str, Any]:
        """Crea el movimiento y ajusta el producto. Debe llamarse dentro de una transacción."""
        record = Movement.from_dict(fields, self.default_user_id)
        product = self.repo.get_by_id('products', record.productId)

        if (
            product is not None
            and enforce
            and record.type == MovementType.SALIDA.value
            and record.quantity > product.get('quantity', 0)
        ):
            raise ValidationError(
                f'Stock insuficiente para "{product.get("name")}". '
                f'Disponible: {product.get("quantity", 0)}'
            )

        movement = self.repo.create(self.table, record.to_dict())

        if product is None:
            print(f"[MOVIMIENTO] Producto #{record.productId} no existe, stock sin ajustar")
        else:
            new_quantity = max(0, product.get('quantity', 0) + record.signed_quantity)
            self.repo.update('products', product['id'], {'quantity': new_quantity})

        if self.activity_service:
            self.activity_service.log_movement(
                self.activity_service.MOVEMENT_CREATED, movement,
                product.get('name') if product else None, user
            )
        return movement

    @profile_function(name='Registrar movimiento')
    @invalidates_cache
    def create_movement(
        self,
        product_id: Any,
        movement_type: str,
        quantity: Any,
        reason: str,
        user_id: Any = None,
        notes: str = '',
        enforce_stock: Optional[bool] = None,
        user: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Registra un movimiento y ajusta el stock del producto atómicamente.

        Args:
            product_id: Producto afectado (si no existe, el movimiento se
                registra igual y no se ajusta nada)
            movement_type: 'entrada' | 'salida' (o 'prestamo' / 'devolucion')
            quantity: Entero > 0
            reason: Motivo o persona responsable (>= 3 caracteres)
            user_id: Usuario responsable (por defecto default_user_id)
            enforce_stock: Rechazar salidas mayores al stock; None usa la
                configuración del servicio
            user: Nombre para el registro de actividad

        Returns:
            El movimiento creado

        Raises:
            ValidationError: Datos inválidos o stock insuficiente (si se valida)
        """
        fields, alias_enforces = self._prepare({
            'productId': product_id,
            'type': movement_type,
            'quantity': quantity,
            'reason': reason,
            'userId': user_id,
            'notes': notes or '',
        })
        enforce = alias_enforces or (self.enforce_stock if enforce_stock is None else enforce_stock)

        with self.repo.transaction():
            return self._apply(fields, enforce, user)

    @profile_function(name='Registrar movimientos en lote')
    @invalidates_cache
    def create_movements_batch(
        self,
        items: List[Dict[str, Any]],
        movement_type: str,
        reason: str,
        user_id: Any = None,
        enforce_stock: Optional[bool] = None,
        user: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Registra varios movimientos del mismo tipo (ej. préstamo de varios
        productos a una persona). Se aplican todos o ninguno.

        Args:
            items: [{'productId': 1, 'quantity': 2}, ...]
        """
        if not items:
            raise ValidationError('Debes seleccionar al menos un producto')

        prepared = []
        for item in items:
            prepared.append(self._prepare({
                'productId': item.get('productId'),
                'type': movement_type,
                'quantity': item.get('quantity'),
                'reason': reason,
                'userId': user_id,
                'notes': item.get('notes', ''),
            }))

        created = []
        with self.repo.transaction():
            for fields, alias_enforces in prepared:
                enforce = alias_enforces or (
                    self.enforce_stock if enforce_stock is None else enforce_stock
                )
                created.append(self._apply(fields, enforce, user))
        return created

    def delete_movement(self, movement_id: Any, user: Optional[str] = None) -> Dict[str, Any]:
        """
        Elimina un movimiento revirtiendo su efecto sobre el stock.

        Raises:
            NotFoundError: Si el movimiento no existe
        """
        return self.delete(movement_id, user)

    def _before_delete(self, record: Dict[str, Any]) -> None:
        movement = Movement.from_dict(record, self.default_user_id)
        product = self.repo.get_by_id('products', movement.productId)
        if product is None:
            return
        new_quantity = max(0, product.get('quantity', 0) - movement.signed_quantity)
        self.repo.update('products', product['id'], {'quantity': new_quantity})

    def _after_delete(self, record: Dict[str, Any], user: Optional[str]) -> None:
        if self.activity_service:
            product = self.repo.get_by_id('products', record.get('productId'))
            self.activity_service.log_movement(
                self.activity_service.MOVEMENT_DELETED, record,
                product.get('name') if product else None, user
            )

    # =========================================================================
    # LECTURAS COMBINADAS
    # =========================================================================

    def _with_details(self) -> List[Dict[str, Any]]:
        products = {p['id']: p for p in self.repo.get_all('products')}
        users = {u['id']: strip_password(u) for u in self.repo.get_all('users')}

        movements = self.repo.get_all(self.table)
        movements.sort(
            key=lambda m: (parse_timestamp(m.get('createdAt')) or 0, m.get('id', 0)),
            reverse=True
        )
        for movement in movements:
            movement['product'] = products.get(movement.get('productId'))
            movement['user'] = users.get(movement.get('userId'))
        return movements

    def get_movements_with_details(self) -> List[Dict[str, Any]]:
        """
        Movimientos más recientes primero, con producto y usuario embebidos
        (None si fueron eliminados; el usuario nunca incluye password).
        """
        return self._read('movements_with_details', {}, self._with_details)

    def search_movements(
        self,
        movement_type: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        query: str = '',
        product_id: Any = None
    ) -> List[Dict[str, Any]]:
        """
        Filtra movimientos por tipo, rango de fechas (ISO, inclusive),
        producto y texto (motivo, notas o nombre del producto).
        """
        text = (query or '').strip().lower()
        product = to_int(product_id, None)
        start = parse_timestamp(date_from)
        end = parse_timestamp(date_to)
        if end is not None and date_to and len(date_to.strip()) == 10:
            end += 24 * 60 * 60 - 0.001  # fecha sin hora: incluir el día completo

        params = {
            'type': movement_type, 'from': date_from, 'to': date_to,
            'q': text, 'product': product,
        }

        def _load():
            matches = []
            for movement in self._with_details():
                if movement_type and movement.get('type') != movement_type:
                    continue
                if product is not None and movement.get('productId') != product:
                    continue
                created = parse_timestamp(movement.get('createdAt'))
                if start is not None and (created is None or created < start):
                    continue
                if end is not None and (created is None or created > end):
                    continue
                if text:
                    name = (movement.get('product') or {}).get('name', '')
                    haystack = f"{movement.get('reason', '')} {movement.get('notes', '')} {name}".lower()
                    if text not in haystack:
                        continue
                matches.append(movement)
            return matches

        return self._read('search_movements', params, _load)
