# ==============================================================================
# SERVICIO DE INVENTARIO
# ==============================================================================
# Centraliza la lógica de negocio de productos: CRUD, validaciones, stock
# bajo, búsqueda y lecturas con su categoría.
#
# El stock (quantity) se fija al crear el producto; después solo lo cambia
# el motor de movimientos (MovementService).
# ==============================================================================

from typing import Any, Dict, List, Optional

from inventario_sync.errors import ValidationError
from inventario_sync.models import Product, to_float, to_int
from inventario_sync.services.base_service import EntityService
from inventario_sync.services.cache_service import invalidates_cache


class InventoryService(EntityService):
    """
    Servicio para gestión de productos.

    Responsabilidades:
    - CRUD de productos (borrado físico)
    - Validación de datos de formulario
    - Lecturas combinadas producto + categoría
    - Productos con stock bajo y búsqueda
    """

    table = 'products'

    # Campos que update_product no acepta: el stock es del motor de movimientos
    STOCK_FIELDS = Product.QUANTITY_ALIASES

    # =========================================================================
    # VALIDACIÓN
    # =========================================================================

    def validate_product(self, data: Dict[str, Any], partial: bool = False) -> List[str]:
        """
        Valida datos de un producto.

        Args:
            data: Campos recibidos
            partial: True en edición (solo se validan los campos presentes)

        Returns:
            Lista de mensajes de error (vacía si es válido)
        """
        errors = []

        if not partial or 'name' in data:
            if len(str(data.get('name') or '').strip()) < 2:
                errors.append('El nombre debe tener al menos 2 caracteres')

        if not partial or 'categoryId' in data:
            if to_int(data.get('categoryId'), None) is None:
                errors.append('La categoría es requerida')

        for field_name, label in (('quantity', 'La cantidad'), ('minStock', 'El stock mínimo')):
            if field_name in data and to_int(data.get(field_name), -1) < 0:
                errors.append(f'{label} debe ser un número mayor o igual a 0')

        if 'price' in data and to_float(data.get('price'), -1.0) < 0:
            errors.append('El precio debe ser un número mayor o igual a 0')

        return errors

    def _check(self, data: Dict[str, Any], partial: bool = False) -> None:
        errors = self.validate_product(data, partial)
        if errors:
            raise ValidationError(errors[0], errors)

    # =========================================================================
    # LECTURAS
    # =========================================================================

    def get_products(self) -> List[Dict[str, Any]]:
        """Todos los productos."""
        return self.get_all()

    def get_product(self, product_id: Any) -> Optional[Dict[str, Any]]:
        """Producto o None."""
        return self.get_by_id(product_id)

    def _with_category(self) -> List[Dict[str, Any]]:
        categories = {c['id']: c for c in self.repo.get_all('categories')}
        result = []
        for product in self.repo.get_all('products'):
            # Categoría borrada: None, quien consume muestra "Sin categoría"
            product['category'] = categories.get(product.get('categoryId'))
            result.append(product)
        return result

    def get_products_with_category(self) -> List[Dict[str, Any]]:
        """Productos con su categoría embebida (o None si no existe)."""
        return self._read('products_with_category', {}, self._with_category)

    def get_low_stock(self) -> List[Dict[str, Any]]:
        """Productos con quantity <= minStock."""
        def _load():
            return [
                p for p in self.repo.get_all('products')
                if Product.from_dict(p).is_low_stock
            ]
        return self._read('low_stock', {}, _load)

    def search_products(
        self,
        query: str = '',
        category_id: Any = None,
        low_stock_only: bool = False
    ) -> List[Dict[str, Any]]:
        """
        Busca productos por texto (nombre, código, descripción, proveedor)
        y/o categoría.
        """
        text = (query or '').strip().lower()
        category = to_int(category_id, None)
        params = {'q': text, 'category': category, 'low': low_stock_only}

        def _load():
            matches = []
            for product in self._with_category():
                if category is not None and product.get('categoryId') != category:
                    continue
                if low_stock_only and product.get('quantity', 0) > product.get('minStock', 0):
                    continue
                if text:
                    haystack = ' '.join(
                        str(product.get(f) or '') for f in ('name', 'code', 'description', 'supplier')
                    ).lower()
                    if text not in haystack:
                        continue
                matches.append(product)
            return matches

        return self._read('search_products', params, _load)

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    @invalidates_cache
    def create_product(self, data: Dict[str, Any], user: Optional[str] = None) -> Dict[str, Any]:
        """
        Crea un producto con su stock inicial.

        Raises:
            ValidationError: Si los datos no son válidos
        """
        self._check(data)
        fields = Product.from_dict(data).to_dict()
        fields['name'] = fields['name'].strip()

        with self.repo.transaction():
            product = self.repo.create(self.table, fields)
            if self.activity_service:
                self.activity_service.log_product(
                    self.activity_service.PRODUCT_CREATED, product, user
                )
        print(f"[INVENTARIO] Producto creado: #{product['id']} {product['name']}")
        return product

    @invalidates_cache
    def update_product(
        self,
        product_id: Any,
        data: Dict[str, Any],
        user: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Actualiza datos de un producto (excepto el stock).

        Raises:
            ValidationError: Si los datos no son válidos
            NotFoundError: Si el producto no existe
        """
        updates = {k: v for k, v in data.items() if k not in self.STOCK_FIELDS}
        self._check(updates, partial=True)

        with self.repo.transaction():
            current = self.require(product_id)
            merged = Product.from_dict(dict(current, **updates)).to_dict()
            changes = {k: merged[k] for k in updates if k in merged}
            product = self.repo.update(self.table, current['id'], changes)
            if self.activity_service:
                self.activity_service.log_product(
                    self.activity_service.PRODUCT_UPDATED, product, user
                )
        return product

    def delete_product(self, product_id: Any, user: Optional[str] = None) -> Dict[str, Any]:
        """Elimina físicamente un producto (sus movimientos quedan huérfanos)."""
        return self.delete(product_id, user)

    def _after_delete(self, record: Dict[str, Any], user: Optional[str]) -> None:
        if self.activity_service:
            self.activity_service.log_product(
                self.activity_service.PRODUCT_DELETED, record, user
            )
