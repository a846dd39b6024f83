# ==============================================================================
# SERVICIO DE REPORTES Y PANEL
# ==============================================================================
# Estadísticas del panel principal, reportes guardados (inventory,
# movements, lowstock) y exportación CSV de movimientos y reportes.
# ==============================================================================

import copy
import csv
import io
from typing import Any, Dict, List, Optional

from inventario_sync.errors import NotFoundError, ValidationError
from inventario_sync.repositories.entity_repository import format_timestamp, parse_timestamp
from inventario_sync.services.base_service import EntityService
from inventario_sync.services.cache_service import invalidates_cache


REPORT_TYPES = ('inventory', 'movements', 'lowstock')

RECENT_DAYS = 7


class ReportService(EntityService):
    """
    Servicio de reportes.

    Se apoya en InventoryService y MovementService para las lecturas
    combinadas, de modo que los reportes ven exactamente lo mismo que la UI.
    """

    table = 'reports'

    def __init__(
        self, repo, inventory_service, movement_service, cache=None,
        activity_service=None, default_user_id: int = 1
    ):
        super().__init__(repo, cache, activity_service)
        self.inventory_service = inventory_service
        self.movement_service = movement_service
        # Autor de los reportes generados sin usuario
        self.default_user_id = default_user_id

    # =========================================================================
    # PANEL PRINCIPAL
    # =========================================================================

    def get_dashboard_stats(self) -> Dict[str, Any]:
        """
        Returns:
            {totalProducts, totalValue, lowStockItems, totalCategories,
             recentMovements (últimos 7 días), lastUpdated}
        """
        def _load():
            products = self.repo.get_all('products')
            categories = self.repo.get_all('categories')
            movements = self.repo.get_all('movements')

            now = self.repo.clock()
            since = now - RECENT_DAYS * 24 * 60 * 60
            recent = [
                m for m in movements
                if (parse_timestamp(m.get('createdAt')) or 0) >= since
            ]
            return {
                'totalProducts': len(products),
                'totalValue': round(sum(p.get('price', 0) * p.get('quantity', 0) for p in products), 2),
                'lowStockItems': sum(1 for p in products if p.get('quantity', 0) <= p.get('minStock', 0)),
                'totalCategories': sum(1 for c in categories if c.get('isActive', True)),
                'recentMovements': len(recent),
                'lastUpdated': format_timestamp(now),
            }
        return self._read('dashboard_stats', {}, _load)

    # =========================================================================
    # REPORTES GUARDADOS
    # =========================================================================

    def get_reports(self) -> List[Dict[str, Any]]:
        return self.get_all()

    @invalidates_cache
    def generate_report(
        self,
        report_type: str,
        user_id: Any = None,
        user: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Genera y guarda un reporte con una foto de los datos actuales.

        Args:
            report_type: 'inventory' | 'movements' | 'lowstock'

        Raises:
            ValidationError: Tipo de reporte no válido
        """
        if report_type == 'inventory':
            data = self.inventory_service.get_products_with_category()
        elif report_type == 'movements':
            data = self.movement_service.get_movements_with_details()
        elif report_type == 'lowstock':
            data = [
                p for p in self.inventory_service.get_products_with_category()
                if p.get('quantity', 0) <= p.get('minStock', 0)
            ]
        else:
            raise ValidationError(
                f"Tipo de reporte no válido: '{report_type}'. "
                f"Opciones: {', '.join(REPORT_TYPES)}"
            )

        with self.repo.transaction():
            report = self.repo.create(self.table, {
                'name': f'Reporte {report_type}',
                'type': report_type,
                'userId': user_id if user_id is not None else self.default_user_id,
                'status': 'completed',
                'data': copy.deepcopy(data),
            })
            if self.activity_service:
                self.activity_service.log(
                    self.activity_service.REPORT_GENERATED, report['name'], user, 'reports'
                )
        return report

    # =========================================================================
    # EXPORTACIÓN CSV
    # =========================================================================

    MOVEMENT_COLUMNS = (
        'id', 'createdAt', 'type', 'quantity', 'productId', 'productName',
        'reason', 'userId', 'userName', 'notes'
    )

    PRODUCT_COLUMNS = (
        'id', 'code', 'name', 'categoryId', 'categoryName', 'quantity',
        'minStock', 'price', 'status'
    )

    @staticmethod
    def _to_csv(columns, rows) -> str:
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=columns, extrasaction='ignore')
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
        return output.getvalue()

    @classmethod
    def _flatten_movement(cls, movement: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(movement)
        row['productName'] = (movement.get('product') or {}).get('name', 'Producto eliminado')
        user = movement.get('user') or {}
        row['userName'] = user.get('name') or user.get('username', '')
        return row

    @classmethod
    def _flatten_product(cls, product: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(product)
        row['categoryName'] = (product.get('category') or {}).get('name', 'Sin categoría')
        return row

    def export_movements_csv(self, movements: Optional[List[Dict[str, Any]]] = None) -> str:
        """CSV de movimientos (por defecto todos, más recientes primero)."""
        if movements is None:
            movements = self.movement_service.get_movements_with_details()
        return self._to_csv(self.MOVEMENT_COLUMNS, [self._flatten_movement(m) for m in movements])

    def export_report_csv(self, report_id: Any) -> str:
        """
        CSV de un reporte guardado.

        Raises:
            NotFoundError: Si el reporte no existe
        """
        report = self.repo.get_by_id(self.table, report_id)
        if report is None:
            raise NotFoundError(self.table, report_id)

        rows = report.get('data') or []
        if report.get('type') == 'movements':
            return self.export_movements_csv(rows)
        return self._to_csv(self.PRODUCT_COLUMNS, [self._flatten_product(p) for p in rows])
