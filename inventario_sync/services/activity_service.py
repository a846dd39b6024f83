# ==============================================================================
# SERVICIO DE ACTIVIDAD RECIENTE
# ==============================================================================
# Registro de las últimas acciones del sistema (panel "Actividad reciente").
# Formatea mensajes y categoriza eventos: products, categories, movements,
# users. Solo se conservan las MAX_ACTIVITIES más recientes.
# ==============================================================================

from typing import Any, Dict, List, Optional

from inventario_sync.repositories.interfaces import IEntityRepository


class ActivityService:
    """
    Servicio para registro y consulta de actividad reciente.

    Se llama desde dentro de las transacciones de los demás servicios, así
    la actividad se guarda en el mismo documento y en la misma escritura.
    """

    # Acciones registradas
    PRODUCT_CREATED = 'Producto creado'
    PRODUCT_UPDATED = 'Producto actualizado'
    PRODUCT_DELETED = 'Producto eliminado'
    CATEGORY_CREATED = 'Categoría creada'
    CATEGORY_UPDATED = 'Categoría actualizada'
    CATEGORY_DELETED = 'Categoría eliminada'
    MOVEMENT_CREATED = 'Movimiento registrado'
    MOVEMENT_DELETED = 'Movimiento revertido'
    USER_CREATED = 'Usuario creado'
    USER_UPDATED = 'Usuario actualizado'
    USER_DELETED = 'Usuario desactivado'
    REPORT_GENERATED = 'Reporte generado'

    def __init__(self, repo: IEntityRepository, max_activities: int = 20):
        """
        Args:
            repo: Repositorio de entidades
            max_activities: Cantidad máxima de actividades conservadas
        """
        self.repo = repo
        self.max_activities = max_activities

    # =========================================================================
    # REGISTRO DE EVENTOS
    # =========================================================================

    def log(
        self,
        action: str,
        item: str,
        user: Optional[str] = None,
        category: str = 'system',
        details: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Registra una actividad genérica.

        Args:
            action: Acción realizada (ej. 'Producto creado')
            item: Elemento afectado (ej. nombre del producto)
            user: Quién realizó la acción ('Sistema' si no se conoce)
            category: products | categories | movements | users | reports | system
            details: Texto libre adicional
        """
        timestamp = self.repo.now()
        activity = self.repo.create('activities', {
            'action': action,
            'item': item,
            'user': user or 'Sistema',
            'category': category,
            'details': details,
            'date': timestamp[:10],
            'time': timestamp[11:16],
        })
        self._trim()
        return activity

    def _trim(self) -> None:
        activities = self.repo.get_all('activities')
        if len(activities) > self.max_activities:
            self.repo.replace_table('activities', activities[-self.max_activities:])

    def log_product(self, action: str, product: Dict[str, Any], user: Optional[str] = None) -> None:
        self.log(action, product.get('name', ''), user, 'products')

    def log_category(self, action: str, category: Dict[str, Any], user: Optional[str] = None) -> None:
        self.log(action, category.get('name', ''), user, 'categories')

    def log_user(self, action: str, target: Dict[str, Any], user: Optional[str] = None) -> None:
        self.log(action, target.get('name') or target.get('username', ''), user, 'users')

    def log_movement(
        self,
        action: str,
        movement: Dict[str, Any],
        product_name: Optional[str] = None,
        user: Optional[str] = None
    ) -> None:
        """
        Registra un movimiento de stock.

        El detalle incluye tipo y cantidad: "Tipo: salida, Cantidad: 4".
        """
        details = f"Tipo: {movement.get('type')}, Cantidad: {movement.get('quantity')}"
        self.log(
            f"{action}: {movement.get('type')}",
            product_name or f"Producto #{movement.get('productId')}",
            user,
            'movements',
            details
        )

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_recent(self, limit: Optional[int] = None, category: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Actividades más recientes primero.

        Args:
            limit: Máximo a devolver (por defecto todas las conservadas)
            category: Filtrar por categoría
        """
        activities = list(reversed(self.repo.get_all('activities')))
        if category:
            activities = [a for a in activities if a.get('category') == category]
        if limit is not None:
            activities = activities[:limit]
        return activities

    def clear(self) -> None:
        """Elimina todas las actividades."""
        self.repo.replace_table('activities', [])
