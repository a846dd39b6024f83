# ==============================================================================
# SERVICIO DE CATEGORÍAS
# ==============================================================================
# Las categorías se eliminan con borrado lógico (isActive=False): los
# productos que las referencian siguen apuntando a un registro existente.
# ==============================================================================

from typing import Any, Dict, List, Optional

from inventario_sync.errors import ValidationError
from inventario_sync.models import Category
from inventario_sync.services.base_service import EntityService
from inventario_sync.services.cache_service import invalidates_cache


class CategoryService(EntityService):
    """Servicio para gestión de categorías."""

    table = 'categories'

    MAX_DESCRIPTION = 200

    def __init__(self, repo, cache=None, activity_service=None, default_color: str = '#3B82F6'):
        super().__init__(repo, cache, activity_service)
        self.default_color = default_color

    def validate_category(self, data: Dict[str, Any], partial: bool = False) -> List[str]:
        errors = []
        if not partial or 'name' in data:
            if not str(data.get('name') or '').strip():
                errors.append('El nombre de la categoría es requerido')
        if len(str(data.get('description') or '')) > self.MAX_DESCRIPTION:
            errors.append(f'La descripción no puede superar {self.MAX_DESCRIPTION} caracteres')
        return errors

    def _check(self, data: Dict[str, Any], partial: bool = False) -> None:
        errors = self.validate_category(data, partial)
        if errors:
            raise ValidationError(errors[0], errors)

    def get_categories(self, include_inactive: bool = False) -> List[Dict[str, Any]]:
        """
        Categorías para listados.

        Por convención las inactivas (borradas) se filtran aquí, no en el
        repositorio: get_all() sigue devolviéndolas.
        """
        categories = self.get_all()
        if include_inactive:
            return categories
        return [c for c in categories if c.get('isActive', True)]

    @invalidates_cache
    def create_category(self, data: Dict[str, Any], user: Optional[str] = None) -> Dict[str, Any]:
        self._check(data)
        fields = Category.from_dict(data, self.default_color).to_dict()
        fields['name'] = fields['name'].strip()
        fields['isActive'] = True

        with self.repo.transaction():
            category = self.repo.create(self.table, fields)
            if self.activity_service:
                self.activity_service.log_category(
                    self.activity_service.CATEGORY_CREATED, category, user
                )
        return category

    @invalidates_cache
    def update_category(
        self,
        category_id: Any,
        data: Dict[str, Any],
        user: Optional[str] = None
    ) -> Dict[str, Any]:
        self._check(data, partial=True)
        with self.repo.transaction():
            current = self.require(category_id)
            merged = Category.from_dict(dict(current, **data), self.default_color).to_dict()
            changes = {k: merged[k] for k in data if k in merged}
            category = self.repo.update(self.table, current['id'], changes)
            if self.activity_service:
                self.activity_service.log_category(
                    self.activity_service.CATEGORY_UPDATED, category, user
                )
        return category

    def delete_category(self, category_id: Any, user: Optional[str] = None) -> Dict[str, Any]:
        """Desactiva la categoría (queda en la tabla con isActive=False)."""
        return self.delete(category_id, user)

    def _after_delete(self, record: Dict[str, Any], user: Optional[str]) -> None:
        if self.activity_service:
            self.activity_service.log_category(
                self.activity_service.CATEGORY_DELETED, record, user
            )
