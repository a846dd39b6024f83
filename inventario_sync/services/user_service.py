# ==============================================================================
# SERVICIO DE USUARIOS
# ==============================================================================
# Centraliza la lógica de negocio de usuarios: validación, roles,
# autenticación y borrado lógico.
#
# REGLAS:
# - La contraseña NUNCA sale de este servicio: toda lectura pasa por
#   strip_password()
# - Siempre debe quedar al menos un administrador activo
# - Los usuarios se desactivan (isActive=False), no se eliminan
# ==============================================================================

import re
from typing import Any, Dict, List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from inventario_sync.errors import ValidationError
from inventario_sync.models import User, UserRole, strip_password, to_bool
from inventario_sync.services.base_service import EntityService
from inventario_sync.services.cache_service import invalidates_cache


EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

USERNAME_MIN_LENGTH = 3
PASSWORD_MIN_LENGTH = 6

# Alias aceptados al normalizar roles
ROLE_ALIASES = {
    'administrador': UserRole.ADMIN.value,
    'administrator': UserRole.ADMIN.value,
    'editor': UserRole.EDITOR.value,
    'viewer': UserRole.VIEWER.value,
    'lector': UserRole.VIEWER.value,
}


def normalize_role(role: Any) -> Optional[str]:
    """
    Normaliza un rol recibido ('Admin', 'Administrador', ...).

    Returns:
        Rol canónico o None si no es reconocible
    """
    value = str(role or '').strip().lower()
    if value in {r.value for r in UserRole}:
        return value
    return ROLE_ALIASES.get(value)


def is_hashed(password: str) -> bool:
    return password.startswith('pbkdf2:') or password.startswith('scrypt:')


class UserService(EntityService):
    """
    Servicio para gestión de usuarios.

    Responsabilidades:
    - Autenticación (usuario o email + contraseña, solo usuarios activos)
    - CRUD de usuarios con validación de formulario
    - Protección del último administrador activo
    - Helpers de permisos por rol
    """

    table = 'users'

    VALID_ROLES = frozenset(r.value for r in UserRole)

    def __init__(self, repo, cache=None, activity_service=None, hash_passwords: bool = False):
        """
        Args:
            hash_passwords: Si True, las contraseñas nuevas se guardan como
                hash de werkzeug; si False, tal cual (compatibles con la semilla)
        """
        super().__init__(repo, cache, activity_service)
        self.hash_passwords = hash_passwords

    # =========================================================================
    # PERMISOS
    # =========================================================================

    @staticmethod
    def is_admin(user: Optional[Dict[str, Any]]) -> bool:
        return bool(user) and user.get('role') == UserRole.ADMIN.value

    @staticmethod
    def can_edit(user: Optional[Dict[str, Any]]) -> bool:
        return bool(user) and user.get('role') in (UserRole.ADMIN.value, UserRole.EDITOR.value)

    @staticmethod
    def is_viewer(user: Optional[Dict[str, Any]]) -> bool:
        return bool(user) and user.get('role') == UserRole.VIEWER.value

    # =========================================================================
    # VALIDACIÓN
    # =========================================================================

    def validate_user(
        self,
        data: Dict[str, Any],
        editing: bool = False,
        exclude_id: Optional[int] = None
    ) -> List[str]:
        """
        Valida datos de formulario de usuario.

        Args:
            data: Campos recibidos
            editing: En edición la contraseña es opcional y solo se validan
                los campos presentes
            exclude_id: Id propio (para la verificación de username único)

        Returns:
            Lista de mensajes de error
        """
        errors = []

        if not editing or 'name' in data:
            if not str(data.get('name') or '').strip():
                errors.append('El nombre es requerido')

        if not editing or 'username' in data:
            username = str(data.get('username') or '').strip()
            if len(username) < USERNAME_MIN_LENGTH:
                errors.append(
                    f'El nombre de usuario debe tener al menos {USERNAME_MIN_LENGTH} caracteres'
                )
            elif self._username_taken(username, exclude_id):
                errors.append(f'El nombre de usuario "{username}" ya existe')

        if not editing or 'email' in data:
            if not EMAIL_RE.match(str(data.get('email') or '').strip()):
                errors.append('Email inválido')

        password = data.get('password')
        if not editing and not password:
            errors.append('La contraseña es requerida')
        elif password and len(str(password)) < PASSWORD_MIN_LENGTH:
            errors.append(
                f'La contraseña debe tener al menos {PASSWORD_MIN_LENGTH} caracteres'
            )

        if 'role' in data and normalize_role(data.get('role')) is None:
            errors.append("El rol debe ser 'admin', 'editor' o 'viewer'")

        return errors

    def _username_taken(self, username: str, exclude_id: Optional[int]) -> bool:
        wanted = username.lower()
        return any(
            u.get('username', '').lower() == wanted and u.get('id') != exclude_id
            for u in self.repo.get_all(self.table)
        )

    def _check(self, data: Dict[str, Any], editing: bool = False, exclude_id: Optional[int] = None) -> None:
        errors = self.validate_user(data, editing, exclude_id)
        if errors:
            raise ValidationError(errors[0], errors)

    def _active_admins(self) -> List[Dict[str, Any]]:
        return [
            u for u in self.repo.get_all(self.table)
            if u.get('role') == UserRole.ADMIN.value and u.get('isActive', True)
        ]

    def _guard_last_admin(self, user: Dict[str, Any]) -> None:
        admins = self._active_admins()
        if len(admins) == 1 and admins[0]['id'] == user['id']:
            raise ValidationError('Debe existir al menos un administrador activo')

    # =========================================================================
    # LECTURAS (sin contraseña)
    # =========================================================================

    def get_users(self, include_inactive: bool = True) -> List[Dict[str, Any]]:
        users = self._read(
            'users', {},
            lambda: [strip_password(u) for u in self.repo.get_all(self.table)]
        )
        if include_inactive:
            return users
        return [u for u in users if u.get('isActive', True)]

    def get_user(self, user_id: Any) -> Optional[Dict[str, Any]]:
        return self._read(
            'users_by_id', {'id': user_id},
            lambda: strip_password(self.repo.get_by_id(self.table, user_id))
        )

    def get_all(self) -> List[Dict[str, Any]]:
        return self.get_users()

    def get_by_id(self, record_id: Any) -> Optional[Dict[str, Any]]:
        return self.get_user(record_id)

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def _prepare_password(self, password: str) -> str:
        if self.hash_passwords and not is_hashed(password):
            return generate_password_hash(password)
        return password

    @invalidates_cache
    def create_user(self, data: Dict[str, Any], actor: Optional[str] = None) -> Dict[str, Any]:
        """
        Crea un usuario.

        Raises:
            ValidationError: Datos inválidos o username repetido
        """
        self._check(data)
        fields = dict(data)
        fields['role'] = normalize_role(data.get('role')) or UserRole.VIEWER.value
        fields['isActive'] = True
        record = User.from_dict(fields)
        record.username = record.username.strip()
        record.email = record.email.strip()
        record.name = record.name.strip()
        record.password = self._prepare_password(record.password)

        with self.repo.transaction():
            user = self.repo.create(self.table, record.to_dict())
            if self.activity_service:
                self.activity_service.log_user(self.activity_service.USER_CREATED, user, actor)
        print(f"[USUARIOS] Usuario creado: {user['username']} ({user['role']})")
        return strip_password(user)

    @invalidates_cache
    def update_user(
        self,
        user_id: Any,
        data: Dict[str, Any],
        actor: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Actualiza un usuario. Contraseña vacía = se conserva la actual.

        Raises:
            ValidationError: Datos inválidos o se quitaría el último admin
            NotFoundError: Si no existe
        """
        updates = dict(data)
        if not updates.get('password'):
            updates.pop('password', None)

        with self.repo.transaction():
            current = self.require(user_id)
            self._check(updates, editing=True, exclude_id=current['id'])

            if 'role' in updates:
                updates['role'] = normalize_role(updates['role'])
                if updates['role'] != UserRole.ADMIN.value:
                    self._guard_last_admin(current)
            if 'isActive' in updates and not to_bool(updates['isActive']):
                self._guard_last_admin(current)
            if 'password' in updates:
                updates['password'] = self._prepare_password(str(updates['password']))

            merged = User.from_dict(dict(current, **updates)).to_dict()
            changes = {k: merged[k] for k in updates if k in merged}
            user = self.repo.update(self.table, current['id'], changes)
            if self.activity_service:
                self.activity_service.log_user(self.activity_service.USER_UPDATED, user, actor)
        return strip_password(user)

    def delete_user(self, user_id: Any, actor: Optional[str] = None) -> Dict[str, Any]:
        """Desactiva el usuario (isActive=False)."""
        return strip_password(self.delete(user_id, actor))

    def _before_delete(self, record: Dict[str, Any]) -> None:
        if record.get('role') == UserRole.ADMIN.value:
            self._guard_last_admin(record)

    def _after_delete(self, record: Dict[str, Any], user: Optional[str]) -> None:
        if self.activity_service:
            self.activity_service.log_user(self.activity_service.USER_DELETED, record, user)

    # =========================================================================
    # AUTENTICACIÓN
    # =========================================================================

    def authenticate(self, identifier: str, password: str) -> Optional[Dict[str, Any]]:
        """
        Verifica credenciales.

        Args:
            identifier: Nombre de usuario o email
            password: Contraseña en texto plano

        Returns:
            Usuario sin password si es válido y está activo, None si no
        """
        wanted = str(identifier or '').strip().lower()
        if not wanted or not password:
            return None

        for user in self.repo.get_all(self.table):
            if wanted not in (user.get('username', '').lower(), user.get('email', '').lower()):
                continue
            if not user.get('isActive', True):
                return None

            stored = user.get('password', '')
            # Soportar tanto hash como texto plano
            if is_hashed(stored):
                if not check_password_hash(stored, password):
                    return None
            elif stored != password:
                return None
            return strip_password(user)
        return None
