import logging
from typing import Dict, FrozenSet, Iterable, List, Set, Union

from app.config.permissions_config import PermissionName, SUPER_ADMIN_ROLE
from app.core.exceptions import DependencyUnavailable, ValidationFailed
from app.database.store import RecordStore, Tables
from app.modules.roles.schemas import Permission, Role
from app.modules.roles.service import holds_role, parse_records, sort_permissions, unique_ids

logger = logging.getLogger(__name__)


class PermissionResolver:
    """
    Computes a user's effective permission set: the union of the permissions of
    every role in an active assignment and every active direct grant.

    Read-only and stateless apart from the injected store, so one instance can
    serve concurrent requests. Missing rows are never an error: a user with no
    assignments has no permissions, and references to deleted roles or
    permissions are skipped.
    """

    def __init__(self, store: RecordStore, super_admin_role: str = SUPER_ADMIN_ROLE):
        self.store = store
        self.super_admin_role = super_admin_role

    def get_user_roles(self, user_id: str) -> List[Role]:
        """Roles held through active assignments."""
        assignments = self.store.select(
            Tables.USER_ROLES,
            filters={"user_id": user_id, "is_active": True}
        )
        role_ids = unique_ids(a["role_id"] for a in assignments)
        if not role_ids:
            return []
        rows = self.store.select(Tables.ROLES, in_filters={"id": role_ids})
        found = {row["id"] for row in rows}
        for role_id in role_ids:
            if role_id not in found:
                logger.warning(f"User {user_id} has an active assignment to missing role {role_id}")
        return parse_records(Role, rows)

    def role_permission_ids(self, role_ids: Iterable[str]) -> Set[str]:
        links = self.store.select(Tables.ROLE_PERMISSIONS, in_filters={"role_id": unique_ids(role_ids)})
        return {link["permission_id"] for link in links}

    def direct_permission_ids(self, user_id: str) -> Set[str]:
        grants = self.store.select(
            Tables.USER_PERMISSIONS,
            filters={"user_id": user_id, "is_active": True}
        )
        return {grant["permission_id"] for grant in grants}

    def load_permissions(self, permission_ids: Iterable[str]) -> List[Permission]:
        """Fetch permissions by id, dropping ids whose permission no longer exists."""
        permission_ids = unique_ids(permission_ids)
        rows = self.store.select(Tables.PERMISSIONS, in_filters={"id": permission_ids})
        if len(rows) < len(permission_ids):
            found = {row["id"] for row in rows}
            dangling = [pid for pid in permission_ids if pid not in found]
            logger.warning(f"Skipping dangling permission references: {dangling}")
        return parse_records(Permission, rows)

    def resolve(self, user_id: str) -> FrozenSet[Permission]:
        roles = self.get_user_roles(user_id)
        permission_ids = self.role_permission_ids(role.id for role in roles)
        permission_ids |= self.direct_permission_ids(user_id)
        if not permission_ids:
            return frozenset()

        by_id: Dict[str, Permission] = {}
        for permission in self.load_permissions(sorted(permission_ids)):
            by_id.setdefault(permission.id, permission)
        return frozenset(by_id.values())

    def resolve_sorted(self, user_id: str) -> List[Permission]:
        """Effective permissions in display order (category, then display name)."""
        return sort_permissions(self.resolve(user_id))

    def resolve_names(self, user_id: str) -> FrozenSet[str]:
        return frozenset(p.name for p in self.resolve(user_id))

    def check_permission(self, user_id: str, permission_name: Union[PermissionName, str]) -> bool:
        """
        True if the user's effective set contains the named permission.

        Fails closed: when the store cannot be read the answer is False.
        """
        name = _catalog_name(permission_name)
        try:
            return name in self.resolve_names(user_id)
        except DependencyUnavailable as e:
            logger.error(f"Denying {name} for {user_id}, permissions unavailable: {e}")
            return False

    def is_super_admin(self, user_id: str) -> bool:
        return holds_role(self.store, user_id, self.super_admin_role)


def _catalog_name(permission_name: Union[PermissionName, str]) -> str:
    try:
        return PermissionName(permission_name).value
    except ValueError:
        raise ValidationFailed(f"Unknown permission {permission_name!r}") from None
