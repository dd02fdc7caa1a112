import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.config.permissions_config import PermissionCategory, SUPER_ADMIN_ROLE
from app.core.exceptions import ConflictingState, NotAuthorized, NotFound, ValidationFailed
from app.database.store import RecordStore, Tables
from app.modules.roles.schemas import (
    Permission, PermissionUpdate,
    Role, RoleCreate, RoleUpdate, RoleWithPermissionsResponse,
    RolePermissionsUpdateResponse
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_records(model: Type[ModelT], rows: Iterable[Dict[str, Any]]) -> List[ModelT]:
    """Parse store rows, skipping (and logging) rows that no longer fit the model."""
    records = []
    for row in rows:
        try:
            records.append(model(**row))
        except ValidationError as e:
            logger.warning(f"Skipping malformed {model.__name__} row {row.get('id')}: {e.error_count()} errors")
    return records


def sort_permissions(permissions: Iterable[Permission]) -> List[Permission]:
    return sorted(permissions, key=lambda p: (p.category.value, p.display_name, p.name))


def unique_ids(ids: Iterable[str]) -> List[str]:
    """Deduplicate while keeping the caller's order."""
    seen = set()
    result = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def holds_role(store: RecordStore, user_id: str, role_name: str) -> bool:
    """True if the user has an active assignment of the named role."""
    role = store.select_one(Tables.ROLES, name=role_name)
    if not role:
        return False
    return bool(store.select(
        Tables.USER_ROLES,
        filters={"user_id": user_id, "role_id": role["id"], "is_active": True},
        limit=1
    ))


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class PermissionService:
    """Read access to the seeded permission catalog; only display fields are editable."""

    def __init__(self, store: RecordStore):
        self.store = store

    def list_permissions(self, category: Optional[PermissionCategory] = None) -> List[Permission]:
        filters = {"category": category.value} if category else None
        rows = self.store.select(Tables.PERMISSIONS, filters=filters)
        return sort_permissions(parse_records(Permission, rows))

    def get_permission(self, permission_id: str) -> Permission:
        row = self.store.select_one(Tables.PERMISSIONS, id=permission_id)
        if not row:
            raise NotFound("Permission not found")
        return Permission(**row)

    def get_permissions_by_ids(self, permission_ids: List[str]) -> List[Permission]:
        """Return the permissions for the given ids; ValidationFailed if any id is unknown."""
        permission_ids = unique_ids(permission_ids)
        rows = self.store.select(Tables.PERMISSIONS, in_filters={"id": permission_ids})
        found = {row["id"] for row in rows}
        missing = [pid for pid in permission_ids if pid not in found]
        if missing:
            raise ValidationFailed(f"Unknown permission ids: {', '.join(missing)}")
        return parse_records(Permission, rows)

    def update_permission(self, permission_id: str, permission_data: PermissionUpdate) -> Permission:
        self.get_permission(permission_id)
        update_data = {}
        if permission_data.display_name:
            update_data["display_name"] = permission_data.display_name
        if permission_data.description is not None:
            update_data["description"] = permission_data.description
        if not update_data:
            raise ValidationFailed("Nothing to update")

        rows = self.store.update(Tables.PERMISSIONS, update_data, filters={"id": permission_id})
        if not rows:
            raise NotFound("Permission not found")
        logger.info(f"Updated display fields of permission {permission_id}")
        return Permission(**rows[0])


class RoleService:
    def __init__(self, store: RecordStore):
        self.store = store
        self.permissions = PermissionService(store)

    def list_roles(self) -> List[Role]:
        rows = self.store.select(Tables.ROLES, order_by=[("display_name", False)])
        return parse_records(Role, rows)

    def get_role(self, role_id: str) -> Role:
        row = self.store.select_one(Tables.ROLES, id=role_id)
        if not row:
            raise NotFound("Role not found")
        return Role(**row)

    def get_role_by_name(self, name: str) -> Optional[Role]:
        row = self.store.select_one(Tables.ROLES, name=name)
        return Role(**row) if row else None

    def get_roles_by_ids(self, role_ids: List[str]) -> List[Role]:
        """Return the roles for the given ids; ValidationFailed if any id is unknown."""
        role_ids = unique_ids(role_ids)
        rows = self.store.select(Tables.ROLES, in_filters={"id": role_ids})
        found = {row["id"] for row in rows}
        missing = [rid for rid in role_ids if rid not in found]
        if missing:
            raise ValidationFailed(f"Unknown role ids: {', '.join(missing)}")
        return parse_records(Role, rows)

    def get_role_permissions(self, role_id: str) -> List[Permission]:
        self.get_role(role_id)
        links = self.store.select(Tables.ROLE_PERMISSIONS, filters={"role_id": role_id})
        permission_ids = unique_ids(link["permission_id"] for link in links)
        rows = self.store.select(Tables.PERMISSIONS, in_filters={"id": permission_ids})
        return sort_permissions(parse_records(Permission, rows))

    def get_role_with_permissions(self, role_id: str) -> RoleWithPermissionsResponse:
        role = self.get_role(role_id)
        permissions = self.get_role_permissions(role_id)
        return RoleWithPermissionsResponse(**role.model_dump(), permissions=permissions)

    def create_role(self, role_data: RoleCreate) -> RoleWithPermissionsResponse:
        """Create a non-system role together with its initial permission set"""
        if self.get_role_by_name(role_data.name):
            raise ConflictingState(f"Role {role_data.name} already exists")
        permission_ids = [p.id for p in self.permissions.get_permissions_by_ids(role_data.permission_ids)]

        with self.store.unit_of_work() as uow:
            rows = self.store.insert(Tables.ROLES, [{
                "name": role_data.name,
                "display_name": role_data.display_name,
                "description": role_data.description,
                "is_system_role": False
            }])
            if not rows:
                raise ConflictingState(f"Role {role_data.name} was not created")
            role_id = rows[0]["id"]
            uow.on_rollback(self.store.delete, Tables.ROLES, filters={"id": role_id})

            self._insert_role_permissions(uow, role_id, permission_ids)

        logger.info(f"Created role {role_data.name} with {len(permission_ids)} permissions")
        return self.get_role_with_permissions(role_id)

    def update_role(self, caller_id: str, role_id: str, role_data: RoleUpdate) -> Role:
        role = self.get_role(role_id)
        if role.is_system_role and not holds_role(self.store, caller_id, SUPER_ADMIN_ROLE):
            raise NotAuthorized("Only a super administrator can edit system roles")
        update_data = {}
        if role_data.name and role_data.name != role.name:
            if role.is_system_role:
                raise ConflictingState(f"System role {role.name} cannot be renamed")
            if self.get_role_by_name(role_data.name):
                raise ConflictingState(f"Role {role_data.name} already exists")
            update_data["name"] = role_data.name
        if role_data.display_name:
            update_data["display_name"] = role_data.display_name
        if role_data.description is not None:
            update_data["description"] = role_data.description
        if not update_data:
            return role

        update_data["updated_at"] = _now()
        rows = self.store.update(Tables.ROLES, update_data, filters={"id": role_id})
        if not rows:
            raise NotFound("Role not found")
        logger.info(f"Updated role {role.name}: {sorted(update_data)}")
        return Role(**rows[0])

    def replace_role_permissions(self, role_id: str, permission_ids: List[str]) -> RolePermissionsUpdateResponse:
        """Replace all permissions of a non-system role"""
        role = self.get_role(role_id)
        if role.is_system_role:
            raise ConflictingState(f"Permissions of system role {role.name} cannot be edited")
        permission_ids = [p.id for p in self.permissions.get_permissions_by_ids(permission_ids)]

        with self.store.unit_of_work() as uow:
            removed = self.store.delete(Tables.ROLE_PERMISSIONS, filters={"role_id": role_id})
            if removed:
                previous = [{"role_id": role_id, "permission_id": row["permission_id"]} for row in removed]
                uow.on_rollback(self.store.insert, Tables.ROLE_PERMISSIONS, previous)
            self._insert_role_permissions(uow, role_id, permission_ids)
            self.store.update(Tables.ROLES, {"updated_at": _now()}, filters={"id": role_id})

        logger.info(f"Replaced permissions of role {role.name}: {len(permission_ids)} assigned")
        return RolePermissionsUpdateResponse(
            role_id=role_id,
            assigned_count=len(permission_ids),
            message=f"Updated role with {len(permission_ids)} permissions"
        )

    def delete_role(self, role_id: str) -> None:
        """Delete a non-system role that nobody actively holds"""
        role = self.get_role(role_id)
        if role.is_system_role:
            raise ConflictingState(f"System role {role.name} cannot be deleted")
        active = self.store.select(
            Tables.USER_ROLES,
            filters={"role_id": role_id, "is_active": True},
            limit=1
        )
        if active:
            raise ConflictingState(f"Role {role.name} is still assigned to administrators")

        with self.store.unit_of_work() as uow:
            removed = self.store.delete(Tables.ROLE_PERMISSIONS, filters={"role_id": role_id})
            if removed:
                previous = [{"role_id": role_id, "permission_id": row["permission_id"]} for row in removed]
                uow.on_rollback(self.store.insert, Tables.ROLE_PERMISSIONS, previous)
            self.store.delete(Tables.ROLES, filters={"id": role_id})

        # Inactive user_roles rows stay behind as audit records of the deleted role
        logger.info(f"Deleted role {role.name}")

    def _insert_role_permissions(self, uow, role_id: str, permission_ids: List[str]) -> None:
        if not permission_ids:
            return
        self.store.insert(Tables.ROLE_PERMISSIONS, [
            {"role_id": role_id, "permission_id": pid}
            for pid in permission_ids
        ])
        uow.on_rollback(self.store.delete, Tables.ROLE_PERMISSIONS, filters={"role_id": role_id})
