import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.config.permissions_config import SUPER_ADMIN_ROLE
from app.core.exceptions import (
    ConflictingState, NotAuthorized, NotFound, SelfDeactivationForbidden, ValidationFailed
)
from app.database.identity_store import (
    IdentityStore, ACCOUNT_ADMIN, ACCOUNT_SUPER_ADMIN, ADMIN_ACCOUNT_TYPES,
    STATUS_ACTIVE, STATUS_DEACTIVATED
)
from app.database.store import RecordStore, Tables, UnitOfWork
from app.modules.access.service import PermissionResolver
from app.modules.admins.schemas import AdminCreate, AdminUser, SuperAdminBootstrap
from app.modules.roles.service import PermissionService, RoleService, unique_ids

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AdminLifecycleManager:
    """
    Creates, re-roles and deactivates administrative accounts.

    An account is either active or deactivated; deactivation is terminal.
    Every mutation runs inside a unit of work so a failure part-way through
    leaves no half-created identity and no partially replaced role set.
    Whether the caller may manage administrators at all is decided before
    these methods are called; the methods themselves only enforce the rules
    that depend on who the caller is (super-admin gating, self-protection).
    """

    def __init__(
        self,
        store: RecordStore,
        identities: IdentityStore,
        resolver: Optional[PermissionResolver] = None,
        enforce_nonempty_permissions: bool = True
    ):
        self.store = store
        self.identities = identities
        self.resolver = resolver or PermissionResolver(store)
        self.roles = RoleService(store)
        self.permissions = PermissionService(store)
        self.enforce_nonempty_permissions = enforce_nonempty_permissions

    # Reads

    def get_admin(self, user_id: str) -> AdminUser:
        return self._materialize(self._get_admin_identity(user_id))

    def list_admins(self, include_deactivated: bool = False) -> List[AdminUser]:
        identities = self.identities.list_identities(ADMIN_ACCOUNT_TYPES, include_deactivated=include_deactivated)
        return [self._materialize(identity) for identity in identities]

    # Lifecycle

    def create_admin(self, caller_id: str, admin_data: AdminCreate) -> AdminUser:
        name = admin_data.name.strip()
        if not name:
            raise ValidationFailed("Administrator name is required")
        role_ids = unique_ids(admin_data.role_ids)
        permission_ids = unique_ids(admin_data.permission_ids)
        if not role_ids and not permission_ids:
            raise ValidationFailed("An administrator needs at least one role or permission")

        roles = self.roles.get_roles_by_ids(role_ids)
        self.permissions.get_permissions_by_ids(permission_ids)

        appoints_super_admin = any(role.name == SUPER_ADMIN_ROLE for role in roles)
        if appoints_super_admin and not self.resolver.is_super_admin(caller_id):
            raise NotAuthorized("Only a super administrator can appoint another super administrator")
        account_type = ACCOUNT_SUPER_ADMIN if appoints_super_admin else ACCOUNT_ADMIN

        logger.info(f"{caller_id} creating admin {admin_data.email}: roles={role_ids} permissions={permission_ids}")
        with self.store.unit_of_work() as uow:
            identity = self.identities.create_identity(
                str(admin_data.email), admin_data.password, name, account_type
            )
            user_id = identity["id"]
            uow.on_rollback(self.identities.delete_identity, user_id)

            self._insert_links(uow, Tables.USER_ROLES, "role_id", user_id, role_ids, caller_id)
            self._insert_links(uow, Tables.USER_PERMISSIONS, "permission_id", user_id, permission_ids, caller_id)
            admin = self._materialize(identity)

        logger.info(f"Admin {user_id} created by {caller_id}")
        return admin

    def update_admin_roles(self, caller_id: str, user_id: str, role_ids: List[str]) -> AdminUser:
        """Replace the admin's active roles with exactly role_ids; direct grants are left alone."""
        self._require_active(self._get_admin_identity(user_id))
        role_ids = unique_ids(role_ids)
        new_roles = self.roles.get_roles_by_ids(role_ids)

        held_super = any(role.name == SUPER_ADMIN_ROLE for role in self.resolver.get_user_roles(user_id))
        keeps_super = any(role.name == SUPER_ADMIN_ROLE for role in new_roles)
        if held_super != keeps_super:
            if not self.resolver.is_super_admin(caller_id):
                raise NotAuthorized("Only a super administrator can grant or revoke the super administrator role")
            if held_super and user_id == caller_id:
                raise ConflictingState("You cannot remove the super administrator role from yourself")

        if self.enforce_nonempty_permissions:
            self._guard_nonempty(user_id, role_ids=role_ids)

        with self.store.unit_of_work() as uow:
            added, removed = self._replace_links(uow, Tables.USER_ROLES, "role_id", user_id, role_ids, caller_id)

        logger.info(f"{caller_id} updated roles of {user_id}: +{added} -{removed}")
        return self.get_admin(user_id)

    def update_admin_permissions(self, caller_id: str, user_id: str, permission_ids: List[str]) -> AdminUser:
        """Replace the admin's active direct grants with exactly permission_ids; roles are left alone."""
        self._require_active(self._get_admin_identity(user_id))
        permission_ids = unique_ids(permission_ids)
        self.permissions.get_permissions_by_ids(permission_ids)

        if self.enforce_nonempty_permissions:
            self._guard_nonempty(user_id, permission_ids=permission_ids)

        with self.store.unit_of_work() as uow:
            added, removed = self._replace_links(
                uow, Tables.USER_PERMISSIONS, "permission_id", user_id, permission_ids, caller_id
            )

        logger.info(f"{caller_id} updated direct permissions of {user_id}: +{added} -{removed}")
        return self.get_admin(user_id)

    def deactivate_admin(self, caller_id: str, user_id: str) -> AdminUser:
        if user_id == caller_id:
            raise SelfDeactivationForbidden()

        identity = self._get_admin_identity(user_id)
        if self.resolver.is_super_admin(user_id) and not self.resolver.is_super_admin(caller_id):
            raise NotAuthorized("Only a super administrator can deactivate a super administrator")

        if identity.get("status") == STATUS_DEACTIVATED:
            # still sweep, so rows left active by an interrupted deactivation are closed
            with self.store.unit_of_work() as uow:
                swept = self._deactivate_links(uow, user_id)
            if swept:
                logger.warning(f"Deactivated {swept} assignments left active on deactivated admin {user_id}")
            else:
                logger.info(f"Admin {user_id} is already deactivated")
            return self._materialize(identity)

        with self.store.unit_of_work() as uow:
            self._deactivate_links(uow, user_id)
            identity = self.identities.set_status(user_id, STATUS_DEACTIVATED)
            uow.on_rollback(self.identities.set_status, user_id, STATUS_ACTIVE)

        logger.info(f"Admin {user_id} deactivated by {caller_id}")
        return self._materialize(identity)

    def bootstrap_super_admin(self, data: SuperAdminBootstrap) -> AdminUser:
        """Create the first super administrator of an empty installation."""
        name = data.name.strip()
        if not name:
            raise ValidationFailed("Administrator name is required")
        role = self.roles.get_role_by_name(SUPER_ADMIN_ROLE)
        if not role:
            raise ConflictingState(f"Role {SUPER_ADMIN_ROLE} does not exist, seed the catalog first")
        existing = self.store.select(
            Tables.USER_ROLES,
            filters={"role_id": role.id, "is_active": True},
            limit=1
        )
        if existing:
            raise ConflictingState("A super administrator already exists")

        with self.store.unit_of_work() as uow:
            identity = self.identities.create_identity(str(data.email), data.password, name, ACCOUNT_SUPER_ADMIN)
            user_id = identity["id"]
            uow.on_rollback(self.identities.delete_identity, user_id)
            self._insert_links(uow, Tables.USER_ROLES, "role_id", user_id, [role.id], user_id)
            admin = self._materialize(identity)

        logger.info(f"Super admin {user_id} bootstrapped")
        return admin

    # Helpers

    def _get_admin_identity(self, user_id: str) -> Dict[str, Any]:
        identity = self.identities.get_identity(user_id)
        if not identity or identity.get("role") not in ADMIN_ACCOUNT_TYPES:
            raise NotFound("Administrator not found")
        return identity

    def _require_active(self, identity: Dict[str, Any]) -> None:
        if identity.get("status") == STATUS_DEACTIVATED:
            raise ConflictingState("Administrator is deactivated")

    def _materialize(self, identity: Dict[str, Any]) -> AdminUser:
        user_id = identity["id"]
        roles = sorted(self.resolver.get_user_roles(user_id), key=lambda role: role.display_name)
        return AdminUser(
            id=user_id,
            email=identity.get("email") or "",
            name=identity.get("name") or "",
            account_type=identity.get("role") or ACCOUNT_ADMIN,
            status=identity.get("status") or STATUS_ACTIVE,
            roles=roles,
            permissions=self.resolver.resolve_sorted(user_id),
            created_at=identity.get("created_at")
        )

    def _guard_nonempty(
        self,
        user_id: str,
        role_ids: Optional[List[str]] = None,
        permission_ids: Optional[List[str]] = None
    ) -> None:
        """Reject an edit that would take the admin from some permissions to none."""
        if not self.resolver.resolve(user_id):
            return
        if role_ids is None:
            role_ids = [role.id for role in self.resolver.get_user_roles(user_id)]
        if permission_ids is None:
            direct_ids = self.resolver.direct_permission_ids(user_id)
        else:
            direct_ids = set(permission_ids)
        remaining = self.resolver.role_permission_ids(role_ids) | direct_ids
        if not self.resolver.load_permissions(remaining):
            raise ValidationFailed("This change would leave the administrator without any permissions")

    def _deactivate_links(self, uow: UnitOfWork, user_id: str) -> int:
        """Deactivate every active role assignment and direct grant; returns how many rows changed."""
        count = 0
        for table in (Tables.USER_ROLES, Tables.USER_PERMISSIONS):
            rows = self.store.update(
                table,
                {"is_active": False},
                filters={"user_id": user_id, "is_active": True}
            )
            ids = [row["id"] for row in rows]
            if ids:
                uow.on_rollback(self.store.update, table, {"is_active": True}, in_filters={"id": ids})
            count += len(ids)
        return count

    def _insert_links(
        self,
        uow: UnitOfWork,
        table: str,
        key: str,
        user_id: str,
        target_ids: List[str],
        caller_id: str
    ) -> None:
        if not target_ids:
            return
        now = _now()
        self.store.insert(table, [
            {
                "user_id": user_id,
                key: target_id,
                "assigned_by": caller_id,
                "assigned_at": now,
                "is_active": True
            }
            for target_id in target_ids
        ])
        uow.on_rollback(self.store.delete, table, filters={"user_id": user_id})

    def _replace_links(
        self,
        uow: UnitOfWork,
        table: str,
        key: str,
        user_id: str,
        target_ids: List[str],
        caller_id: str
    ):
        """
        Make exactly target_ids active for the user. Activations are written
        first and the deactivation sweep re-reads the active rows, so with two
        concurrent replacements the one that finishes last wins outright.
        """
        existing: Dict[str, Dict[str, Any]] = {}
        for row in self.store.select(table, filters={"user_id": user_id}):
            current = existing.get(row[key])
            if current is None or (row.get("is_active") and not current.get("is_active")):
                existing[row[key]] = row

        now = _now()
        added = 0
        new_rows = []
        for target_id in target_ids:
            row = existing.get(target_id)
            if row is None:
                new_rows.append({
                    "user_id": user_id,
                    key: target_id,
                    "assigned_by": caller_id,
                    "assigned_at": now,
                    "is_active": True
                })
            elif not row.get("is_active"):
                self.store.update(
                    table,
                    {"is_active": True, "assigned_by": caller_id, "assigned_at": now},
                    filters={"id": row["id"]}
                )
                uow.on_rollback(self.store.update, table, {"is_active": False}, filters={"id": row["id"]})
                added += 1

        if new_rows:
            inserted = self.store.insert(table, new_rows)
            inserted_ids = [row["id"] for row in inserted]
            if inserted_ids:
                uow.on_rollback(self.store.delete, table, in_filters={"id": inserted_ids})
            added += len(new_rows)

        target = set(target_ids)
        active = self.store.select(table, filters={"user_id": user_id, "is_active": True})
        stale_ids = [row["id"] for row in active if row[key] not in target]
        if stale_ids:
            self.store.update(table, {"is_active": False}, in_filters={"id": stale_ids})
            uow.on_rollback(self.store.update, table, {"is_active": True}, in_filters={"id": stale_ids})

        return added, len(stale_ids)
