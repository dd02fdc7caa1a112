"""
Seed Permissions and Roles Script
This script populates the admin_permissions, admin_roles and role_permissions
tables from the catalog in app.config.permissions_config.
Can be run manually or as part of a deployment job:

    python -m app.scripts.seed_permissions_roles
"""

import sys
import logging
from typing import Any, Dict, List

from app.config.permissions_config import PERMISSION_MATRIX
from app.core.exceptions import AccessError
from app.database.store import RecordStore, SupabaseRecordStore, Tables
from app.database.supabase_client import get_service_supabase

logger = logging.getLogger(__name__)


class SeedResult:
    def __init__(self):
        self.created = 0
        self.updated = 0
        self.failed: List[str] = []

    @property
    def total(self) -> int:
        return self.created + self.updated


def seed_permissions(store: RecordStore, permissions: List[Dict[str, Any]]) -> SeedResult:
    """Seed permissions from config; name is the key, everything else is refreshed"""
    logger.info("Seeding permissions...")
    result = SeedResult()

    for perm in permissions:
        try:
            existing = store.select_one(Tables.PERMISSIONS, name=perm["name"])
            fields = {
                "display_name": perm["display_name"],
                "description": perm["description"],
                "category": perm["category"]
            }
            if existing:
                store.update(Tables.PERMISSIONS, fields, filters={"name": perm["name"]})
                result.updated += 1
                logger.debug(f"Updated permission: {perm['name']}")
            else:
                store.insert(Tables.PERMISSIONS, [{"name": perm["name"], **fields}])
                result.created += 1
                logger.debug(f"Created permission: {perm['name']}")
        except AccessError as e:
            logger.error(f"Error processing permission {perm['name']}: {e}")
            result.failed.append(perm["name"])

    logger.info(f"Permissions seeded: {result.created} created, {result.updated} updated")
    return result


def seed_roles(store: RecordStore, roles: List[Dict[str, Any]]) -> SeedResult:
    """Seed roles from config. System roles are fully re-synchronised; other roles keep operator edits"""
    logger.info("Seeding roles...")
    result = SeedResult()

    for role in roles:
        try:
            existing = store.select_one(Tables.ROLES, name=role["name"])
            if existing:
                role_id = existing["id"]
                if role["is_system_role"]:
                    store.update(Tables.ROLES, {
                        "display_name": role["display_name"],
                        "description": role["description"],
                        "is_system_role": True
                    }, filters={"id": role_id})
                    sync_role_permissions(store, role_id, role["name"], role["permissions"])
                result.updated += 1
                logger.debug(f"Updated role: {role['name']}")
            else:
                rows = store.insert(Tables.ROLES, [{
                    "name": role["name"],
                    "display_name": role["display_name"],
                    "description": role["description"],
                    "is_system_role": role["is_system_role"]
                }])
                sync_role_permissions(store, rows[0]["id"], role["name"], role["permissions"])
                result.created += 1
                logger.debug(f"Created role: {role['name']}")
        except AccessError as e:
            logger.error(f"Error processing role {role['name']}: {e}")
            result.failed.append(role["name"])

    logger.info(f"Roles seeded: {result.created} created, {result.updated} updated")
    return result


def sync_role_permissions(store: RecordStore, role_id: str, role_name: str, permission_names: List[str]) -> None:
    """Make the role's permissions match permission_names exactly"""
    permission_rows = store.select(Tables.PERMISSIONS, in_filters={"name": permission_names})
    if len(permission_rows) != len(permission_names):
        found = {p["name"] for p in permission_rows}
        missing = [name for name in permission_names if name not in found]
        logger.warning(f"Permissions missing for role {role_name}: {missing}")

    permission_ids = {p["id"] for p in permission_rows}
    existing_ids = {
        link["permission_id"]
        for link in store.select(Tables.ROLE_PERMISSIONS, filters={"role_id": role_id})
    }

    new_assignments = [
        {"role_id": role_id, "permission_id": pid}
        for pid in sorted(permission_ids - existing_ids)
    ]
    if new_assignments:
        store.insert(Tables.ROLE_PERMISSIONS, new_assignments)
        logger.debug(f"Assigned {len(new_assignments)} permissions to role {role_name}")

    # Remove permissions that are no longer in the config
    to_remove = existing_ids - permission_ids
    if to_remove:
        store.delete(
            Tables.ROLE_PERMISSIONS,
            filters={"role_id": role_id},
            in_filters={"permission_id": sorted(to_remove)}
        )
        logger.debug(f"Removed {len(to_remove)} permissions from role {role_name}")


def seed_catalog(store: RecordStore, matrix: Dict[str, List[Dict[str, Any]]] = PERMISSION_MATRIX) -> bool:
    """Seed permissions first, then roles (which depend on permissions). Returns False if anything failed."""
    perm_result = seed_permissions(store, matrix["permissions"])
    role_result = seed_roles(store, matrix["roles"])
    logger.info(f"Total: {perm_result.total} permissions, {role_result.total} roles processed")
    failed = perm_result.failed + role_result.failed
    if failed:
        logger.error(f"Seeding finished with failures: {failed}")
        return False
    return True


def main():
    """Main function to seed permissions and roles"""
    logging.basicConfig(level=logging.INFO)
    try:
        store = SupabaseRecordStore(get_service_supabase())
        logger.info("Starting permissions and roles seeding...")
        ok = seed_catalog(store)
    except AccessError as e:
        logger.error(f"Error during seeding: {e}")
        sys.exit(1)
    if not ok:
        sys.exit(1)
    logger.info("Seeding completed successfully!")


if __name__ == "__main__":
    main()
