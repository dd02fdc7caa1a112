import pytest

from app.config.permissions_config import SUPER_ADMIN_ROLE
from app.database.identity_store import ACCOUNT_SUPER_ADMIN
from app.database.store import Tables
from app.modules.access.service import PermissionResolver
from app.modules.admins.service import AdminLifecycleManager
from app.modules.roles.service import PermissionService, RoleService
from app.scripts.seed_permissions_roles import seed_catalog
from tests.fakes import MemoryIdentityStore, MemoryRecordStore


class Catalog:
    """Name -> id lookups over a seeded store."""

    def __init__(self, store: MemoryRecordStore):
        self.store = store

    def permission_id(self, name) -> str:
        name = getattr(name, "value", name)
        return next(p["id"] for p in self.store.rows(Tables.PERMISSIONS) if p["name"] == name)

    def role_id(self, name: str) -> str:
        return next(r["id"] for r in self.store.rows(Tables.ROLES) if r["name"] == name)


@pytest.fixture
def store() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def identities() -> MemoryIdentityStore:
    return MemoryIdentityStore()


@pytest.fixture
def resolver(store) -> PermissionResolver:
    return PermissionResolver(store)


@pytest.fixture
def manager(store, identities, resolver) -> AdminLifecycleManager:
    return AdminLifecycleManager(store, identities, resolver)


@pytest.fixture
def role_service(store) -> RoleService:
    return RoleService(store)


@pytest.fixture
def permission_service(store) -> PermissionService:
    return PermissionService(store)


@pytest.fixture
def catalog(store) -> Catalog:
    """Store seeded with the real permission catalog and seed roles."""
    assert seed_catalog(store)
    return Catalog(store)


@pytest.fixture
def super_admin(catalog, store, identities) -> str:
    identities.add("root", name="Root", account_type=ACCOUNT_SUPER_ADMIN)
    store.assign_role("root", catalog.role_id(SUPER_ADMIN_ROLE))
    return "root"


@pytest.fixture
def plain_admin(catalog, store, identities) -> str:
    """Admin holding manage_admins through a direct grant, but not the super-admin role."""
    identities.add("manager-1", name="Manager")
    store.grant("manager-1", catalog.permission_id("manage_admins"))
    return "manager-1"
