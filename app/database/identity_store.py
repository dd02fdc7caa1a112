"""
Identity store for administrative accounts.

An identity is the Supabase Auth user (credentials) plus its row in the
portal's `users` table (name, account type, status).
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from supabase import Client

from app.core.exceptions import ConflictingState, DependencyUnavailable, ValidationFailed
from app.database.store import Tables

logger = logging.getLogger(__name__)

ACCOUNT_ADMIN = "admin"
ACCOUNT_SUPER_ADMIN = "super_admin"
ADMIN_ACCOUNT_TYPES = [ACCOUNT_ADMIN, ACCOUNT_SUPER_ADMIN]

STATUS_ACTIVE = "active"
STATUS_DEACTIVATED = "deactivated"


class IdentityStore(ABC):
    @abstractmethod
    def create_identity(self, email: str, password: str, name: str, account_type: str) -> Dict[str, Any]:
        ...

    @abstractmethod
    def get_identity(self, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def list_identities(self, account_types: List[str], include_deactivated: bool = False) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def set_status(self, user_id: str, status: str) -> Dict[str, Any]:
        ...

    @abstractmethod
    def delete_identity(self, user_id: str) -> None:
        ...


def _translate_auth_error(e: Exception, email: str) -> Exception:
    message = str(e)
    lowered = message.lower()
    if "already" in lowered and ("registered" in lowered or "exists" in lowered):
        return ConflictingState(f"User with email {email} already exists")
    if "password" in lowered or "email" in lowered:
        return ValidationFailed(f"Identity rejected by auth provider: {message}")
    return DependencyUnavailable(f"Auth provider error: {message}")


class SupabaseIdentityStore(IdentityStore):
    def __init__(self, supabase: Client, ban_duration: str = "876000h"):
        self.supabase = supabase
        self.ban_duration = ban_duration

    def create_identity(self, email, password, name, account_type):
        try:
            auth_response = self.supabase.auth.admin.create_user({
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": {
                    "name": name,
                    "role": account_type
                }
            })
        except Exception as e:
            logger.error(f"Auth error creating {email}: {e}")
            raise _translate_auth_error(e, email) from e

        if not auth_response.user:
            raise DependencyUnavailable("Auth provider returned no user")
        user_id = auth_response.user.id

        try:
            result = self.supabase.table(Tables.USERS).insert({
                "id": user_id,
                "email": email,
                "name": name,
                "role": account_type,
                "status": STATUS_ACTIVE
            }).execute()
        except Exception as e:
            logger.error(f"Users table error for {user_id}, removing auth user: {e}")
            self._discard_auth_user(user_id)
            raise DependencyUnavailable("Failed to create user record") from e

        if not result.data:
            self._discard_auth_user(user_id)
            raise DependencyUnavailable("Failed to create user record")
        return result.data[0]

    def get_identity(self, user_id):
        try:
            result = self.supabase.table(Tables.USERS)\
                .select("*")\
                .eq("id", user_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            logger.error(f"Error fetching user {user_id}: {e}")
            raise DependencyUnavailable("Failed to read users") from e
        return result.data[0] if result.data else None

    def list_identities(self, account_types, include_deactivated=False):
        try:
            query = self.supabase.table(Tables.USERS)\
                .select("*")\
                .in_("role", account_types)
            if not include_deactivated:
                query = query.eq("status", STATUS_ACTIVE)
            result = query.order("created_at", desc=True).execute()
        except Exception as e:
            logger.error(f"Error listing users: {e}")
            raise DependencyUnavailable("Failed to read users") from e
        return result.data or []

    def set_status(self, user_id, status):
        """Write the status and the matching auth ban; on a failed ban the previous status is restored."""
        identity = self.get_identity(user_id)
        if not identity:
            raise DependencyUnavailable(f"User {user_id} disappeared while updating status")
        previous = identity.get("status") or STATUS_ACTIVE

        updated = self._write_status(user_id, status)
        # A deactivated admin must not be able to sign in again
        ban_duration = self.ban_duration if status == STATUS_DEACTIVATED else "none"
        try:
            self.supabase.auth.admin.update_user_by_id(user_id, {"ban_duration": ban_duration})
        except Exception as e:
            logger.error(f"Error applying ban_duration={ban_duration} to {user_id}, restoring status {previous}: {e}")
            if previous != status:
                try:
                    self._write_status(user_id, previous)
                except DependencyUnavailable as restore_error:
                    logger.error(f"Could not restore status of {user_id}: {restore_error}")
            raise DependencyUnavailable("Failed to update user status") from e
        return updated

    def _write_status(self, user_id: str, status: str) -> Dict[str, Any]:
        try:
            result = self.supabase.table(Tables.USERS)\
                .update({"status": status})\
                .eq("id", user_id)\
                .execute()
        except Exception as e:
            logger.error(f"Error setting status of {user_id} to {status}: {e}")
            raise DependencyUnavailable("Failed to update user status") from e
        if not result.data:
            raise DependencyUnavailable(f"User {user_id} disappeared while updating status")
        return result.data[0]

    def delete_identity(self, user_id):
        try:
            self.supabase.table(Tables.USERS).delete().eq("id", user_id).execute()
        except Exception as e:
            logger.error(f"Error deleting user record {user_id}: {e}")
            raise DependencyUnavailable("Failed to delete user record") from e
        self._delete_auth_user(user_id)

    def _delete_auth_user(self, user_id: str) -> None:
        try:
            self.supabase.auth.admin.delete_user(user_id)
        except Exception as e:
            logger.error(f"Error deleting auth user {user_id}: {e}")
            raise DependencyUnavailable("Failed to delete auth user") from e

    def _discard_auth_user(self, user_id: str) -> None:
        """Best-effort cleanup after a failed create; the caller raises the original failure."""
        try:
            self._delete_auth_user(user_id)
        except DependencyUnavailable as e:
            logger.error(f"Orphaned auth user {user_id} left behind: {e}")
