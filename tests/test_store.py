from unittest.mock import MagicMock, call

import pytest

from app.core.exceptions import ConflictingState, DependencyUnavailable, ValidationFailed
from app.database.identity_store import STATUS_DEACTIVATED, SupabaseIdentityStore
from app.database.store import SupabaseRecordStore, Tables, UnitOfWork
from tests.fakes import fake_supabase


class TestSupabaseRecordStore:
    def test_select_applies_filters_order_and_limit(self):
        supabase, query = fake_supabase([{"id": "1"}])
        store = SupabaseRecordStore(supabase)

        rows = store.select(
            Tables.USER_ROLES,
            filters={"user_id": "u1", "is_active": True, "revoked_at": None},
            in_filters={"role_id": ["r1", "r2"]},
            order_by=[("assigned_at", True)],
            limit=5
        )

        assert rows == [{"id": "1"}]
        supabase.table.assert_called_with("user_roles")
        query.eq.assert_any_call("user_id", "u1")
        query.eq.assert_any_call("is_active", "true")
        query.is_.assert_called_once_with("revoked_at", "null")
        query.in_.assert_called_once_with("role_id", ["r1", "r2"])
        query.order.assert_called_once_with("assigned_at", desc=True)
        query.limit.assert_called_once_with(5)

    def test_empty_in_filter_skips_the_round_trip(self):
        supabase, _ = fake_supabase()
        store = SupabaseRecordStore(supabase)

        assert store.select(Tables.PERMISSIONS, in_filters={"id": []}) == []
        assert store.update(Tables.PERMISSIONS, {"x": 1}, in_filters={"id": []}) == []
        supabase.table.assert_not_called()

    def test_client_errors_become_dependency_unavailable(self):
        supabase, query = fake_supabase()
        query.execute.side_effect = RuntimeError("connection reset")
        store = SupabaseRecordStore(supabase)

        with pytest.raises(DependencyUnavailable):
            store.select(Tables.ROLES)
        with pytest.raises(DependencyUnavailable):
            store.insert(Tables.ROLES, [{"name": "x"}])

    def test_unfiltered_delete_is_refused(self):
        supabase, _ = fake_supabase()
        with pytest.raises(ValueError):
            SupabaseRecordStore(supabase).delete(Tables.USER_ROLES)
        supabase.table.assert_not_called()

    def test_none_data_is_an_empty_result(self):
        supabase, _ = fake_supabase(None)
        assert SupabaseRecordStore(supabase).select(Tables.ROLES) == []


class TestUnitOfWork:
    def test_compensations_run_in_reverse(self):
        undone = []
        uow = UnitOfWork()
        uow.on_rollback(undone.append, "first")
        uow.on_rollback(undone.append, "second")

        uow.rollback()

        assert undone == ["second", "first"]

    def test_failing_compensation_does_not_stop_the_rest(self):
        undone = []

        def broken():
            raise RuntimeError("boom")

        uow = UnitOfWork()
        uow.on_rollback(undone.append, "first")
        uow.on_rollback(broken)
        uow.rollback()

        assert undone == ["first"]

    def test_store_unit_of_work_reraises_and_rolls_back(self, store):
        undone = []
        with pytest.raises(KeyError):
            with store.unit_of_work() as uow:
                uow.on_rollback(undone.append, "write")
                raise KeyError("later step")
        assert undone == ["write"]

    def test_success_discards_compensations(self, store):
        undone = []
        with store.unit_of_work() as uow:
            uow.on_rollback(undone.append, "write")
        assert undone == []


class TestSupabaseIdentityStore:
    def test_create_identity_writes_auth_user_and_profile(self):
        supabase, query = fake_supabase([{"id": "u1", "email": "a@example.org", "role": "admin"}])
        supabase.auth.admin.create_user.return_value = MagicMock(user=MagicMock(id="u1"))

        identity = SupabaseIdentityStore(supabase).create_identity("a@example.org", "secret123", "A", "admin")

        assert identity["id"] == "u1"
        payload = supabase.auth.admin.create_user.call_args[0][0]
        assert payload["email_confirm"] is True
        assert payload["user_metadata"]["role"] == "admin"
        inserted = query.insert.call_args[0][0]
        assert inserted["status"] == "active"

    def test_profile_failure_removes_auth_user(self):
        supabase, query = fake_supabase()
        supabase.auth.admin.create_user.return_value = MagicMock(user=MagicMock(id="u1"))
        query.execute.side_effect = RuntimeError("insert failed")

        with pytest.raises(DependencyUnavailable):
            SupabaseIdentityStore(supabase).create_identity("a@example.org", "secret123", "A", "admin")
        supabase.auth.admin.delete_user.assert_called_once_with("u1")

    @pytest.mark.parametrize("message,expected", [
        ("A user with this email address has already been registered", ConflictingState),
        ("Password should be at least 6 characters", ValidationFailed),
        ("upstream timeout", DependencyUnavailable),
    ])
    def test_auth_errors_are_translated(self, message, expected):
        supabase, _ = fake_supabase()
        supabase.auth.admin.create_user.side_effect = Exception(message)

        with pytest.raises(expected):
            SupabaseIdentityStore(supabase).create_identity("a@example.org", "secret123", "A", "admin")

    def test_deactivation_bans_the_auth_user(self):
        supabase, _ = fake_supabase([{"id": "u1", "status": STATUS_DEACTIVATED}])

        identity = SupabaseIdentityStore(supabase, ban_duration="24h").set_status("u1", STATUS_DEACTIVATED)

        assert identity["status"] == STATUS_DEACTIVATED
        supabase.auth.admin.update_user_by_id.assert_called_once_with("u1", {"ban_duration": "24h"})

    def test_reactivation_lifts_the_ban(self):
        supabase, _ = fake_supabase([{"id": "u1", "status": "active"}])
        SupabaseIdentityStore(supabase).set_status("u1", "active")
        supabase.auth.admin.update_user_by_id.assert_called_once_with("u1", {"ban_duration": "none"})

    def test_failed_ban_restores_previous_status(self):
        supabase, query = fake_supabase([{"id": "u1", "status": "active"}])
        supabase.auth.admin.update_user_by_id.side_effect = RuntimeError("auth admin down")

        with pytest.raises(DependencyUnavailable):
            SupabaseIdentityStore(supabase).set_status("u1", STATUS_DEACTIVATED)

        assert query.update.call_args_list == [
            call({"status": STATUS_DEACTIVATED}),
            call({"status": "active"}),
        ]

    def test_failed_ban_on_unchanged_status_writes_nothing_back(self):
        supabase, query = fake_supabase([{"id": "u1", "status": STATUS_DEACTIVATED}])
        supabase.auth.admin.update_user_by_id.side_effect = RuntimeError("auth admin down")

        with pytest.raises(DependencyUnavailable):
            SupabaseIdentityStore(supabase).set_status("u1", STATUS_DEACTIVATED)

        assert query.update.call_count == 1

    def test_cleanup_failure_keeps_the_original_error(self):
        supabase, query = fake_supabase()
        supabase.auth.admin.create_user.return_value = MagicMock(user=MagicMock(id="u1"))
        supabase.auth.admin.delete_user.side_effect = RuntimeError("auth admin down")
        query.execute.side_effect = RuntimeError("insert failed")

        with pytest.raises(DependencyUnavailable, match="Failed to create user record"):
            SupabaseIdentityStore(supabase).create_identity("a@example.org", "secret123", "A", "admin")
        supabase.auth.admin.delete_user.assert_called_once_with("u1")
