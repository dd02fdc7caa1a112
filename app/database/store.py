"""
Record store used by the access-control services.

RecordStore is the seam between the services and the backing database: plain
filter/insert/update/delete over named tables plus a unit of work that undoes
completed writes when a multi-step mutation fails. SupabaseRecordStore is the
production implementation over the PostgREST API.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from supabase import Client

from app.core.exceptions import DependencyUnavailable

logger = logging.getLogger(__name__)


class Tables:
    PERMISSIONS = "admin_permissions"
    ROLES = "admin_roles"
    ROLE_PERMISSIONS = "role_permissions"
    USER_ROLES = "user_roles"
    USER_PERMISSIONS = "user_permissions"
    USERS = "users"


Filters = Optional[Dict[str, Any]]
InFilters = Optional[Dict[str, List[Any]]]
Ordering = Optional[List[Tuple[str, bool]]]  # (column, descending)


class UnitOfWork:
    """Collects compensating actions for the writes of one mutation."""

    def __init__(self):
        self._compensations: List[Tuple[Callable[..., Any], tuple, dict]] = []

    def on_rollback(self, action: Callable[..., Any], *args, **kwargs) -> None:
        self._compensations.append((action, args, kwargs))

    def rollback(self) -> None:
        while self._compensations:
            action, args, kwargs = self._compensations.pop()
            try:
                action(*args, **kwargs)
            except Exception as e:
                # keep undoing the remaining writes; the caller re-raises the original failure
                logger.error(f"Compensating action {getattr(action, '__name__', action)} failed: {e}")

    def discard(self) -> None:
        self._compensations.clear()


class RecordStore(ABC):
    @abstractmethod
    def select(
        self,
        table: str,
        *,
        filters: Filters = None,
        in_filters: InFilters = None,
        order_by: Ordering = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def insert(self, table: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def update(
        self,
        table: str,
        values: Dict[str, Any],
        *,
        filters: Filters = None,
        in_filters: InFilters = None
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def delete(self, table: str, *, filters: Filters = None, in_filters: InFilters = None) -> List[Dict[str, Any]]:
        ...

    def select_one(self, table: str, **filters) -> Optional[Dict[str, Any]]:
        rows = self.select(table, filters=filters, limit=1)
        return rows[0] if rows else None

    @contextmanager
    def unit_of_work(self) -> Iterator[UnitOfWork]:
        """Run a mutation as one unit: on any exception, registered compensations run in reverse."""
        uow = UnitOfWork()
        try:
            yield uow
        except Exception:
            uow.rollback()
            raise
        uow.discard()


def _has_empty_in(in_filters: InFilters) -> bool:
    return bool(in_filters) and any(len(values) == 0 for values in in_filters.values())


def _value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


class SupabaseRecordStore(RecordStore):
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _apply_filters(self, query, filters: Filters, in_filters: InFilters):
        for column, value in (filters or {}).items():
            if value is None:
                query = query.is_(column, "null")
            else:
                query = query.eq(column, _value(value))
        for column, values in (in_filters or {}).items():
            query = query.in_(column, list(values))
        return query

    def select(self, table, *, filters=None, in_filters=None, order_by=None, limit=None):
        if _has_empty_in(in_filters):
            return []
        try:
            query = self.supabase.table(table).select("*")
            query = self._apply_filters(query, filters, in_filters)
            for column, desc in order_by or []:
                query = query.order(column, desc=desc)
            if limit is not None:
                query = query.limit(limit)
            result = query.execute()
            return result.data or []
        except Exception as e:
            logger.error(f"Error selecting from {table}: {e}")
            raise DependencyUnavailable(f"Failed to read {table}") from e

    def insert(self, table, rows):
        if not rows:
            return []
        try:
            result = self.supabase.table(table).insert(rows).execute()
            return result.data or []
        except Exception as e:
            logger.error(f"Error inserting into {table}: {e}")
            raise DependencyUnavailable(f"Failed to write {table}") from e

    def update(self, table, values, *, filters=None, in_filters=None):
        if _has_empty_in(in_filters):
            return []
        try:
            query = self.supabase.table(table).update(values)
            query = self._apply_filters(query, filters, in_filters)
            result = query.execute()
            return result.data or []
        except Exception as e:
            logger.error(f"Error updating {table}: {e}")
            raise DependencyUnavailable(f"Failed to update {table}") from e

    def delete(self, table, *, filters=None, in_filters=None):
        if not filters and not in_filters:
            raise ValueError("Refusing to delete without a filter")
        if _has_empty_in(in_filters):
            return []
        try:
            query = self.supabase.table(table).delete()
            query = self._apply_filters(query, filters, in_filters)
            result = query.execute()
            return result.data or []
        except Exception as e:
            logger.error(f"Error deleting from {table}: {e}")
            raise DependencyUnavailable(f"Failed to delete from {table}") from e
