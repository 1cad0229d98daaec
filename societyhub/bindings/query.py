"""
Query builders decide how a binder filters and sorts a collection.

A builder receives the collection handle and returns a query, or ``None`` when
it is not ready to query yet (typically: identity not resolved). ``None`` is
not "zero results": the binder opens nothing at all.

Binders compare builders by identity. Keep a builder instance for as long as
its inputs (identity, role, filters) are unchanged; handing a binder a fresh
but equivalent builder tears its subscription down and opens a new one.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from google.cloud.firestore_v1 import Query
from google.cloud.firestore_v1.base_query import FieldFilter

from ..models.user import UserRole


@dataclass(frozen=True)
class IdentityContext:
    """Explicit identity handed to builders instead of an ambient auth read."""
    uid: Optional[str] = None
    role: Optional[UserRole] = None

    @property
    def resolved(self) -> bool:
        return bool(self.uid) and self.role is not None

    @property
    def sees_everything(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.SECURITY)


class QueryBuilder(ABC):

    @abstractmethod
    def build(self, collection: Any) -> Optional[Any]:
        """Return a query on ``collection`` or ``None`` when not ready."""


class CallableQuery(QueryBuilder):
    """Adapts a plain ``fn(collection) -> query | None``."""

    def __init__(self, fn: Callable[[Any], Optional[Any]]):
        self.fn = fn

    def build(self, collection: Any) -> Optional[Any]:
        return self.fn(collection)


class OrderedQuery(QueryBuilder):

    def __init__(self, field: str, direction: str = Query.DESCENDING, limit: Optional[int] = None):
        self.field = field
        self.direction = direction
        self.limit = limit

    def build(self, collection: Any) -> Any:
        query = collection.order_by(self.field, direction=self.direction)
        if self.limit:
            query = query.limit(self.limit)
        return query


class FieldEqualsQuery(QueryBuilder):
    """``field == value``, e.g. guards currently on duty."""

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value

    def build(self, collection: Any) -> Any:
        return collection.where(filter=FieldFilter(self.field, "==", self.value))


class OwnedRecordsQuery(QueryBuilder):
    """
    Residents see only rows they own (``owner_field == uid``); admins and
    security see every row. Not ready until both uid and role are known.
    """

    def __init__(
        self,
        identity: IdentityContext,
        owner_field: str = "submittedBy",
        order_field: Optional[str] = "createdAt",
        direction: str = Query.DESCENDING,
    ):
        self.identity = identity
        self.owner_field = owner_field
        self.order_field = order_field
        self.direction = direction

    def build(self, collection: Any) -> Optional[Any]:
        if not self.identity.resolved:
            return None

        query = collection
        if not self.identity.sees_everything:
            query = query.where(filter=FieldFilter(self.owner_field, "==", self.identity.uid))
        if self.order_field:
            query = query.order_by(self.order_field, direction=self.direction)
        return query
