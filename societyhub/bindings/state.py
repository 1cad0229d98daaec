from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Optional, Type, TypeVar
import logging

from pydantic import BaseModel, ValidationError

from ..core.errors import error_message
from ..database.store import StoredDocument

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BinderState(Generic[T]):
    """What a binder exposes. A new instance replaces the old one on every change."""
    data: Any = field(default_factory=list)
    loading: bool = True
    error: Optional[str] = None

    def as_dict(self) -> dict:
        data = self.data
        if isinstance(data, list):
            data = [_dump(item) for item in data]
        else:
            data = _dump(data)
        return {"data": data, "loading": self.loading, "error": self.error}


StateListener = Callable[[BinderState], None]


def _dump(item: Any) -> Any:
    if isinstance(item, BaseModel):
        return item.model_dump(mode="json")
    return item


def to_record(snapshot: StoredDocument, model: Optional[Type[BaseModel]] = None) -> Any:
    """``{"id": ..., **fields}``, or an instance of ``model`` when one is given."""
    record = {**snapshot.data, "id": snapshot.id}
    if model is None:
        return record
    return model(**record)


def to_records(snapshots: List[StoredDocument], model: Optional[Type[BaseModel]] = None) -> list:
    records = []
    for snapshot in snapshots:
        try:
            records.append(to_record(snapshot, model))
        except ValidationError as e:
            logger.warning(f"[Binder] Skipping malformed document {snapshot.id} for {model.__name__}: {error_message(e)}")
    return records
