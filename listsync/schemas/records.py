# listsync/schemas/records.py
# Record store models, used as wire schemas by the service and as values by clients

from __future__ import annotations

import operator
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from listsync.constants import PUBLIC_ZONE


class DatabaseScope(str, Enum):
    """How the caller reaches a zone: as its owner, as a participant, or publicly."""
    PRIVATE = "private"
    SHARED = "shared"
    PUBLIC = "public"


class RecordID(BaseModel):
    model_config = ConfigDict(frozen=True)

    record_name: str = Field(min_length=1)
    zone_name: str = Field(default=PUBLIC_ZONE, min_length=1)


class Record(BaseModel):
    """A typed bag of JSON fields addressed by (zone, name)."""
    record_type: str = Field(min_length=1)
    record_id: RecordID
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


class ZoneHandle(BaseModel):
    """Concrete handle to a zone the caller may read and write."""
    model_config = ConfigDict(frozen=True)

    zone_name: str
    owner: str
    scope: DatabaseScope = DatabaseScope.PRIVATE


class ShareMetadata(BaseModel):
    locator: str
    zone_name: str
    owner: str
    root_record_name: str


_COMPARATORS = {
    "eq": operator.eq,
    "gt": operator.gt,
    "ge": operator.ge,
    "lt": operator.lt,
    "le": operator.le,
}


class Predicate(BaseModel):
    """Single-field comparison against a record data value."""
    field: str
    op: Literal["eq", "gt", "ge", "lt", "le"] = "eq"
    value: Any = None

    def matches(self, data: dict[str, Any]) -> bool:
        if self.field not in data:
            return False
        current = data[self.field]
        try:
            return bool(_COMPARATORS[self.op](current, self.value))
        except TypeError:
            return False


class SortDescriptor(BaseModel):
    field: str
    ascending: bool = True


class Subscription(BaseModel):
    """Push registration for changes of one record type inside a zone."""
    subscription_id: str = Field(min_length=1)
    zone_name: str
    record_type: str
    alert_field: Optional[str] = None


# --- Request / response bodies ---

class AccountResponse(BaseModel):
    user_id: str


class QueryRequest(BaseModel):
    record_type: str
    predicate: Optional[Predicate] = None
    sort: list[SortDescriptor] = Field(default_factory=list)


class QueryResponse(BaseModel):
    records: list[Record]


class ModifyRequest(BaseModel):
    save: list[Record] = Field(default_factory=list)
    delete: list[RecordID] = Field(default_factory=list)


class ModifyResponse(BaseModel):
    saved: list[Record]
    deleted: list[RecordID]


class ShareRequest(BaseModel):
    root: Record


class ShareResponse(BaseModel):
    locator: str


class ParticipantsResponse(BaseModel):
    participants: list[str]
