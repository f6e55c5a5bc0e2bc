"""
Pydantic models used across the backend.

Storage shapes (`OwnerTag`, `StoredRow`, `RangeQuery`), the request query
shapes validated by the dispatcher (`ListQuery`, `ItemQuery`) and the
transport-neutral request/response pair (`ParsedRequest`, `Outcome`).

Guidelines:
- `StoredRow` is the only model that knows the raw storage layout. Code
  outside the repositories deals with the flattened external form
  (`{uuid, timestamp, ...payload}`) produced by `StoredRow.to_external()`.
- `ListQuery` and `ItemQuery` are lax on purpose: query string values
  arrive as strings and are coerced to integers here.
"""

from typing import Any, Dict, List, Literal, Optional
import time

from pydantic import BaseModel, ConfigDict, Field, model_validator


RESERVED_FIELDS = ("uuid", "owner_tag", "timestamp")

# Largest value the BIGINT `ts` column can hold.
MAX_TIMESTAMP = 2**63 - 1


def now_ms() -> int:
    """Milliseconds since the epoch, the unit of every record timestamp."""
    return time.time_ns() // 1_000_000


class OwnerTag(BaseModel):
    """Structured form of the partition key binding a record to its owner.

    Only `partition_key` ever turns it into a string, so an empty prefix
    cannot be confused with a missing one.
    """

    model_config = ConfigDict(frozen=True)

    prefix: str = ""
    user_id: str
    resource: str

    @property
    def partition_key(self) -> str:
        return f"{self.prefix}/{self.user_id}:{self.resource}"

    def __str__(self) -> str:
        return self.partition_key


class Cursor(BaseModel):
    """Exclusive start position of a range query."""

    model_config = ConfigDict(frozen=True)

    last_uuid: str
    last_timestamp: int


class StoredRow(BaseModel):
    """A record exactly as the storage transport holds it."""

    uuid: str
    owner_tag: str
    timestamp: int
    payload: Dict[str, Any] = Field(default_factory=dict)

    def to_external(self) -> Dict[str, Any]:
        """Flatten into `{uuid, timestamp, ...payload}` without the owner tag."""
        output: Dict[str, Any] = {"uuid": None, "timestamp": None, **self.payload}
        output.pop("owner_tag", None)
        output["uuid"] = self.uuid
        output["timestamp"] = self.timestamp
        return output

    @classmethod
    def from_external(cls, record: Dict[str, Any], owner_tag: str) -> "StoredRow":
        payload = {k: v for k, v in record.items() if k not in RESERVED_FIELDS}
        return cls(
            uuid=record["uuid"],
            owner_tag=owner_tag,
            timestamp=record["timestamp"],
            payload=payload,
        )


class RangeQuery(BaseModel):
    """Description of one range query, handed to the storage transport.

    It is mutable so that a `params_callback` passed to
    `OwnershipStore.search` can adjust it before it runs. `filters` is a
    payload containment filter: a row matches when its payload contains
    every key/value of `filters` (recursively for nested mappings).
    """

    owner_tag: str
    start: int = 0
    end: int
    ascending: bool = False
    limit: Optional[int] = None
    exclusive_start: Optional[Cursor] = None
    filters: Dict[str, Any] = Field(default_factory=dict)


class ListQuery(BaseModel):
    """Recognised query parameters of a list request."""

    model_config = ConfigDict(extra="ignore")

    limit: Optional[int] = Field(default=None, ge=0)
    last_uuid: Optional[str] = Field(default=None, min_length=36, max_length=36)
    view: str = "default"
    last_timestamp: Optional[int] = Field(default=None, ge=0)
    start: Optional[int] = Field(default=None, ge=0)
    end: Optional[int] = Field(default=None, ge=0)
    sort: Literal["asc", "desc"] = "desc"

    @model_validator(mode="after")
    def _cursor_is_complete(self) -> "ListQuery":
        if (self.last_uuid is None) != (self.last_timestamp is None):
            raise ValueError("last_uuid and last_timestamp must be provided together")
        return self

    @property
    def cursor(self) -> Optional[Cursor]:
        if self.last_uuid is None or self.last_timestamp is None:
            return None
        return Cursor(last_uuid=self.last_uuid, last_timestamp=self.last_timestamp)


class ItemQuery(BaseModel):
    """Recognised query parameters of single-item requests."""

    model_config = ConfigDict(extra="ignore")

    view: str = "default"


class ParsedRequest(BaseModel):
    """Transport-neutral request handed to `RequestDispatcher.process_request`."""

    method: str
    path: str
    user: Optional[str] = None
    body: Any = Field(default_factory=dict)
    query: Dict[str, Any] = Field(default_factory=dict)


class Outcome(BaseModel):
    """Response envelope, serialised with API Gateway field names."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(alias="statusCode")
    body: Optional[str] = None
    multi_value_headers: Dict[str, List[str]] = Field(
        default_factory=dict, alias="multiValueHeaders"
    )
    is_base64_encoded: Optional[bool] = Field(default=None, alias="isBase64Encoded")

    def to_gateway(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
