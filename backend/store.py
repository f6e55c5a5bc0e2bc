"""
Ownership-partitioned store.

This module implements the ownership rules on top of a storage transport
(`RecordRepo` for Postgres, `MemoryRecordRepo` in-process). It is free of
SQL and knows nothing about schemas or views: resource names are only used
to compute owner tags.

Key responsibilities:
- compute the owner tag identically for every read and write
- range queries with time bounds, ordering, limit and cursor pagination
- access-checked point reads (missing and not-owned look the same)
- upserts that keep `uuid`, `owner_tag` and `timestamp` out of the payload

Known consistency gap: update/replace/delete flows call
`get_and_check_access` and then `save`/`remove` as two separate storage
calls. A concurrent write to the same record in between is not detected;
the last writer wins.
"""

import logging
import uuid as uuid_lib
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Union

from models import ListQuery, OwnerTag, RangeQuery, StoredRow, now_ms
from settings import settings
from validation import validate


logger = logging.getLogger(__name__)


class StorageTransport(Protocol):
    def query(self, query: RangeQuery) -> List[StoredRow]: ...

    def get(self, uuid: str) -> Optional[StoredRow]: ...

    def put(self, row: StoredRow) -> None: ...

    def delete(self, uuid: str) -> None: ...

    def ping(self) -> None: ...


ParamsCallback = Callable[[RangeQuery], Any]


class OwnershipStore:
    """Ownership checks + record shaping over a storage transport.

    Example usage:
        store = OwnershipStore(RecordRepo())
        item = store.save('alice', 'article', {'name': 'X'})
        store.get_and_check_access('alice', 'article', item['uuid'])
    """

    def __init__(self, transport: StorageTransport, prefix: Optional[str] = None):
        self.transport = transport
        self.prefix = settings.owner_prefix if prefix is None else prefix

    def owner_tag(self, user_id: str, resource: str) -> OwnerTag:
        return OwnerTag(prefix=self.prefix or "", user_id=user_id, resource=resource)

    def search(
        self,
        user_id: str,
        resource: str,
        options: Union[ListQuery, Mapping[str, Any], None] = None,
        params_callback: Optional[ParamsCallback] = None,
    ) -> List[Dict[str, Any]]:
        """Return the caller's records of `resource`, newest first by default.

        `options` is a `ListQuery` or a mapping with the same keys. The cursor
        is only applied when both `last_uuid` and `last_timestamp` are set.
        `params_callback` receives the `RangeQuery` and may change it in place
        before it runs.
        Malformed options raise `ValidationFailure`.
        """

        if options is None:
            options = ListQuery()
        elif not isinstance(options, ListQuery):
            options = validate(ListQuery, options)

        query = RangeQuery(
            owner_tag=self.owner_tag(user_id, resource).partition_key,
            start=options.start or 0,
            end=options.end or now_ms(),
            ascending=options.sort == "asc",
            limit=options.limit or None,
            exclusive_start=options.cursor,
        )
        if params_callback is not None:
            params_callback(query)
        rows = self.transport.query(query)
        return [row.to_external() for row in rows]

    def get_and_check_access(self, user_id: str, resource: str, uuid: str) -> Optional[Dict[str, Any]]:
        """Return the record if it exists and belongs to (user, resource).

        Returns None both when the record is missing and when it is owned by
        another user or filed under another resource.
        """

        row = self.transport.get(uuid)
        if row is None:
            return None
        if row.owner_tag != self.owner_tag(user_id, resource).partition_key:
            logger.debug("owner tag mismatch for %s", uuid)
            return None
        return row.to_external()

    def save(
        self,
        user_id: str,
        resource: str,
        payload: Mapping[str, Any],
        existing_uuid: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Upsert a record. Access is not checked here.

        Steps:
        1. New record: random uuid and the current time. Existing record:
           same uuid, and the payload's `timestamp` if it carries one.
        2. Drop reserved keys from the payload.
        3. Unconditional put through the transport.
        """

        data = dict(payload)
        carried_timestamp = data.pop("timestamp", None)
        data.pop("uuid", None)
        data.pop("owner_tag", None)

        if existing_uuid:
            record_uuid = existing_uuid
            timestamp = carried_timestamp if carried_timestamp is not None else now_ms()
        else:
            record_uuid = str(uuid_lib.uuid4())
            timestamp = now_ms()

        row = StoredRow(
            uuid=record_uuid,
            owner_tag=self.owner_tag(user_id, resource).partition_key,
            timestamp=timestamp,
            payload=data,
        )
        self.transport.put(row)
        logger.debug("saved %s under %s", row.uuid, row.owner_tag)
        return row.to_external()

    def remove(self, uuid: str) -> bool:
        """Delete by uuid. Access is not checked here; missing ids are fine."""

        self.transport.delete(uuid)
        return True

    def ping(self) -> None:
        self.transport.ping()
