"""
In-process storage transport with the same contract as `RecordRepo`.

Used by the test-suite and by local runs with `STORAGE_BACKEND=memory`.
Rows are deep-copied on the way in and out so callers can never mutate
stored state by accident.
"""

import copy
from typing import Any, Dict, List, Mapping, Optional

from models import RangeQuery, StoredRow


def contains(document: Any, expected: Any) -> bool:
    """JSONB-style containment: does `document` contain `expected`?"""

    if isinstance(expected, Mapping):
        if not isinstance(document, Mapping):
            return False
        return all(k in document and contains(document[k], v) for k, v in expected.items())
    if isinstance(expected, list):
        if not isinstance(document, list):
            return False
        return all(any(contains(d, e) for d in document) for e in expected)
    return document == expected


class MemoryRecordRepo:
    """Dict-backed storage transport keyed by uuid."""

    def __init__(self):
        self.rows: Dict[str, StoredRow] = {}

    def query(self, query: RangeQuery) -> List[StoredRow]:
        matches = [
            row for row in self.rows.values()
            if row.owner_tag == query.owner_tag
            and query.start <= row.timestamp <= query.end
            and contains(row.payload, query.filters)
        ]
        matches.sort(key=lambda row: (row.timestamp, row.uuid), reverse=not query.ascending)
        if query.exclusive_start is not None:
            position = (query.exclusive_start.last_timestamp, query.exclusive_start.last_uuid)
            if query.ascending:
                matches = [row for row in matches if (row.timestamp, row.uuid) > position]
            else:
                matches = [row for row in matches if (row.timestamp, row.uuid) < position]
        if query.limit:
            matches = matches[:query.limit]
        return [row.model_copy(deep=True) for row in matches]

    def get(self, uuid: str) -> Optional[StoredRow]:
        row = self.rows.get(uuid)
        return row.model_copy(deep=True) if row else None

    def put(self, row: StoredRow) -> None:
        self.rows[row.uuid] = StoredRow(
            uuid=row.uuid,
            owner_tag=row.owner_tag,
            timestamp=row.timestamp,
            payload=copy.deepcopy(row.payload),
        )

    def delete(self, uuid: str) -> None:
        self.rows.pop(uuid, None)

    def ping(self) -> None:
        return None
