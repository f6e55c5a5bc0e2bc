"""Shared pytest fixtures: an isolated registry, in-memory storage, dispatcher."""

from __future__ import annotations

import uuid
from typing import Any

import pytest

from dispatcher import RequestDispatcher
from models import ParsedRequest, StoredRow
from registry import ResourceRegistry
from repo_memory import MemoryRecordRepo
from store import OwnershipStore


class SpyRepo(MemoryRecordRepo):
    """In-memory transport that records every call as (operation, argument)."""

    def __init__(self):
        super().__init__()
        self.calls: list[tuple[str, Any]] = []

    def query(self, query):
        self.calls.append(("query", query))
        return super().query(query)

    def get(self, uuid):
        self.calls.append(("get", uuid))
        return super().get(uuid)

    def put(self, row):
        self.calls.append(("put", row))
        return super().put(row)

    def delete(self, uuid):
        self.calls.append(("delete", uuid))
        return super().delete(uuid)

    @property
    def operations(self) -> list[str]:
        return [op for op, _ in self.calls]


def _add_extra(output: dict) -> dict:
    output["extra"] = 12345
    return output


@pytest.fixture
def registry() -> ResourceRegistry:
    reg = ResourceRegistry()
    reg.register("user", {"username": str})
    reg.register("article", {"name": str})
    reg.register("ledger", {"amount": int, "note": (str, "")})
    reg.register("options", {"name": str}, {"single": True})
    reg.register(
        "sandwich",
        {"name": str},
        {
            "views": {
                "default": _add_extra,
                "brief": ["uuid", "name"],
                "special": {"uuid": "id", "name": "title"},
            }
        },
    )
    return reg


@pytest.fixture
def repo() -> SpyRepo:
    return SpyRepo()


@pytest.fixture
def store(repo: SpyRepo) -> OwnershipStore:
    return OwnershipStore(repo, prefix="")


@pytest.fixture
def dispatcher(registry: ResourceRegistry, store: OwnershipStore) -> RequestDispatcher:
    return RequestDispatcher(registry, store, prefix="/api", origin="*", max_list_limit=1000)


@pytest.fixture
def put_row(repo: SpyRepo):
    """Store a row directly, bypassing the store (and the call log)."""

    def _put(owner_tag: str, timestamp: int, record_uuid: str | None = None, **payload) -> StoredRow:
        row = StoredRow(
            uuid=record_uuid or str(uuid.uuid4()),
            owner_tag=owner_tag,
            timestamp=timestamp,
            payload=payload,
        )
        MemoryRecordRepo.put(repo, row)
        return row

    return _put


@pytest.fixture
def make_request():
    """Build a ParsedRequest for user u111 unless told otherwise."""

    def _make(
        method: str,
        path: str,
        user: str | None = "u111",
        body: Any = None,
        query: dict | None = None,
    ) -> ParsedRequest:
        return ParsedRequest(
            method=method,
            path=path,
            user=user,
            body={} if body is None else body,
            query=query or {},
        )

    return _make
