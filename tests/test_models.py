"""Tests for the storage row mapping and the list query model."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from models import ListQuery, OwnerTag, StoredRow


class TestStoredRow:
    def test_external_form(self) -> None:
        row = StoredRow(uuid="u-1", owner_tag="/u1:item", timestamp=1234, payload={"name": "N"})

        external = row.to_external()

        assert list(external) == ["uuid", "timestamp", "name"]
        assert "owner_tag" not in external

    def test_payload_cannot_shadow_reserved_fields(self) -> None:
        row = StoredRow(
            uuid="u-1",
            owner_tag="/u1:item",
            timestamp=1234,
            payload={"uuid": "fake", "timestamp": 1, "owner_tag": "/u2:item", "name": "N"},
        )

        assert row.to_external() == {"uuid": "u-1", "timestamp": 1234, "name": "N"}

    def test_round_trip(self) -> None:
        row = StoredRow(uuid="u-1", owner_tag="/u1:item", timestamp=1234, payload={"a": {"b": [1]}})
        assert StoredRow.from_external(row.to_external(), "/u1:item") == row


class TestOwnerTag:
    def test_empty_prefix(self) -> None:
        assert str(OwnerTag(user_id="u1", resource="item")) == "/u1:item"

    def test_frozen(self) -> None:
        tag = OwnerTag(prefix="p", user_id="u1", resource="item")
        with pytest.raises(ValidationError):
            tag.user_id = "u2"


class TestListQuery:
    def test_defaults(self) -> None:
        query = ListQuery()
        assert query.view == "default"
        assert query.sort == "desc"
        assert query.cursor is None

    def test_strings_are_coerced(self) -> None:
        query = ListQuery.model_validate({"limit": "10", "start": "0", "end": "99", "unknown": "x"})
        assert (query.limit, query.start, query.end) == (10, 0, 99)

    def test_cursor(self) -> None:
        query = ListQuery.model_validate({"last_uuid": "a" * 36, "last_timestamp": "5"})
        assert query.cursor.last_uuid == "a" * 36
        assert query.cursor.last_timestamp == 5

    @pytest.mark.parametrize("data", [{"last_timestamp": 5}, {"last_uuid": "a" * 36}, {"last_uuid": "a" * 35, "last_timestamp": 5}])
    def test_incomplete_cursor(self, data) -> None:
        with pytest.raises(ValidationError):
            ListQuery.model_validate(data)
