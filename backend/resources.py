"""
Resources served by this deployment.

`register_resources()` is called once by `main.py` before the app starts
serving. Add new resources here; each one immediately gets the full set of
generic routes under `settings.api_prefix`.
"""

from typing import Optional

from registry import ResourceRegistry


def _summary(record: dict) -> dict:
    record["excerpt"] = (record.get("body") or "")[:140]
    return record


def register_resources(registry: ResourceRegistry) -> ResourceRegistry:
    registry.register(
        "notes",
        {"title": str, "body": (str, ""), "tags": (list[str], [])},
        {
            "views": {
                "default": _summary,
                "brief": ["uuid", "timestamp", "title"],
                "export": {"uuid": "id", "timestamp": "created_at", "title": "title", "body": "text"},
            }
        },
    )
    registry.register(
        "measurements",
        {"kind": str, "value": float, "unit": (Optional[str], None)},
    )
    registry.register(
        "preferences",
        {"language": (str, "en"), "timezone": (str, "UTC"), "notifications": (bool, True)},
        {"single": True},
    )
    return registry
