"""
Output views: reshape an external record before it leaves the API.
"""

import copy
from typing import Any, Dict

from registry import ResourceRegistry


class ViewFormatter:
    """Applies a resource's named view to a record.

    Unknown view names, and resources without views, return the record
    unchanged; asking for a view that does not exist is not an error.
    """

    def __init__(self, registry: ResourceRegistry):
        self.registry = registry

    def format(self, resource: str, record: Dict[str, Any], view: str = "default") -> Any:
        options = self.registry.get_options(resource)
        if options is None or not options.views or view not in options.views:
            return record
        spec = options.views[view]
        if spec.kind == "transform":
            return spec.transform(copy.deepcopy(record))
        if spec.kind == "fields":
            return {field: record[field] for field in spec.field_names if field in record}
        # rename
        return {out: record[field] for field, out in spec.mapping.items() if field in record}
