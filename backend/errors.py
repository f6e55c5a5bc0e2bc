"""
Exception taxonomy shared by the store, registry and dispatcher.

The dispatcher is the only place that turns these into HTTP outcomes:

- `ConfigurationError` is a programmer error (registry misuse or a bad
  view definition) and is never converted into a response.
- `ValidationFailure` becomes a 422 with its `errors` list.
- `NotFoundOrForbidden` becomes a 404. A missing record and a record owned
  by someone else raise the same exception on purpose.
- `MalformedRequest` becomes a 400, `UnauthenticatedRequest` a 401.
"""

from typing import Any, Dict, List


class ResourceApiError(Exception):
    """Base class for every error raised on purpose by this service."""

    status_code: int = 500


class ConfigurationError(ResourceApiError):
    pass


class ValidationFailure(ResourceApiError):
    """Validation failed. `errors` holds one dict per offending field."""

    status_code = 422

    def __init__(self, errors: List[Dict[str, Any]], message: str = "Validation failed"):
        super().__init__(message)
        self.errors = errors


class NotFoundOrForbidden(ResourceApiError):
    status_code = 404


class MalformedRequest(ResourceApiError):
    status_code = 400


class UnauthenticatedRequest(ResourceApiError):
    status_code = 401
