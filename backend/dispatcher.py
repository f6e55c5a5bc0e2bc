"""
Request dispatcher: generic CRUD routes over the ownership store.

One `RequestDispatcher` is built at start-up with the registry and the
store; `process_request()` is then called once per inbound request with a
transport-neutral `ParsedRequest` and returns an `Outcome`.

Processing order:
1. reject unparseable requests (400) and anonymous requests (401)
2. resolve the route; unknown resource names are a 404
3. run the handler; `ValidationFailure` becomes a 422 with details, other
   deliberate errors map to their status code, anything unexpected is
   logged and returned as an opaque 500

`ConfigurationError` (registry used before anything was registered) is a
programmer error and is re-raised instead of being turned into a response.

Route matching uses Starlette's path compiler, the same one FastAPI uses.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel
from starlette.routing import compile_path

import gateway
from errors import (
    ConfigurationError,
    MalformedRequest,
    NotFoundOrForbidden,
    ResourceApiError,
    UnauthenticatedRequest,
    ValidationFailure,
)
from models import MAX_TIMESTAMP, ItemQuery, ListQuery, Outcome, ParsedRequest, now_ms
from registry import ResourceRegistry
from settings import settings
from store import OwnershipStore
from validation import declares_field, validate, validate_partial, validate_payload
from views import ViewFormatter


logger = logging.getLogger(__name__)


class RouteMatch(BaseModel):
    handler: Callable[..., Outcome]
    params: Dict[str, Any] = {}
    is_default: bool = False


class Router:
    """Method + path pattern table, first registration wins."""

    def __init__(self):
        self._routes: List[Tuple[str, Any, Dict[str, Any], Callable[..., Outcome]]] = []
        self._default: Optional[Callable[..., Outcome]] = None

    def register(self, pattern: str, method: str, handler: Callable[..., Outcome]) -> "Router":
        regex, _, convertors = compile_path(pattern)
        self._routes.append((method.upper(), regex, convertors, handler))
        return self

    def register_default(self, handler: Callable[..., Outcome]) -> "Router":
        self._default = handler
        return self

    def route(self, path: str, method: str) -> RouteMatch:
        for route_method, regex, convertors, handler in self._routes:
            if route_method != method.upper():
                continue
            match = regex.match(path)
            if match:
                params = {k: convertors[k].convert(v) for k, v in match.groupdict().items()}
                return RouteMatch(handler=handler, params=params)
        if self._default is None:
            raise ConfigurationError("Router has no default route")
        return RouteMatch(handler=self._default, is_default=True)


class RequestDispatcher:
    """Stateless controller for the generic resource routes.

    Example usage:
        dispatcher = RequestDispatcher(registry, OwnershipStore(RecordRepo()))
        outcome = dispatcher.process_request(gateway.parse_event(event))
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        store: OwnershipStore,
        formatter: Optional[ViewFormatter] = None,
        prefix: Optional[str] = None,
        router: Optional[Router] = None,
        origin: Optional[str] = None,
        max_list_limit: Optional[int] = None,
    ):
        self.registry = registry
        self.store = store
        self.formatter = formatter or ViewFormatter(registry)
        self.origin = settings.cors_origin if origin is None else origin
        self.max_list_limit = max_list_limit or settings.max_list_limit
        self.router = self.build_router(settings.api_prefix if prefix is None else prefix, router)

    def build_router(self, prefix: str, router: Optional[Router] = None) -> Router:
        """Mount the generic routes under `prefix` (on `router` if given)."""

        return (router or Router()) \
            .register(f"{prefix}/{{resource}}", "GET", self.list_items) \
            .register(f"{prefix}/{{resource}}", "POST", self.create_item) \
            .register(f"{prefix}/{{resource}}/{{uuid}}", "GET", self.get_item) \
            .register(f"{prefix}/{{resource}}/{{uuid}}", "PUT", self.replace_item) \
            .register(f"{prefix}/{{resource}}/{{uuid}}", "PATCH", self.update_item) \
            .register(f"{prefix}/{{resource}}/{{uuid}}", "DELETE", self.delete_item) \
            .register_default(self.route_default)

    def process_request(self, request: Optional[ParsedRequest]) -> Outcome:
        try:
            if request is None:
                raise MalformedRequest("Incorrect request")
            if not request.user:
                raise UnauthenticatedRequest("User ID not found in the event")
            route = self.router.route(request.path, request.method)
            if "resource" in route.params and self.registry.get_definition(route.params["resource"]) is None:
                raise NotFoundOrForbidden("Resource type not found")
            return route.handler(route, request)
        except ConfigurationError:
            raise
        except ValidationFailure as e:
            return self._error("Validation error", 422, {"errors": e.errors})
        except ResourceApiError as e:
            return self._error(str(e), e.status_code)
        except Exception:
            logger.exception("Unhandled error while processing %s %s",
                             request.method if request else "?", request.path if request else "?")
            return self._error("Something went wrong", 500)

    # ---- handlers ---------------------------------------------------------

    def list_items(self, route: RouteMatch, request: ParsedRequest) -> Outcome:
        resource = route.params["resource"]
        query = validate(ListQuery, request.query)
        if query.limit and query.limit > self.max_list_limit:
            query.limit = self.max_list_limit
        single = self.registry.get_options(resource).single
        if single and query.end is None:
            query.end = MAX_TIMESTAMP
        items = self.store.search(request.user, resource, query)
        if single:
            if not items:
                raise NotFoundOrForbidden("Object not found")
            return self._response(self.formatter.format(resource, items[0], query.view))
        return self._response([self.formatter.format(resource, item, query.view) for item in items])

    def create_item(self, route: RouteMatch, request: ParsedRequest) -> Outcome:
        resource = route.params["resource"]
        query = validate(ItemQuery, request.query)
        payload = validate_payload(self.registry.get_schema(resource), request.body)
        if self.registry.get_options(resource).single:
            existing = self.store.search(request.user, resource, ListQuery(limit=2, end=MAX_TIMESTAMP))
            if existing:
                if len(existing) > 1:
                    logger.warning(
                        "single resource %s has %d records under %s, replacing %s (also found %s)",
                        resource, len(existing), self.store.owner_tag(request.user, resource), existing[0]["uuid"],
                        ", ".join(item["uuid"] for item in existing[1:]),
                    )
                replace_route = RouteMatch(
                    handler=self.replace_item,
                    params={"resource": resource, "uuid": existing[0]["uuid"]},
                )
                return self.replace_item(replace_route, request)
        item = self.store.save(request.user, resource, payload)
        return self._response(self.formatter.format(resource, item, query.view), 201)

    def get_item(self, route: RouteMatch, request: ParsedRequest) -> Outcome:
        resource, uuid = route.params["resource"], route.params["uuid"]
        query = validate(ItemQuery, request.query)
        item = self._get_owned(request.user, resource, uuid)
        return self._response(self.formatter.format(resource, item, query.view))

    def replace_item(self, route: RouteMatch, request: ParsedRequest) -> Outcome:
        """PUT: the body becomes the whole new payload of the record.

        A `uuid` in the body must match the URL and is dropped; `timestamp`
        is dropped unless the schema declares it (then it overrides the
        stored timestamp).
        """

        resource, uuid = route.params["resource"], route.params["uuid"]
        query = validate(ItemQuery, request.query)
        schema = self.registry.get_schema(resource)
        body = self._as_mapping(request.body)
        if "uuid" in body:
            if body["uuid"] != uuid:
                raise MalformedRequest("UUID in the body does not match the URL")
            del body["uuid"]
        if not declares_field(schema, "timestamp"):
            body.pop("timestamp", None)
        payload = validate_payload(schema, body)
        self._get_owned(request.user, resource, uuid)
        item = self.store.save(request.user, resource, payload, uuid)
        return self._response(self.formatter.format(resource, item, query.view))

    def update_item(self, route: RouteMatch, request: ParsedRequest) -> Outcome:
        """PATCH: body fields are merged over the stored record, then validated.

        The body's own fields are checked first so bad values never cost a
        storage call.
        """

        resource, uuid = route.params["resource"], route.params["uuid"]
        query = validate(ItemQuery, request.query)
        schema = self.registry.get_schema(resource)
        body = self._as_mapping(request.body)
        body.pop("uuid", None)
        if not declares_field(schema, "timestamp"):
            body.pop("timestamp", None)
        validate_partial(schema, body)
        existing = self._get_owned(request.user, resource, uuid)
        merged = {**existing, **body}
        merged.pop("uuid", None)
        if not declares_field(schema, "timestamp"):
            merged.pop("timestamp", None)
        payload = validate_payload(schema, merged)
        item = self.store.save(request.user, resource, payload, uuid)
        return self._response(self.formatter.format(resource, item, query.view))

    def delete_item(self, route: RouteMatch, request: ParsedRequest) -> Outcome:
        resource, uuid = route.params["resource"], route.params["uuid"]
        self._get_owned(request.user, resource, uuid)
        self.store.remove(uuid)
        return self._response({"message": "Deleted", "timestamp": now_ms()})

    def route_default(self, route: RouteMatch, request: ParsedRequest) -> Outcome:
        return self._error("Endpoint not found", 404)

    # ---- helpers ----------------------------------------------------------

    def _get_owned(self, user_id: str, resource: str, uuid: str) -> Dict[str, Any]:
        item = self.store.get_and_check_access(user_id, resource, uuid)
        if item is None:
            raise NotFoundOrForbidden("Object not found")
        return item

    @staticmethod
    def _as_mapping(body: Any) -> Dict[str, Any]:
        if not isinstance(body, dict):
            raise ValidationFailure([{
                "field": "",
                "message": "Input should be an object",
                "type": "dict_type",
            }])
        return dict(body)

    def _response(self, body: Any, status_code: int = 200) -> Outcome:
        return gateway.response(body, status_code, origin=self.origin)

    def _error(self, message: str, status_code: int, details: Optional[Dict[str, Any]] = None) -> Outcome:
        return gateway.error(message, status_code, details, origin=self.origin)
