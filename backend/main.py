import base64
import json
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

import gateway
from dispatcher import RequestDispatcher
from models import Outcome, ParsedRequest
from registry import ResourceRegistry
from repo_memory import MemoryRecordRepo
from repo_records import RecordRepo
from resources import register_resources
from settings import settings
from store import OwnershipStore

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def build_dispatcher() -> RequestDispatcher:
    """Registry + storage + dispatcher, wired from `settings`."""

    registry = register_resources(ResourceRegistry())
    if settings.storage_backend == "memory":
        transport = MemoryRecordRepo()
    else:
        transport = RecordRepo()
    logger.info("serving %s with %s storage", ", ".join(registry.names()), settings.storage_backend)
    return RequestDispatcher(registry, OwnershipStore(transport))


async def parse_request(request: Request) -> ParsedRequest | None:
    """Starlette request -> ParsedRequest. None if the body is not valid JSON."""

    raw = await request.body()
    try:
        body = json.loads(raw) if raw else {}
    except ValueError:
        return None
    return ParsedRequest(
        method=request.method,
        path=request.url.path,
        user=request.headers.get(settings.user_header) or None,
        body=body,
        query=dict(request.query_params),
    )


def render(outcome: Outcome) -> Response:
    content = outcome.body or b""
    if outcome.body and outcome.is_base64_encoded:
        content = base64.b64decode(outcome.body)
    res = Response(content=content, status_code=outcome.status_code)
    for name, values in outcome.multi_value_headers.items():
        for value in values:
            res.headers.append(name, value)
    return res


def create_app(dispatcher: RequestDispatcher) -> FastAPI:
    # Routes stay thin: everything below /health goes through the dispatcher,
    # so the HTTP app and the Lambda entry point behave the same.
    app = FastAPI(title="Owned Resources API")
    app.state.dispatcher = dispatcher

    @app.get("/health")
    def health():
        try:
            dispatcher.store.ping()
            return {"ok": True}
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Storage health check failed: {e}")

    @app.api_route("/{path:path}", methods=METHODS)
    async def dispatch(request: Request):
        parsed = await parse_request(request)
        return render(await run_in_threadpool(dispatcher.process_request, parsed))

    return app


dispatcher = build_dispatcher()
app = create_app(dispatcher)


def lambda_handler(event, context):
    """API Gateway proxy entry point."""

    return dispatcher.process_request(gateway.parse_event(event)).to_gateway()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level=settings.log_level.lower())
