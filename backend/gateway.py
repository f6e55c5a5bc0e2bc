"""
API Gateway envelope helpers.

`response`, `redirect` and `error` build `Outcome` objects (status code,
body, multi-value headers, base64 flag). `parse_event` and
`get_user_id_from_event` read the pieces the dispatcher needs out of an
API Gateway proxy event. The FastAPI adapter in `main.py` renders the same
`Outcome` objects as Starlette responses.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from models import Outcome, ParsedRequest


Headers = Mapping[str, List[str]]


def response(
    body: Any = "",
    status_code: int = 200,
    headers: Optional[Headers] = None,
    base64: bool = False,
    origin: Optional[str] = "*",
) -> Outcome:
    """Build a response.

    String bodies are passed through as-is (with the `base64` flag); any
    other non-None body is serialised as indented JSON and gets a JSON
    content type unless the caller set one. Redirects do not get CORS
    headers. `origin=None` disables CORS headers altogether.
    """

    if not isinstance(status_code, int) or isinstance(status_code, bool) or not 100 <= status_code <= 599:
        raise ValueError("Incorrect HTTP status code")
    redirect_status = status_code // 100 == 3
    multi_value_headers: Dict[str, List[str]] = {k: list(v) for k, v in (headers or {}).items()}
    if origin is not None and not redirect_status:
        multi_value_headers["Access-Control-Allow-Origin"] = [origin]
        multi_value_headers["Access-Control-Allow-Headers"] = ["*"]

    if body is None:
        return Outcome(status_code=status_code, multi_value_headers=multi_value_headers)
    if isinstance(body, str):
        text = body
    else:
        text = json.dumps(body, indent=2)
        multi_value_headers.setdefault("Content-Type", ["application/json"])
        base64 = False
    return Outcome(
        status_code=status_code,
        body=text,
        multi_value_headers=multi_value_headers,
        is_base64_encoded=base64,
    )


def redirect(location: str, permanent: bool = False, origin: Optional[str] = "*") -> Outcome:
    return response(None, 301 if permanent else 302, {"Location": [location]}, False, origin)


def error(
    message: str,
    status_code: int = 500,
    details: Optional[Mapping[str, Any]] = None,
    headers: Optional[Headers] = None,
    origin: Optional[str] = "*",
) -> Outcome:
    """JSON error body: `{"message", "time", **details}`."""

    time = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return response({"message": message, "time": time, **(details or {})}, status_code, headers, False, origin)


def get_user_id_from_event(event: Mapping[str, Any]) -> Optional[str]:
    """Return the Cognito `sub` claim of an API Gateway event, if any."""

    claims = (((event.get("requestContext") or {}).get("authorizer") or {}).get("claims") or {})
    return claims.get("sub") or None


def parse_event(event: Mapping[str, Any]) -> Optional[ParsedRequest]:
    """Extract method, path, body, query and user. None if the body is not JSON."""

    try:
        raw_body = event.get("body")
        return ParsedRequest(
            body=json.loads(raw_body) if raw_body else {},
            query=event.get("queryStringParameters") or {},
            method=event.get("httpMethod") or "",
            path=event.get("path") or "",
            user=get_user_id_from_event(event),
        )
    except ValueError:
        return None
