"""Request snapshots from FastAPI / Starlette requests"""

import logging
from typing import Any, Dict, Optional

from fastapi import Request

from ..models.report import RequestSnapshot, UserContext

logger = logging.getLogger(__name__)


def authenticated_user(request: Request) -> Optional[UserContext]:
    """
    User set by an authentication middleware, if any

    Reads request.user only when an AuthenticationMiddleware populated it.
    """
    if "user" not in request.scope:
        return None

    user = request.scope["user"]
    if not getattr(user, "is_authenticated", False):
        return None

    return UserContext(
        id=getattr(user, "id", None) or getattr(user, "identity", None),
        email=getattr(user, "email", None),
        name=getattr(user, "name", None) or getattr(user, "display_name", None),
    )


def _headers(request: Request) -> Dict[str, list]:
    """All header values, grouped by lowercase name"""
    headers: Dict[str, list] = {}
    for name, value in request.headers.items():
        headers.setdefault(name.lower(), []).append(value)
    return headers


async def _json_body(request: Request) -> Dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if "application/json" not in content_type:
        return {}

    try:
        body = await request.json()
    except (ValueError, RuntimeError) as e:
        # Malformed JSON, or the body stream is no longer available
        logger.debug(f"Request body not included in error report: {e}")
        return {}

    return body if isinstance(body, dict) else {"_body": body}


async def snapshot_request(request: Request, include_body: bool = True) -> RequestSnapshot:
    """
    Capture what the error report needs from the current request

    Args:
        request: FastAPI / Starlette request
        include_body: Also read a JSON body into the input map

    Returns:
        Unsanitized RequestSnapshot
    """
    request_input: Dict[str, Any] = dict(request.query_params)
    if include_body:
        request_input.update(await _json_body(request))

    return RequestSnapshot(
        url=str(request.url),
        method=request.method,
        input=request_input,
        headers=_headers(request),
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        user=authenticated_user(request),
    )
