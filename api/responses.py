"""
Response envelopes shared by the Lambda handlers and the HTTP API.

Two shapes only: success (result payload) and failure (error payload).
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Dict

from tag_index.errors import MalformedRequestError

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Credentials": True,
}


def _default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return int(obj) if obj == obj.to_integral_value() else float(obj)
    if hasattr(obj, "model_dump"):
        return obj.model_dump(by_alias=True)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def build_response(status_code: int, body: Any) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": dict(CORS_HEADERS),
        "body": json.dumps(body, default=_default),
    }


def success(body: Any) -> Dict[str, Any]:
    return build_response(200, body)


def failure(err: Exception, status_code: int = 500) -> Dict[str, Any]:
    return build_response(
        status_code,
        {"error": {"type": type(err).__name__, "message": str(err)}},
    )


def failure_status(err: Exception) -> int:
    """400 for bad input, 500 for everything else."""
    return 400 if isinstance(err, MalformedRequestError) else 500
