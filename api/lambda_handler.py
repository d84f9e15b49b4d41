"""
AWS Lambda entry points for API Gateway proxy integration.

Handlers:
    api.lambda_handler.get_item  - read both indexes (pruning on the way)
    api.lambda_handler.put_item  - apply {"indexUpdate": {"tags": {...}, "people": {...}}}

The service is built once per container from the environment. A missing
DYNAMODB_TABLE_INDEXES raises ConfigurationError out of the handler.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Dict, Optional, Union

from api.responses import failure, failure_status, success
from tag_index.errors import MalformedRequestError, TagIndexError
from tag_index.models import parse_put_request
from tag_index.service import IndexService
from tag_index.settings import Settings, configure_logging

logger = logging.getLogger(__name__)

_service: Optional[IndexService] = None


def get_service() -> IndexService:
    global _service
    if _service is None:
        settings = Settings.load()
        configure_logging(settings.LOG_LEVEL)
        _service = IndexService.from_settings(settings)
    return _service


def _event_body(event: Dict[str, Any]) -> Union[str, bytes, None]:
    body = event.get("body")
    if body is not None and event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedRequestError(f"Request body is not valid base64: {e}") from e
    return body


def get_item(event: Dict[str, Any], context: Any, service: Optional[IndexService] = None) -> Dict[str, Any]:
    service = service or get_service()
    try:
        result = service.read()
        return success(result.to_dict())
    except TagIndexError as e:
        logger.error(f"Index read failed: {e}")
        return failure(e, failure_status(e))
    except Exception as e:
        logger.exception("Unexpected error during index read")
        return failure(e)


def put_item(event: Dict[str, Any], context: Any, service: Optional[IndexService] = None) -> Dict[str, Any]:
    service = service or get_service()
    event = event or {}
    try:
        request = parse_put_request(_event_body(event))
        results = service.update(request.index_update)
        body: Dict[str, Any] = {"requestBody": request.model_dump(by_alias=True)}
        body.update({slot: result.to_dict() for slot, result in results.items()})
        return success(body)
    except TagIndexError as e:
        logger.error(f"Index update failed: {e} (body={event.get('body')!r})")
        return failure(e, failure_status(e))
    except Exception as e:
        logger.exception("Unexpected error during index update")
        return failure(e)
