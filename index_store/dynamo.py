"""
DynamoDB gateway for the index table.

Provides:
- Batch read of slot records
- Single-item update (expression placeholders, conditional writes)
- Batch full-item overwrite
- Classification of DynamoDB client errors into the tag index taxonomy
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from tag_index.errors import (
    ConditionalCheckFailedError,
    MissingFieldPathError,
    StorageError,
)
from tag_index.metrics import Metrics
from tag_index.settings import Settings
from tag_index.updater import UpdateRequest

logger = logging.getLogger(__name__)

# DynamoDB reports a SET on a nested path whose parent map is absent this way
INVALID_DOCUMENT_PATH = "the document path provided in the update expression is invalid for update"


def classify_client_error(err: ClientError) -> StorageError:
    """
    Map a botocore ClientError onto the tag index error classes.

    Only a ValidationException carrying the invalid-document-path message
    becomes MissingFieldPathError, the one error the update engine retries.
    """
    error = err.response.get("Error", {})
    code = error.get("Code", "")
    message = error.get("Message", "") or str(err)
    if code == "ValidationException" and INVALID_DOCUMENT_PATH in message.lower():
        return MissingFieldPathError(message, code=code)
    if code == "ConditionalCheckFailedException":
        return ConditionalCheckFailedError(message, code=code)
    return StorageError(f"{code}: {message}" if code else message, code=code)


class DynamoIndexGateway:
    """
    Storage gateway over a boto3 DynamoDB service resource.

    Usage:
        gateway = DynamoIndexGateway.from_settings(Settings.load())
        items = gateway.batch_get([{"id": "tags"}, {"id": "people"}])
    """

    def __init__(self, table_name: str, resource: Any, metrics: Optional[Metrics] = None):
        self.table_name = table_name
        self.resource = resource
        self.table = resource.Table(table_name)
        self.metrics = metrics or Metrics()

    @staticmethod
    def from_settings(
        settings: Settings,
        *,
        metrics: Optional[Metrics] = None,
        resource: Any = None,
    ) -> DynamoIndexGateway:
        """
        Create gateway from service configuration.

        Args:
            settings: Loaded settings (table name, region, endpoint)
            metrics: Optional shared metrics instance
            resource: Optional pre-built DynamoDB resource

        Returns:
            Configured DynamoIndexGateway
        """
        if resource is None:
            kwargs: Dict[str, str] = {}
            if settings.AWS_REGION:
                kwargs["region_name"] = settings.AWS_REGION
            if settings.DYNAMODB_ENDPOINT_URL:
                kwargs["endpoint_url"] = settings.DYNAMODB_ENDPOINT_URL
            resource = boto3.resource("dynamodb", **kwargs)
        return DynamoIndexGateway(settings.DYNAMODB_TABLE_INDEXES, resource, metrics)

    def _fail(self, err: Exception, operation: str) -> StorageError:
        if isinstance(err, ClientError):
            classified = classify_client_error(err)
        else:
            classified = StorageError(str(err))
        if type(classified) is StorageError:
            self.metrics.inc("storage_errors_total")
            logger.error(f"{operation} on {self.table_name} failed: {classified}")
        else:
            logger.debug(f"{operation} on {self.table_name}: {type(classified).__name__}")
        return classified

    def batch_get(self, keys: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Fetch items by primary key in one request.

        Returns:
            Items found (missing keys are simply absent)

        Raises:
            StorageError: On request failure or unprocessed keys
        """
        try:
            resp = self.resource.batch_get_item(
                RequestItems={self.table_name: {"Keys": keys, "ConsistentRead": True}}
            )
        except (ClientError, BotoCoreError) as e:
            raise self._fail(e, "BatchGetItem") from e

        unprocessed = resp.get("UnprocessedKeys") or {}
        if unprocessed.get(self.table_name):
            self.metrics.inc("storage_errors_total")
            raise StorageError(
                f"BatchGetItem left unprocessed keys on {self.table_name}",
                code="UnprocessedKeys",
            )
        return list(resp.get("Responses", {}).get(self.table_name, []))

    def update(self, request: UpdateRequest) -> Dict[str, Any]:
        """
        Submit a single-item update.

        Returns:
            Item attributes as requested by the request's ReturnValues

        Raises:
            MissingFieldPathError: Nested counter map absent on the item
            ConditionalCheckFailedError: Condition expression did not hold
            StorageError: Any other failure
        """
        t0 = time.time()
        try:
            resp = self.table.update_item(**request.to_kwargs())
        except (ClientError, BotoCoreError) as e:
            raise self._fail(e, "UpdateItem") from e
        self.metrics.observe("update_latency_ms", (time.time() - t0) * 1000.0)
        return resp.get("Attributes", {})

    def batch_put(self, items: List[Dict[str, Any]]) -> None:
        """
        Overwrite whole items in one request.

        Raises:
            StorageError: On request failure or unprocessed items
        """
        try:
            resp = self.resource.batch_write_item(
                RequestItems={
                    self.table_name: [{"PutRequest": {"Item": item}} for item in items]
                }
            )
        except (ClientError, BotoCoreError) as e:
            raise self._fail(e, "BatchWriteItem") from e

        unprocessed = resp.get("UnprocessedItems") or {}
        if unprocessed.get(self.table_name):
            self.metrics.inc("storage_errors_total")
            raise StorageError(
                f"BatchWriteItem left unprocessed items on {self.table_name}",
                code="UnprocessedItems",
            )
