"""
Shared fixtures: a fake DynamoDB resource wired through the real gateway.
"""

import pytest

from fakes import FIXED_NOW, TABLE_NAME, FakeDynamoResource
from index_store.dynamo import DynamoIndexGateway
from tag_index.metrics import Metrics
from tag_index.service import IndexService


@pytest.fixture
def resource():
    return FakeDynamoResource()


@pytest.fixture
def table(resource):
    return resource.Table(TABLE_NAME)


@pytest.fixture
def metrics():
    return Metrics()


@pytest.fixture
def gateway(resource, metrics):
    return DynamoIndexGateway(TABLE_NAME, resource, metrics)


@pytest.fixture
def service(gateway, metrics):
    return IndexService(gateway, metrics, clock=lambda: FIXED_NOW)
