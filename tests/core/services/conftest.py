"""Service test fixtures: a mocked PostgresClient and AuditLogger."""

from unittest.mock import Mock

import pytest

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger


@pytest.fixture
def postgres():
    """PostgresClient stand-in. Tests set return values per query method."""
    return Mock(spec=PostgresClient)


@pytest.fixture
def audit():
    return Mock(spec=AuditLogger)
