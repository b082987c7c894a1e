"""
Inventory Service Fixtures

- client: session-wide TestClient running the test app lifespan (DI wiring)
- clean_inventory_store: empties the container's memory store and status cache
"""

from collections.abc import Generator
from typing import Any

from fastapi.testclient import TestClient
import pytest

from src.platform.config.di import container


__all__ = ['client', 'clean_inventory_store']


@pytest.fixture(scope='session')
def client() -> Generator[Any, None, None]:
    from test.test_main import app

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def clean_inventory_store() -> Generator[None, None, None]:
    container.memory_store().clear()
    container.status_facade().invalidate()
    yield
    container.memory_store().clear()
    container.status_facade().invalidate()
