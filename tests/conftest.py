from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from fakes import make_services
from ideabox.app import create_app
from ideabox.config import get_settings
from ideabox.services import Services


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    """Ensure cached settings do not leak between tests."""

    get_settings.cache_clear()


@pytest.fixture
def services() -> Services:
    return make_services()


@pytest.fixture
def client(services: Services) -> Iterator[TestClient]:
    with TestClient(create_app(services)) as test_client:
        yield test_client
