"""Pytest bootstrap configuration.

Ensure mandatory environment variables are set before test collection
and module imports that depend on application settings.
"""
import os
import tempfile

# Mandatory secret key for settings validation
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault(
    "DATABASE__URL",
    "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "storefront_checkout_test.db"),
)
os.environ.setdefault("CHECKOUT__NOTIFY_ON_ORDER", "false")
os.environ.setdefault("PAYMENT__DEFAULT_PROVIDER", "mock")

import pytest  # noqa: E402

from tests.fakes import FakeGateway, Store, build_services  # noqa: E402


@pytest.fixture
def store() -> Store:
    return Store()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def services(store, gateway):
    return build_services(store, gateway)
