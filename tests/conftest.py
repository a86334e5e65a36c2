"""Shared fixtures for the hmip-sync test suite."""

from __future__ import annotations

from pathlib import Path

import pytest

from hmip_sync.accessories import AccessoryCache, AccessoryRegistry
from hmip_sync.engine import ReconciliationEngine
from tests.helpers import SHUTTER_PAYLOAD, FakeGateway, make_snapshot


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway(make_snapshot(SHUTTER_PAYLOAD))


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    return tmp_path / "storage"


@pytest.fixture
def registry(storage_dir: Path) -> AccessoryRegistry:
    return AccessoryRegistry(storage_dir)


@pytest.fixture
def cache() -> AccessoryCache:
    return AccessoryCache()


@pytest.fixture
def engine(
    gateway: FakeGateway, cache: AccessoryCache, registry: AccessoryRegistry
) -> ReconciliationEngine:
    return ReconciliationEngine(gateway, cache, registry)
