import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from data.collection.structure_orders import StructureOrderCollector
from data.store.interface import StoreInterface
from helpers.config import CollectorConfig
from helpers.constants import STRUCTURE_MARKETS_SCOPE
from helpers.types.auth import (
    Credential,
    RefreshToken,
    Scope,
    StaticTokenProvider,
)
from tests.fake_venue import FAKE_TOKEN, FakeVenueStorage, fake_venue_factory
from tests.utils import TEST_ACCOUNT_ID, TEST_VENUE_ID

"""This file contains configuration information for testing.
Please place any test fixtures in this file"""


@pytest.fixture(autouse=True)
def env_vars():
    """Tests never see the collector settings of the machine they run on"""
    old_environ = dict(os.environ)
    for name in list(os.environ):
        if name.startswith("STRUCTURE_GATHER_"):
            del os.environ[name]
    try:
        yield
    finally:
        os.environ.clear()
        os.environ.update(old_environ)


@pytest.fixture
def fake_venue():
    app = fake_venue_factory()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def venue_storage(fake_venue: TestClient) -> FakeVenueStorage:
    return fake_venue.app.state.storage  # type:ignore[attr-defined]


@pytest.fixture
def credential() -> Credential:
    return Credential(
        account_id=TEST_ACCOUNT_ID,
        access_token=FAKE_TOKEN,
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=20),
        scopes=[Scope(STRUCTURE_MARKETS_SCOPE)],
        refresh_token=RefreshToken("fake-refresh-token"),
    )


@pytest.fixture
def token_provider(credential: Credential) -> StaticTokenProvider:
    return StaticTokenProvider([credential])


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'structure_orders.db'}"


@pytest.fixture
def store(database_url: str):
    store = StoreInterface(database_url)
    store.create_tables()
    yield store
    store.dispose()


@pytest.fixture
def config(database_url: str) -> CollectorConfig:
    return CollectorConfig(
        enabled=True,
        venue_id=TEST_VENUE_ID,
        account_id=TEST_ACCOUNT_ID,
        database_url=database_url,
        lock_timeout_seconds=0.5,
    )


@pytest.fixture
def collector(
    config: CollectorConfig,
    token_provider: StaticTokenProvider,
    fake_venue: TestClient,
):
    collector = StructureOrderCollector.from_config(
        config, token_provider, test_client=fake_venue
    )
    yield collector
    collector.store.dispose()
