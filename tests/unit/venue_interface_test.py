import pytest
from fastapi.testclient import TestClient

from helpers.config import CollectorConfig
from helpers.errors import ConfigurationError, SnapshotFetchError
from helpers.types.auth import StaticTokenProvider, Token
from tests.fake_venue import FakeVenueStorage
from tests.utils import TEST_VENUE_ID, make_order, order_payload, random_order
from venue.interface import VenueInterface


@pytest.fixture
def venue(
    config: CollectorConfig,
    token_provider: StaticTokenProvider,
    fake_venue: TestClient,
) -> VenueInterface:
    return VenueInterface.from_config(config, token_provider, test_client=fake_venue)


def test_single_page(venue: VenueInterface, venue_storage: FakeVenueStorage):
    orders = [make_order(order_id=1), make_order(order_id=2, is_buy_order=True)]
    venue_storage.set_orders(TEST_VENUE_ID, [order_payload(o) for o in orders])

    fetched = venue.get_structure_orders(TEST_VENUE_ID)
    assert fetched == orders
    assert venue_storage.requested_pages == [1]


def test_empty_order_book(venue: VenueInterface, venue_storage: FakeVenueStorage):
    assert venue.get_structure_orders(TEST_VENUE_ID) == []


def test_all_pages_fetched(venue: VenueInterface, venue_storage: FakeVenueStorage):
    venue_storage.page_size = 10
    orders = [random_order() for _ in range(45)]
    venue_storage.set_orders(TEST_VENUE_ID, [order_payload(o) for o in orders])

    fetched = venue.get_structure_orders(TEST_VENUE_ID)
    # Concurrent pages still come back in page order
    assert [o.order_id for o in fetched] == [o.order_id for o in orders]
    assert sorted(venue_storage.requested_pages) == [1, 2, 3, 4, 5]
    # Page 1 comes first to learn the page count
    assert venue_storage.requested_pages[0] == 1


def test_failing_page_fails_fetch(
    venue: VenueInterface, venue_storage: FakeVenueStorage
):
    venue_storage.page_size = 10
    venue_storage.set_orders(
        TEST_VENUE_ID, [order_payload(random_order()) for _ in range(30)]
    )
    venue_storage.failing_pages = {3}

    with pytest.raises(SnapshotFetchError) as e:
        venue.get_structure_orders(TEST_VENUE_ID)
    assert e.value.status_code == 502


def test_malformed_order_fails_fetch(
    venue: VenueInterface, venue_storage: FakeVenueStorage
):
    bad = order_payload(make_order(order_id=2))
    bad["volume_remain"] = "lots"
    venue_storage.set_orders(
        TEST_VENUE_ID, [order_payload(make_order(order_id=1)), bad]
    )
    with pytest.raises(SnapshotFetchError):
        venue.get_structure_orders(TEST_VENUE_ID)


@pytest.mark.parametrize("pages_header", ["zero", "0", "-2"])
def test_invalid_page_count(
    venue: VenueInterface, venue_storage: FakeVenueStorage, pages_header: str
):
    venue_storage.set_orders(TEST_VENUE_ID, [order_payload(make_order())])
    venue_storage.pages_header = pages_header
    with pytest.raises(SnapshotFetchError):
        venue.get_structure_orders(TEST_VENUE_ID)


def test_missing_page_count_means_one_page():
    assert VenueInterface._page_count({}) == 1
    assert VenueInterface._page_count({"X-Pages": "7"}) == 7


def test_force_refresh(venue: VenueInterface, venue_storage: FakeVenueStorage):
    venue.get_structure_orders(TEST_VENUE_ID)
    assert "cache-control" not in venue_storage.request_headers[-1]

    venue.get_structure_orders(TEST_VENUE_ID, force_refresh=True)
    assert venue_storage.request_headers[-1]["cache-control"] == "no-cache"


def test_bearer_token_sent(venue: VenueInterface, venue_storage: FakeVenueStorage):
    venue.get_structure_orders(TEST_VENUE_ID)
    assert venue_storage.request_headers[-1]["authorization"] == (
        f"Bearer {venue_storage.token}"
    )


def test_rejected_token(venue: VenueInterface, venue_storage: FakeVenueStorage):
    venue_storage.token = Token("rotated")
    with pytest.raises(SnapshotFetchError) as e:
        venue.get_structure_orders(TEST_VENUE_ID)
    assert e.value.status_code == 401


def test_forbidden(venue: VenueInterface, venue_storage: FakeVenueStorage):
    venue_storage.status_override = 403
    with pytest.raises(ConfigurationError):
        venue.get_structure_orders(TEST_VENUE_ID)


def test_missing_credential(
    config: CollectorConfig, fake_venue: TestClient
):
    venue = VenueInterface.from_config(
        config, StaticTokenProvider(), test_client=fake_venue
    )
    with pytest.raises(ConfigurationError):
        venue.get_structure_orders(TEST_VENUE_ID)


def test_missing_account(token_provider: StaticTokenProvider):
    with pytest.raises(ConfigurationError):
        VenueInterface.from_config(CollectorConfig(), token_provider)
