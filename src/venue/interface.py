import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Mapping, Tuple

from fastapi.testclient import TestClient
from pydantic import ValidationError

from helpers.config import CollectorConfig
from helpers.constants import (
    ACCOUNT_ID_ENV_VAR,
    PAGE_COUNT_HEADER,
    STRUCTURE_ORDERS_URL,
)
from helpers.errors import ConfigurationError, SnapshotFetchError
from helpers.types.auth import Auth, TokenProvider
from helpers.types.orders import GetStructureOrdersResponse, Order, VenueId
from helpers.types.venue import BaseVenueInterface
from venue.connection import Connection

logger = logging.getLogger(__name__)


class VenueInterface(BaseVenueInterface):
    def __init__(self, connection: Connection, max_page_workers: int = 8):
        """This class provides a high level interface with the venue.

        It only reads. The order book of a structure comes back in pages. We
        get page 1 to learn the page count, then get the rest concurrently.

        :param Connection connection: authenticated connection to the venue
        :param int max_page_workers: upper bound on parallel page requests
        """
        self._connection = connection
        self._max_page_workers = max_page_workers

    @classmethod
    def from_config(
        cls,
        config: CollectorConfig,
        provider: TokenProvider,
        test_client: TestClient | None = None,
    ) -> "VenueInterface":
        if config.account_id is None:
            raise ConfigurationError(f"{ACCOUNT_ID_ENV_VAR} is not configured")
        connection = Connection(
            auth=Auth(provider, config.account_id),
            base_url=config.base_url,
            api_version=config.api_version,
            connection_adapter=test_client,
            timeout_seconds=config.request_timeout_seconds,
        )
        return cls(connection, max_page_workers=config.max_page_workers)

    def get_structure_orders(
        self, venue_id: VenueId, force_refresh: bool = False
    ) -> List[Order]:
        """Gets every active order at the structure.

        Fails as a whole if any page fails. A partial order book would
        look like a wave of fills to the estimator."""
        headers: Dict[str, str] = {}
        if force_refresh:
            headers["Cache-Control"] = "no-cache"

        first_page, total_pages = self._get_orders_page(venue_id, 1, headers)
        orders: List[Order] = list(first_page)
        if total_pages > 1:
            remaining = range(2, total_pages + 1)
            workers = min(self._max_page_workers, len(remaining))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                # map re-raises the first failure when we read the results
                for page in pool.map(
                    lambda p: self._get_orders_page(venue_id, p, headers)[0],
                    remaining,
                ):
                    orders.extend(page)

        logger.debug(
            "Fetched %d orders over %d pages for structure %s",
            len(orders),
            total_pages,
            venue_id,
        )
        return orders

    ######## Helpers ############

    def _get_orders_page(
        self, venue_id: VenueId, page: int, headers: Dict[str, str]
    ) -> Tuple[GetStructureOrdersResponse, int]:
        body, resp_headers = self._connection.get(
            url=STRUCTURE_ORDERS_URL.add(str(venue_id)),
            params={"page": str(page)},
            headers=headers,
        )
        try:
            response = GetStructureOrdersResponse.model_validate(body)
        except ValidationError as e:
            raise SnapshotFetchError(
                f"Malformed orders on page {page} for structure {venue_id}: {e}"
            ) from e
        return response, self._page_count(resp_headers)

    @staticmethod
    def _page_count(headers: Mapping[str, str]) -> int:
        raw = headers.get(PAGE_COUNT_HEADER)
        if raw is None:
            return 1
        try:
            pages = int(raw)
        except ValueError:
            raise SnapshotFetchError(f"Invalid {PAGE_COUNT_HEADER} header: {raw}")
        if pages < 1:
            raise SnapshotFetchError(f"Invalid {PAGE_COUNT_HEADER} header: {raw}")
        return pages
