from abc import ABC, abstractmethod
from typing import List

from helpers.types.orders import Order, VenueId


class BaseVenueInterface(ABC):
    @abstractmethod
    def get_structure_orders(
        self, venue_id: VenueId, force_refresh: bool = False
    ) -> List[Order]:
        pass
