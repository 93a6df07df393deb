"""Catalogue port.

The ordering core never owns menu data; it asks a catalogue collaborator for
the current price and availability of each product at checkout time.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ProductInfo:
    id: str
    name: str
    price: float
    is_available: bool
    category: str


class Catalogue(ABC):
    @abstractmethod
    def get_product(self, product_id: str) -> ProductInfo | None:
        """Return the product, or None when it does not exist."""
        ...
