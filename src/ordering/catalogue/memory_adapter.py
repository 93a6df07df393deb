"""In-memory catalogue used in development and tests."""

import threading

from ordering.catalogue.port import Catalogue, ProductInfo


class InMemoryCatalogue(Catalogue):
    def __init__(self, products=None) -> None:
        self._lock = threading.Lock()
        self._products: dict[str, ProductInfo] = {}
        for product in products or []:
            self.put(product)

    def put(self, product: ProductInfo) -> None:
        with self._lock:
            self._products[str(product.id)] = product

    def set_availability(self, product_id: str, is_available: bool) -> None:
        with self._lock:
            current = self._products[str(product_id)]
            self._products[str(product_id)] = ProductInfo(
                id=current.id,
                name=current.name,
                price=current.price,
                is_available=is_available,
                category=current.category,
            )

    def remove(self, product_id: str) -> None:
        with self._lock:
            self._products.pop(str(product_id), None)

    def get_product(self, product_id: str) -> ProductInfo | None:
        with self._lock:
            return self._products.get(str(product_id))


def sample_menu() -> list[ProductInfo]:
    """The house menu loaded when no catalogue is supplied."""
    return [
        ProductInfo(id="margherita", name="Margherita", price=12.99, is_available=True, category="Veg"),
        ProductInfo(id="pepperoni", name="Pepperoni", price=15.99, is_available=True, category="Non-Veg"),
        ProductInfo(id="bbq-chicken", name="BBQ Chicken", price=17.99, is_available=True, category="Non-Veg"),
        ProductInfo(id="veggie-supreme", name="Veggie Supreme", price=14.99, is_available=True, category="Veg"),
        ProductInfo(id="hawaiian", name="Hawaiian", price=16.99, is_available=True, category="Non-Veg"),
    ]
