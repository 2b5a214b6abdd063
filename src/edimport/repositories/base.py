"""Repository interfaces for catalog persistence."""

from typing import Protocol, Sequence

from edimport.codes import Language
from edimport.models import DiscountRecord, PriceRecord, ProductRecord


class CatalogRepository(Protocol):
    """Persistence operations required by the import service.

    Every save runs in its own transaction per category; implementations
    raise `StorageWriteFailed` after rolling back.
    """

    def register_seller(self, seller_id: str, name: str) -> None:
        ...

    def save_products(
        self, seller_id: str, language: Language, products: Sequence[ProductRecord]
    ) -> None:
        ...

    def save_prices(self, seller_id: str, prices: Sequence[PriceRecord]) -> None:
        ...

    def save_discounts(
        self,
        buyer_id: str,
        seller_id: str,
        vat_percent: float,
        discounts: Sequence[DiscountRecord],
    ) -> str:
        """Create the buyer account if needed and upsert its discounts.

        Returns the buyer account key.
        """
        ...

    def discount_groups(self) -> set[str]:
        ...

    def price_groups(self) -> set[str]:
        ...
