"""Inventory ledger: reserve and release stock within one unit of work.

The ledger is a short-lived domain service created per command. It loads each
(agency, product) record at most once, applies every reservation or release to
that in-memory aggregate, and writes the touched records back in ``commit``.
Because the check and the decrement happen on the same loaded aggregate, and
the repository rejects a save whose version is stale, two concurrent checkouts
can never both spend the same units.
"""

import structlog
from protean.utils.globals import current_domain

from fulfillment.errors import ProductUnavailable
from fulfillment.inventory.inventory import AgencyInventory

logger = structlog.get_logger(__name__)


class InventoryLedger:
    def __init__(self, repository=None):
        self._repo = repository or current_domain.repository_for(AgencyInventory)
        self._records: dict[tuple[str, str], AgencyInventory | None] = {}
        self._touched: dict[str, AgencyInventory] = {}

    def record(self, agency_id, product_id) -> AgencyInventory | None:
        key = (str(agency_id), str(product_id))
        if key not in self._records:
            self._records[key] = self._repo.for_product(*key)
        return self._records[key]

    def sellable(self, agency_id, product_id) -> AgencyInventory:
        """The active record for a product, or ProductUnavailable."""
        record = self.record(agency_id, product_id)
        if record is None or not record.is_active:
            raise ProductUnavailable(product_id)
        return record

    def resolve_price(self, agency_id, product_id, variant_label=None) -> float:
        return self.sellable(agency_id, product_id).price_for(variant_label)

    def available(self, agency_id, product_id, variant_label=None) -> int:
        return self.sellable(agency_id, product_id).available(variant_label)

    def reserve(self, agency_id, product_id, variant_label, quantity, order_id=None) -> int:
        record = self.sellable(agency_id, product_id)
        remaining = record.reserve(variant_label, quantity, order_id=order_id)
        self._touched[str(record.id)] = record
        logger.info(
            "Stock reserved",
            agency_id=str(agency_id),
            product_id=str(product_id),
            variant_label=variant_label,
            quantity=quantity,
            remaining=remaining,
        )
        return remaining

    def release(self, agency_id, product_id, variant_label, quantity, order_id=None) -> bool:
        """Add units back. A deleted record or variant is skipped, not an error."""
        record = self.record(agency_id, product_id)
        if record is None:
            logger.warning(
                "Inventory record gone, skipping stock release",
                agency_id=str(agency_id),
                product_id=str(product_id),
                variant_label=variant_label,
                quantity=quantity,
            )
            return False

        if not record.release(variant_label, quantity, order_id=order_id):
            logger.warning(
                "Variant gone, skipping stock release",
                inventory_id=str(record.id),
                variant_label=variant_label,
                quantity=quantity,
            )
            return False

        self._touched[str(record.id)] = record
        logger.info(
            "Stock released",
            inventory_id=str(record.id),
            variant_label=variant_label,
            quantity=quantity,
        )
        return True

    def commit(self):
        """Persist every record touched since the last commit."""
        for record in self._touched.values():
            self._repo.add(record)
        self._touched.clear()

    def low_stock_levels(self, agency_id, lines) -> list[dict]:
        """Low-stock rows among ``lines`` of (product_id, variant_label), read fresh from the store."""
        levels = []
        for product_id, variant_label in dict.fromkeys((str(p), label) for p, label in lines):
            record = self._repo.for_product(agency_id, product_id)
            if record is None:
                continue
            for label, stock in record.low_stock_levels():
                if record.has_variants and label != variant_label:
                    continue
                levels.append(
                    {
                        "agency_id": str(agency_id),
                        "product_id": product_id,
                        "product_name": record.product_name,
                        "variant_label": label,
                        "stock": stock,
                        "threshold": record.low_stock_threshold,
                    }
                )
        return levels
