"""Repository for the AgencyInventory aggregate."""

from fulfillment.domain import fulfillment
from fulfillment.inventory.inventory import AgencyInventory


@fulfillment.repository(part_of=AgencyInventory)
class AgencyInventoryRepository:
    def for_product(self, agency_id, product_id) -> AgencyInventory | None:
        """The stock record of ``product_id`` at ``agency_id``, if the agency stocks it."""
        results = self._dao.query.filter(agency_id=str(agency_id), product_id=str(product_id)).all().items
        return results[0] if results else None

    def for_agency(self, agency_id) -> list[AgencyInventory]:
        return self._dao.query.filter(agency_id=str(agency_id)).all().items
