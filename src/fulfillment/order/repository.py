"""Repository for the Order aggregate."""

from fulfillment.domain import fulfillment
from fulfillment.order.order import Order


@fulfillment.repository(part_of=Order)
class OrderRepository:
    def by_number(self, order_number) -> Order | None:
        results = self._dao.query.filter(order_number=order_number).all().items
        return results[0] if results else None

    def for_agency(self, agency_id, status=None) -> list[Order]:
        filters = {"agency_id": str(agency_id)}
        if status:
            filters["status"] = status
        return self._dao.query.filter(**filters).order_by("-created_at").all().items

    def for_agent(self, agent_id, status=None) -> list[Order]:
        filters = {"assigned_agent_id": str(agent_id)}
        if status:
            filters["status"] = status
        return self._dao.query.filter(**filters).order_by("-created_at").all().items

    def count_for_agency(self, agency_id) -> int:
        return self._dao.query.filter(agency_id=str(agency_id)).all().total
