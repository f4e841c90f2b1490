"""Read helpers over orders for agency dashboards and agent apps."""

from collections import Counter

from protean.utils.globals import current_domain

from fulfillment.money import round2, to_decimal
from fulfillment.order.order import Order, OrderStatus


class OrderQueries:
    def __init__(self, repository=None):
        self._repo = repository

    @property
    def repo(self):
        if self._repo is not None:
            return self._repo
        return current_domain.repository_for(Order)

    def get(self, order_id) -> Order:
        return self.repo.get(order_id)

    def by_number(self, order_number) -> Order | None:
        return self.repo.by_number(order_number)

    def for_agency(self, agency_id, status=None) -> list[Order]:
        return self.repo.for_agency(agency_id, status=status)

    def for_agent(self, agent_id, status=None) -> list[Order]:
        return self.repo.for_agent(agent_id, status=status)

    def agent_delivery_stats(self, agent_id) -> dict:
        """Order counts per status and the value delivered by one agent."""
        orders = self.repo.for_agent(agent_id)
        counts = Counter(order.status for order in orders)
        delivered = [order for order in orders if order.status == OrderStatus.DELIVERED.value]
        return {
            "total": len(orders),
            "by_status": {status.value: counts.get(status.value, 0) for status in OrderStatus},
            "delivered_amount": round2(sum(to_decimal(order.total_amount) for order in delivered)),
        }
