"""Notifier that writes structured log lines instead of sending messages."""

import structlog

from fulfillment.notify.port import Notifier

logger = structlog.get_logger(__name__)


class LogNotifier(Notifier):
    def order_created(self, order) -> None:
        logger.info(
            "Order created",
            order_id=str(order.id),
            order_number=order.order_number,
            agency_id=str(order.agency_id),
            total_amount=order.total_amount,
        )

    def order_status_changed(self, order, previous_status: str) -> None:
        logger.info(
            "Order status changed",
            order_id=str(order.id),
            order_number=order.order_number,
            previous_status=previous_status,
            new_status=order.status,
        )

    def low_stock(self, level: dict) -> None:
        logger.warning("Low stock", **level)

    def coupon_expired(self, coupon_id: str, code: str) -> None:
        logger.info("Coupon expired", coupon_id=coupon_id, code=code)
