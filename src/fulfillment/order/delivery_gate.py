"""OTP delivery gate: issue and verify the one-time code for a doorstep handoff.

Codes are six digits and expire after a configurable number of minutes
(10 by default). Expiry is only checked when a code is verified; nothing
sweeps stale codes. A successful verification consumes the code and marks
the order delivered.
"""

import structlog
from protean import handle
from protean.fields import Boolean, DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from fulfillment.domain import fulfillment
from fulfillment.order.order import Order
from fulfillment.order.order_number import generate_delivery_code

logger = structlog.get_logger(__name__)


@fulfillment.command(part_of="Order")
class IssueDeliveryCode:
    order_id = Identifier(required=True)
    ttl_minutes = Integer(default=10, min_value=1)
    occurred_at = DateTime()


@fulfillment.command(part_of="Order")
class VerifyDeliveryCode:
    order_id = Identifier(required=True)
    code = String(required=True, max_length=20)
    delivery_proof = String(max_length=500)
    delivery_note = String(max_length=1000)
    payment_received = Boolean()
    occurred_at = DateTime()


@fulfillment.command_handler(part_of=Order)
class DeliveryGateHandler:
    @handle(IssueDeliveryCode)
    def issue_delivery_code(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        previous = order.status
        code = generate_delivery_code()
        expires_at = order.issue_delivery_code(code, now=command.occurred_at, ttl_minutes=command.ttl_minutes)
        repo.add(order)
        logger.info("Delivery code issued", order_id=str(order.id), expires_at=expires_at.isoformat())
        return {"code": code, "expires_at": expires_at, "previous_status": previous}

    @handle(VerifyDeliveryCode)
    def verify_delivery_code(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        previous = order.status
        order.complete_delivery(
            command.code,
            now=command.occurred_at,
            delivery_proof=command.delivery_proof,
            delivery_note=command.delivery_note,
            payment_received=command.payment_received,
        )
        repo.add(order)
        logger.info("Order delivered", order_id=str(order.id), payment_status=order.payment_status)
        return previous
