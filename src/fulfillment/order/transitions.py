"""Order transitions: commands and handler for admin, agency and customer actions.

Each handler returns the status the order had before the transition, so
the caller can announce the change once the unit of work has committed.
Cancellation and return put every line item back into the agency's
inventory within the same unit of work as the status change: if a release
cannot be written, the order keeps its previous status and the command can
be retried.
"""

import structlog
from protean import handle
from protean.fields import Boolean, DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from fulfillment.agency.agency import DeliveryAgent
from fulfillment.domain import fulfillment
from fulfillment.inventory.ledger import InventoryLedger
from fulfillment.order.actor import Attribution
from fulfillment.order.order import Order

logger = structlog.get_logger(__name__)


@fulfillment.command(part_of="Order")
class ConfirmOrder:
    order_id = Identifier(required=True)
    admin_notes = Text()
    occurred_at = DateTime()


@fulfillment.command(part_of="Order")
class AssignAgent:
    order_id = Identifier(required=True)
    agent_id = Identifier(required=True)
    agent_notes = Text()
    occurred_at = DateTime()


@fulfillment.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)
    actor_role = String(required=True, max_length=20)
    actor_id = Identifier()
    actor_name = String(required=True, max_length=255)
    actor_email = String(max_length=255)
    admin_notes = Text()
    occurred_at = DateTime()


@fulfillment.command(part_of="Order")
class ReturnOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)
    actor_role = String(required=True, max_length=20)
    actor_id = Identifier()
    actor_name = String(required=True, max_length=255)
    actor_email = String(max_length=255)
    occurred_at = DateTime()


@fulfillment.command(part_of="Order")
class RecordPickupPayment:
    order_id = Identifier(required=True)
    payment_received = Boolean(default=True)
    payment_note = String(max_length=500)
    occurred_at = DateTime()


def _attribution(command) -> Attribution:
    return Attribution(
        role=command.actor_role,
        actor_id=command.actor_id,
        display_name=command.actor_name,
        email=command.actor_email,
    )


def _release_items(order):
    ledger = InventoryLedger()
    for item in order.items:
        ledger.release(
            order.agency_id,
            item.product_id,
            item.variant_label,
            item.quantity,
            order_id=str(order.id),
        )
    ledger.commit()


@fulfillment.command_handler(part_of=Order)
class OrderTransitionHandler:
    @handle(ConfirmOrder)
    def confirm_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous = order.status
        order.confirm(now=command.occurred_at, admin_notes=command.admin_notes)
        repo.add(order)
        return previous

    @handle(AssignAgent)
    def assign_agent(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        agent = current_domain.repository_for(DeliveryAgent).get(command.agent_id)

        previous = order.status
        order.assign(agent, now=command.occurred_at, agent_notes=command.agent_notes)
        repo.add(order)
        logger.info("Agent assigned", order_id=str(order.id), agent_id=str(agent.id))
        return previous

    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        previous = order.status
        order.cancel(
            _attribution(command),
            reason=command.reason,
            now=command.occurred_at,
            admin_notes=command.admin_notes,
        )
        _release_items(order)
        repo.add(order)
        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            previous_status=previous,
            actor_role=command.actor_role,
        )
        return previous

    @handle(ReturnOrder)
    def return_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        previous = order.status
        order.return_order(_attribution(command), reason=command.reason, now=command.occurred_at)
        _release_items(order)
        repo.add(order)
        logger.info("Order returned", order_id=str(order.id), actor_role=command.actor_role)
        return previous

    @handle(RecordPickupPayment)
    def record_pickup_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        previous = order.status
        order.record_pickup_payment(
            now=command.occurred_at,
            payment_received=command.payment_received,
            payment_note=command.payment_note,
        )
        repo.add(order)
        return previous
