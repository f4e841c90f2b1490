"""Order aggregate (CQRS): the core of the fulfillment domain.

An order is created once at checkout with every money field frozen, and from
then on only changes through the state machine below. Line items are
snapshots of what was charged and are never re-derived from inventory.

State Machine:
    pending → confirmed → assigned → out_for_delivery → delivered → returned
    pending → assigned                 (confirmation is optional)
    any state before delivered → cancelled
    pickup orders: any state before delivered → delivered (counter payment)

``assigned → out_for_delivery`` happens when a delivery code is issued, and
``out_for_delivery → delivered`` only after that code is verified.
Cancelled and returned are terminal.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, Text

from fulfillment.domain import fulfillment
from fulfillment.errors import ActorNotPermitted, InvalidOrExpired, InvalidTransition, NotIssuable
from fulfillment.money import round2, to_decimal
from fulfillment.order.actor import ActorRole
from fulfillment.order.events import (
    AgentAssigned,
    DeliveryCodeIssued,
    DeliveryCodeVerified,
    OrderCancelled,
    OrderConfirmed,
    OrderDelivered,
    OrderPlaced,
    OrderReturned,
    OutForDelivery,
)
from fulfillment.pricing.policies import TaxType


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ASSIGNED = "assigned"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class DeliveryMode(Enum):
    HOME_DELIVERY = "home_delivery"
    PICKUP = "pickup"


class PaymentStatus(Enum):
    UNPAID = "unpaid"
    PAID = "paid"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.ASSIGNED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.ASSIGNED, OrderStatus.CANCELLED},
    OrderStatus.ASSIGNED: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.RETURNED: set(),  # Terminal
}

# States from which a pickup order can be settled at the counter
_PICKUP_SETTLEABLE = {
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.ASSIGNED,
    OrderStatus.OUT_FOR_DELIVERY,
}


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@fulfillment.entity(part_of="Order")
class OrderItem:
    """What was charged for one line, frozen at checkout."""

    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    variant_label = String(max_length=50)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    product_amount = Float(required=True, min_value=0.0)
    tax_amount = Float(default=0.0)
    platform_charge = Float(default=0.0)
    total = Float(required=True, min_value=0.0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@fulfillment.aggregate
class Order:
    order_number = String(required=True, max_length=30, unique=True)
    agency_id = Identifier(required=True)

    # Customer snapshot
    customer_id = Identifier()
    customer_name = String(required=True, max_length=255)
    customer_email = String(required=True, max_length=255)
    customer_phone = String(required=True, max_length=20)
    customer_address = String(max_length=500)
    delivery_mode = String(required=True, choices=DeliveryMode)
    payment_method = String(max_length=30, default="cash")

    items = HasMany(OrderItem)

    # Money, frozen at checkout
    subtotal = Float(required=True, min_value=0.0)
    tax_type = String(choices=TaxType, default=TaxType.NONE.value)
    tax_value = Float(default=0.0)
    tax_amount = Float(default=0.0)
    platform_charge = Float(default=0.0)
    delivery_charge = Float(default=0.0)
    delivery_distance = Float()
    coupon_code = String(max_length=50)
    coupon_discount = Float(default=0.0)
    total_amount = Float(required=True, min_value=0.0)

    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    assigned_agent_id = Identifier()

    # Lifecycle timestamps
    created_at = DateTime()
    updated_at = DateTime()
    confirmed_at = DateTime()
    assigned_at = DateTime()
    out_for_delivery_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    returned_at = DateTime()

    # Attribution, captured once at the terminal transition
    cancelled_by_role = String(max_length=20)
    cancelled_by_id = Identifier()
    cancelled_by_name = String(max_length=255)
    cancellation_reason = String(max_length=500)
    returned_by_role = String(max_length=20)
    returned_by_id = Identifier()
    returned_by_name = String(max_length=255)
    return_reason = String(max_length=500)

    # Delivery artifacts
    delivery_code = String(max_length=6)
    delivery_code_expires_at = DateTime()
    delivery_proof = String(max_length=500)
    delivery_note = String(max_length=1000)
    payment_received = Boolean(default=False)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.UNPAID.value)

    admin_notes = Text()
    agent_notes = Text()

    @invariant.post
    def total_reconciles_with_components(self):
        expected = round2(
            to_decimal(self.subtotal)
            + to_decimal(self.tax_amount)
            + to_decimal(self.platform_charge)
            + to_decimal(self.delivery_charge)
            - to_decimal(self.coupon_discount)
        )
        if abs(to_decimal(expected) - to_decimal(self.total_amount)) > to_decimal("0.005"):
            raise ValidationError({"total_amount": ["Total does not reconcile with its components"]})

    @invariant.post
    def home_delivery_needs_an_address(self):
        if self.delivery_mode == DeliveryMode.HOME_DELIVERY.value and not (self.customer_address or "").strip():
            raise ValidationError({"customer_address": ["Address is required for home delivery"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        agency_id,
        customer,
        delivery_mode,
        breakdown,
        payment_method=None,
        now=None,
    ):
        """Create a pending order from a priced checkout.

        Args:
            customer: Dict with name, email, phone, and optionally id and address.
            breakdown: PriceBreakdown produced by the pricing calculator.
        """
        now = now or datetime.now(UTC)
        order = cls(
            order_number=order_number,
            agency_id=agency_id,
            customer_id=customer.get("id"),
            customer_name=customer["name"],
            customer_email=customer["email"].strip().lower(),
            customer_phone=customer["phone"],
            customer_address=customer.get("address"),
            delivery_mode=delivery_mode,
            payment_method=payment_method or "cash",
            subtotal=breakdown.subtotal,
            tax_type=breakdown.tax_type,
            tax_value=breakdown.tax_value,
            tax_amount=breakdown.tax_amount,
            platform_charge=breakdown.platform_charge,
            delivery_charge=breakdown.delivery_charge,
            delivery_distance=breakdown.delivery_distance,
            coupon_code=breakdown.coupon_code,
            coupon_discount=breakdown.coupon_discount,
            total_amount=breakdown.total_amount,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.UNPAID.value,
            created_at=now,
            updated_at=now,
        )
        for line in breakdown.lines:
            order.add_items(
                OrderItem(
                    product_id=line.product_id,
                    product_name=line.product_name,
                    variant_label=line.variant_label,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    product_amount=line.product_amount,
                    tax_amount=line.tax_amount,
                    platform_charge=line.platform_charge,
                    total=line.total,
                )
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                agency_id=str(agency_id),
                customer_email=order.customer_email,
                delivery_mode=delivery_mode,
                items=json.dumps([order._snapshot(item) for item in order.items]),
                item_count=len(order.items),
                subtotal=order.subtotal,
                tax_amount=order.tax_amount,
                platform_charge=order.platform_charge,
                delivery_charge=order.delivery_charge,
                coupon_code=order.coupon_code,
                coupon_discount=order.coupon_discount,
                total_amount=order.total_amount,
                placed_at=now,
            )
        )
        return order

    @staticmethod
    def _snapshot(item) -> dict:
        return {
            "product_id": str(item.product_id),
            "product_name": item.product_name,
            "variant_label": item.variant_label,
            "unit_price": item.unit_price,
            "quantity": item.quantity,
            "total": item.total,
        }

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def is_pickup(self) -> bool:
        return self.delivery_mode == DeliveryMode.PICKUP.value

    def _assert_can_transition(self, target: OrderStatus):
        current = self.current_status
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(current.value, target.value)

    def _append_note(self, field_name, note):
        if not note:
            return
        existing = getattr(self, field_name)
        setattr(self, field_name, f"{existing}\n{note}" if existing else note)

    def owned_by(self, attribution) -> bool:
        if self.customer_id and attribution.actor_id and str(self.customer_id) == str(attribution.actor_id):
            return True
        return bool(attribution.email) and attribution.email.strip().lower() == self.customer_email

    def _assert_customer_owns(self, attribution, action):
        if attribution.role == ActorRole.CUSTOMER.value and not self.owned_by(attribution):
            raise ActorNotPermitted(f"Customers can only {action} their own orders")

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def confirm(self, now=None, admin_notes=None):
        """Administrative acknowledgment of a pending order."""
        self._assert_can_transition(OrderStatus.CONFIRMED)
        now = now or datetime.now(UTC)

        self.status = OrderStatus.CONFIRMED.value
        self.confirmed_at = now
        self.updated_at = now
        self._append_note("admin_notes", admin_notes)
        self.raise_(OrderConfirmed(order_id=str(self.id), confirmed_at=now))

    def assign(self, agent, now=None, agent_notes=None):
        """Hand the order to a delivery agent of the same agency."""
        self._assert_can_transition(OrderStatus.ASSIGNED)
        if str(agent.agency_id) != str(self.agency_id):
            raise ValidationError({"agent_id": ["Delivery agent belongs to a different agency"]})

        now = now or datetime.now(UTC)
        previous = self.status
        self.status = OrderStatus.ASSIGNED.value
        self.assigned_agent_id = str(agent.id)
        self.assigned_at = now
        self.updated_at = now
        self._append_note("agent_notes", agent_notes)
        self.raise_(
            AgentAssigned(
                order_id=str(self.id),
                agent_id=str(agent.id),
                previous_status=previous,
                assigned_at=now,
            )
        )

    def issue_delivery_code(self, code, now=None, ttl_minutes=10):
        """Store a one-time code for the doorstep handoff.

        Re-issuing while out for delivery replaces the previous code. Issuing
        for an assigned order also sends it out for delivery.
        """
        if self.is_pickup:
            raise NotIssuable("Delivery codes are only issued for home delivery orders")

        current = self.current_status
        if current not in (OrderStatus.ASSIGNED, OrderStatus.OUT_FOR_DELIVERY):
            raise NotIssuable(f"Cannot issue a delivery code for an order that is {current.value}")

        now = now or datetime.now(UTC)
        expires_at = now + timedelta(minutes=ttl_minutes)

        if current == OrderStatus.ASSIGNED:
            self.status = OrderStatus.OUT_FOR_DELIVERY.value
            self.out_for_delivery_at = now
            self.raise_(
                OutForDelivery(
                    order_id=str(self.id),
                    agent_id=self.assigned_agent_id,
                    out_for_delivery_at=now,
                )
            )

        self.delivery_code = code
        self.delivery_code_expires_at = expires_at
        self.updated_at = now
        self.raise_(DeliveryCodeIssued(order_id=str(self.id), expires_at=expires_at, issued_at=now))
        return expires_at

    def verify_delivery_code(self, code, now=None):
        """Check a supplied code. A successful check consumes the code."""
        now = now or datetime.now(UTC)
        if (
            not self.delivery_code
            or self.delivery_code_expires_at is None
            or _aware(now) > _aware(self.delivery_code_expires_at)
            or str(code).strip() != self.delivery_code
        ):
            raise InvalidOrExpired()

        self.delivery_code = None
        self.delivery_code_expires_at = None
        self.updated_at = now
        self.raise_(DeliveryCodeVerified(order_id=str(self.id), verified_at=now))

    def complete_delivery(self, code, now=None, delivery_proof=None, delivery_note=None, payment_received=None):
        """Verify the doorstep code and mark the order delivered."""
        now = now or datetime.now(UTC)
        self.verify_delivery_code(code, now=now)
        self._assert_can_transition(OrderStatus.DELIVERED)

        self.delivery_proof = delivery_proof
        self.delivery_note = delivery_note
        self._mark_delivered(now, payment_received)

    def record_pickup_payment(self, now=None, payment_received=True, payment_note=None):
        """Settle a pickup order at the counter; it goes straight to delivered."""
        current = self.current_status
        if not self.is_pickup:
            raise InvalidTransition(
                current.value, OrderStatus.DELIVERED.value, "only pickup orders are settled at the counter"
            )
        if current not in _PICKUP_SETTLEABLE:
            raise InvalidTransition(current.value, OrderStatus.DELIVERED.value)

        now = now or datetime.now(UTC)
        if payment_note:
            self._append_note("admin_notes", f"Payment Note: {payment_note}")
        self._mark_delivered(now, payment_received)

    def _mark_delivered(self, now, payment_received):
        if payment_received is not None:
            self.payment_received = bool(payment_received)
        if self.payment_received:
            self.payment_status = PaymentStatus.PAID.value

        self.status = OrderStatus.DELIVERED.value
        self.delivered_at = now
        self.updated_at = now
        self.raise_(
            OrderDelivered(
                order_id=str(self.id),
                delivery_mode=self.delivery_mode,
                payment_received=self.payment_received,
                payment_status=self.payment_status,
                delivered_at=now,
            )
        )

    def cancel(self, attribution, reason=None, now=None, admin_notes=None):
        """Cancel before delivery. Stock release is the caller's job, in the same unit of work."""
        self._assert_can_transition(OrderStatus.CANCELLED)
        self._assert_customer_owns(attribution, "cancel")

        now = now or datetime.now(UTC)
        previous = self.status
        self.status = OrderStatus.CANCELLED.value
        self.cancelled_at = now
        self.cancelled_by_role = attribution.role
        self.cancelled_by_id = attribution.actor_id
        self.cancelled_by_name = attribution.display_name
        self.cancellation_reason = reason
        self.delivery_code = None
        self.delivery_code_expires_at = None
        self.updated_at = now
        self._append_note("admin_notes", admin_notes)
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                previous_status=previous,
                reason=reason,
                actor_role=attribution.role,
                actor_id=attribution.actor_id,
                actor_name=attribution.display_name,
                cancelled_at=now,
            )
        )

    def return_order(self, attribution, reason=None, now=None):
        """Take back a delivered order. Stock release is the caller's job, in the same unit of work."""
        self._assert_can_transition(OrderStatus.RETURNED)
        self._assert_customer_owns(attribution, "return")

        now = now or datetime.now(UTC)
        self.status = OrderStatus.RETURNED.value
        self.returned_at = now
        self.returned_by_role = attribution.role
        self.returned_by_id = attribution.actor_id
        self.returned_by_name = attribution.display_name
        self.return_reason = reason
        self.updated_at = now
        self.raise_(
            OrderReturned(
                order_id=str(self.id),
                reason=reason,
                actor_role=attribution.role,
                actor_id=attribution.actor_id,
                actor_name=attribution.display_name,
                returned_at=now,
            )
        )
