"""Domain events for the Order aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from fulfillment.domain import fulfillment


@fulfillment.event(part_of="Order")
class OrderPlaced:
    """A priced order was created in pending with its stock reserved."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    agency_id = Identifier(required=True)
    customer_email = String(required=True)
    delivery_mode = String(required=True)
    items = Text(required=True)  # JSON: list of line snapshots
    item_count = Integer(required=True)
    subtotal = Float(required=True)
    tax_amount = Float(default=0.0)
    platform_charge = Float(default=0.0)
    delivery_charge = Float(default=0.0)
    coupon_code = String()
    coupon_discount = Float(default=0.0)
    total_amount = Float(required=True)
    placed_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OrderConfirmed:
    __version__ = 1

    order_id = Identifier(required=True)
    confirmed_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class AgentAssigned:
    __version__ = 1

    order_id = Identifier(required=True)
    agent_id = Identifier(required=True)
    previous_status = String(required=True)
    assigned_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class DeliveryCodeIssued:
    """A one-time delivery code was generated. The code itself is never put on the event."""

    __version__ = 1

    order_id = Identifier(required=True)
    expires_at = DateTime(required=True)
    issued_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OutForDelivery:
    __version__ = 1

    order_id = Identifier(required=True)
    agent_id = Identifier()
    out_for_delivery_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class DeliveryCodeVerified:
    __version__ = 1

    order_id = Identifier(required=True)
    verified_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    delivery_mode = String(required=True)
    payment_received = Boolean()
    payment_status = String(required=True)
    delivered_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String()
    actor_role = String(required=True)
    actor_id = Identifier()
    actor_name = String(required=True)
    cancelled_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OrderReturned:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    actor_role = String(required=True)
    actor_id = Identifier()
    actor_name = String(required=True)
    returned_at = DateTime(required=True)
