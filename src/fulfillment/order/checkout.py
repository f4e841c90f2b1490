"""Checkout: price, check stock, reserve and create the order in one unit of work.

The delivery quote is evaluated by the caller before this command is
processed (it needs an external distance lookup) and arrives frozen on the
command. Everything else happens inside the handler's unit of work, so a
checkout either commits the pending order together with all its
reservations, or persists nothing.
"""

import json

import structlog
from protean import handle
from protean.fields import DateTime, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from fulfillment.agency.agency import Agency
from fulfillment.coupon.evaluator import CouponEvaluator
from fulfillment.domain import fulfillment
from fulfillment.errors import AgencyUnavailable
from fulfillment.inventory.ledger import InventoryLedger
from fulfillment.order.order import Order
from fulfillment.order.order_number import generate_order_number
from fulfillment.pricing.calculator import CartLine, PricingCalculator
from fulfillment.pricing.delivery import NOT_CONFIGURED, ChargeQuote

logger = structlog.get_logger(__name__)


@fulfillment.command(part_of="Order")
class PlaceOrder:
    agency_id = Identifier(required=True)
    customer_id = Identifier()
    customer_name = String(required=True, max_length=255)
    customer_email = String(required=True, max_length=255)
    customer_phone = String(required=True, max_length=20)
    customer_address = String(max_length=500)
    delivery_mode = String(required=True, max_length=20)
    payment_method = String(max_length=30)
    items = Text(required=True)  # JSON: list of {product_id, variant_label, quantity, price}
    coupon_code = String(max_length=50)
    delivery_charge = Float(default=0.0)
    delivery_distance = Float()
    delivery_charge_type = String(max_length=20, default=NOT_CONFIGURED)
    placed_at = DateTime()


@fulfillment.command_handler(part_of=Order)
class CheckoutHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        agency = current_domain.repository_for(Agency).get(command.agency_id)
        if not agency.is_active:
            raise AgencyUnavailable(f"Agency {agency.name} is not accepting orders")

        items = json.loads(command.items) if isinstance(command.items, str) else command.items
        lines = [
            CartLine(
                product_id=str(item["product_id"]),
                variant_label=item.get("variant_label"),
                quantity=int(item["quantity"]),
                price=float(item["price"]),
            )
            for item in items
        ]

        ledger = InventoryLedger()
        calculator = PricingCalculator(ledger, CouponEvaluator())
        breakdown = calculator.price(
            command.agency_id,
            lines,
            delivery=ChargeQuote(
                charge=command.delivery_charge or 0.0,
                charge_type=command.delivery_charge_type or NOT_CONFIGURED,
                distance_km=command.delivery_distance,
            ),
            coupon_code=command.coupon_code,
            now=command.placed_at,
        )

        order = Order.place(
            order_number=generate_order_number(),
            agency_id=command.agency_id,
            customer={
                "id": command.customer_id,
                "name": command.customer_name,
                "email": command.customer_email,
                "phone": command.customer_phone,
                "address": command.customer_address,
            },
            delivery_mode=command.delivery_mode,
            breakdown=breakdown,
            payment_method=command.payment_method,
            now=command.placed_at,
        )

        # All-or-nothing: a failure here aborts the unit of work before anything is written
        for line in breakdown.lines:
            ledger.reserve(
                command.agency_id,
                line.product_id,
                line.variant_label,
                line.quantity,
                order_id=str(order.id),
            )
        ledger.commit()

        current_domain.repository_for(Order).add(order)
        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            agency_id=str(command.agency_id),
            total_amount=order.total_amount,
        )
        return str(order.id)
