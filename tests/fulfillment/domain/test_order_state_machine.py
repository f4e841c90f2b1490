"""Tests for the Order state machine: valid transitions, guards and attribution."""

from datetime import UTC, datetime, timedelta

import pytest
from fulfillment.agency.agency import DeliveryAgent
from fulfillment.errors import ActorNotPermitted, InvalidTransition, NotIssuable
from fulfillment.order.actor import Admin, AgencyOwner, Customer, System, attribution_for
from fulfillment.order.events import OrderCancelled, OrderPlaced, OutForDelivery
from fulfillment.order.order import Order, OrderStatus, PaymentStatus
from fulfillment.pricing.calculator import PriceBreakdown, PricedLine
from protean.exceptions import ValidationError

NOW = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)


def _breakdown(**overrides):
    data = {
        "lines": (
            PricedLine(
                product_id="lpg-cylinder",
                product_name="LPG Cylinder",
                variant_label="14.2kg",
                unit_price=300.0,
                quantity=2,
                product_amount=600.0,
                tax_amount=0.0,
                platform_charge=0.0,
                total=600.0,
            ),
        ),
        "subtotal": 600.0,
        "tax_type": "none",
        "tax_value": 0.0,
        "tax_amount": 0.0,
        "platform_charge": 0.0,
        "delivery_charge": 0.0,
        "delivery_distance": None,
        "coupon_code": None,
        "coupon_id": None,
        "coupon_discount": 0.0,
        "total_amount": 600.0,
    }
    data.update(overrides)
    return PriceBreakdown(**data)


def _make_order(delivery_mode="home_delivery", **overrides):
    customer = {
        "id": "cust-001",
        "name": "Asha Rao",
        "email": "Asha@Example.com",
        "phone": "9876543210",
        "address": "12 MG Road, Bengaluru",
    }
    customer.update(overrides)
    return Order.place(
        order_number="ORD-123456-ABC123",
        agency_id="agency-001",
        customer=customer,
        delivery_mode=delivery_mode,
        breakdown=_breakdown(),
        now=NOW,
    )


def _agent(agency_id="agency-001"):
    return DeliveryAgent.register(agency_id=agency_id, name="Ravi Kumar", phone="9000000001")


def _order_at_state(target_status, delivery_mode="home_delivery"):
    """Create an order and advance it to the desired state."""
    order = _make_order(delivery_mode=delivery_mode)
    order._events.clear()
    if target_status == OrderStatus.PENDING:
        return order

    if target_status == OrderStatus.CANCELLED:
        order.cancel(attribution_for(System()))
        order._events.clear()
        return order

    order.confirm(now=NOW)
    if target_status == OrderStatus.CONFIRMED:
        order._events.clear()
        return order

    order.assign(_agent(), now=NOW)
    if target_status == OrderStatus.ASSIGNED:
        order._events.clear()
        return order

    order.issue_delivery_code("123456", now=NOW)
    if target_status == OrderStatus.OUT_FOR_DELIVERY:
        order._events.clear()
        return order

    order.complete_delivery("123456", now=NOW)
    if target_status == OrderStatus.DELIVERED:
        order._events.clear()
        return order

    order.return_order(attribution_for(System()))
    order._events.clear()
    return order


# ---------------------------------------------------------------
# Placement
# ---------------------------------------------------------------
class TestOrderPlacement:
    def test_new_order_is_pending_and_unpaid(self):
        order = _make_order()
        assert order.status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.UNPAID.value
        assert order.order_number == "ORD-123456-ABC123"

    def test_customer_email_is_lowercased(self):
        order = _make_order()
        assert order.customer_email == "asha@example.com"

    def test_items_are_snapshots_of_priced_lines(self):
        order = _make_order()
        assert len(order.items) == 1
        item = order.items[0]
        assert item.variant_label == "14.2kg"
        assert item.unit_price == 300.0
        assert item.quantity == 2
        assert item.total == 600.0

    def test_placement_raises_order_placed(self):
        order = _make_order()
        placed = [e for e in order._events if isinstance(e, OrderPlaced)]
        assert len(placed) == 1
        assert placed[0].total_amount == 600.0

    def test_total_must_reconcile_with_components(self):
        with pytest.raises(ValidationError):
            Order.place(
                order_number="ORD-123456-ABC124",
                agency_id="agency-001",
                customer={"name": "Asha", "email": "asha@example.com", "phone": "9876543210"},
                delivery_mode="pickup",
                breakdown=_breakdown(total_amount=650.0),
            )

    def test_home_delivery_requires_an_address(self):
        with pytest.raises(ValidationError):
            _make_order(address="  ")

    def test_pickup_order_needs_no_address(self):
        order = _make_order(delivery_mode="pickup", address=None)
        assert order.is_pickup


# ---------------------------------------------------------------
# Happy path transitions
# ---------------------------------------------------------------
class TestValidTransitions:
    def test_pending_to_confirmed(self):
        order = _order_at_state(OrderStatus.PENDING)
        order.confirm(now=NOW, admin_notes="Called customer")
        assert order.status == OrderStatus.CONFIRMED.value
        assert order.confirmed_at is not None
        assert order.admin_notes == "Called customer"

    def test_pending_to_assigned_skips_confirmation(self):
        order = _order_at_state(OrderStatus.PENDING)
        agent = _agent()
        order.assign(agent, now=NOW)
        assert order.status == OrderStatus.ASSIGNED.value
        assert order.assigned_agent_id == str(agent.id)

    def test_confirmed_to_assigned(self):
        order = _order_at_state(OrderStatus.CONFIRMED)
        order.assign(_agent(), now=NOW, agent_notes="Ring twice")
        assert order.status == OrderStatus.ASSIGNED.value
        assert order.agent_notes == "Ring twice"

    def test_issuing_a_code_sends_the_order_out_for_delivery(self):
        order = _order_at_state(OrderStatus.ASSIGNED)
        expires_at = order.issue_delivery_code("654321", now=NOW)
        assert order.status == OrderStatus.OUT_FOR_DELIVERY.value
        assert order.delivery_code == "654321"
        assert expires_at == NOW + timedelta(minutes=10)
        assert any(isinstance(e, OutForDelivery) for e in order._events)

    def test_out_for_delivery_to_delivered(self):
        order = _order_at_state(OrderStatus.OUT_FOR_DELIVERY)
        order.complete_delivery("123456", now=NOW, delivery_proof="photo.jpg", payment_received=True)
        assert order.status == OrderStatus.DELIVERED.value
        assert order.payment_status == PaymentStatus.PAID.value
        assert order.delivery_proof == "photo.jpg"

    def test_delivery_without_payment_stays_unpaid(self):
        order = _order_at_state(OrderStatus.OUT_FOR_DELIVERY)
        order.complete_delivery("123456", now=NOW)
        assert order.payment_status == PaymentStatus.UNPAID.value

    def test_delivered_to_returned(self):
        order = _order_at_state(OrderStatus.DELIVERED)
        order.return_order(attribution_for(Admin(id="admin-001", name="Ops")), reason="Leaking valve")
        assert order.status == OrderStatus.RETURNED.value
        assert order.return_reason == "Leaking valve"
        assert order.returned_by_role == "admin"


# ---------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------
class TestCancellation:
    @pytest.mark.parametrize(
        "state",
        [
            OrderStatus.PENDING,
            OrderStatus.CONFIRMED,
            OrderStatus.ASSIGNED,
            OrderStatus.OUT_FOR_DELIVERY,
        ],
    )
    def test_cancel_before_delivery(self, state):
        order = _order_at_state(state)
        order.cancel(attribution_for(Admin(id="admin-001", name="Ops")), reason="Out of area")
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancellation_reason == "Out of area"

    @pytest.mark.parametrize("state", [OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.RETURNED])
    def test_cannot_cancel_after_delivery_or_from_terminal(self, state):
        order = _order_at_state(state)
        with pytest.raises(InvalidTransition):
            order.cancel(attribution_for(System()))

    def test_cancel_clears_pending_delivery_code(self):
        order = _order_at_state(OrderStatus.OUT_FOR_DELIVERY)
        order.cancel(attribution_for(System()))
        assert order.delivery_code is None
        assert order.delivery_code_expires_at is None

    def test_cancel_records_attribution(self):
        order = _order_at_state(OrderStatus.PENDING)
        owner = AgencyOwner(id="owner-001", name="Suresh", agency_id="agency-001")
        order.cancel(attribution_for(owner), reason="No stock")

        assert order.cancelled_by_role == "agency"
        assert order.cancelled_by_id == "owner-001"
        assert order.cancelled_by_name == "Suresh"
        event = next(e for e in order._events if isinstance(e, OrderCancelled))
        assert event.previous_status == OrderStatus.PENDING.value

    def test_system_cancellation_is_attributed_to_system(self):
        order = _order_at_state(OrderStatus.PENDING)
        order.cancel(attribution_for(System()))
        assert order.cancelled_by_role == "system"
        assert order.cancelled_by_name == "System"
        assert order.cancelled_by_id is None

    def test_customer_can_cancel_own_order(self):
        order = _order_at_state(OrderStatus.PENDING)
        order.cancel(attribution_for(Customer(id="someone-else", email="ASHA@example.com")))
        assert order.status == OrderStatus.CANCELLED.value

    def test_customer_cannot_cancel_another_customers_order(self):
        order = _order_at_state(OrderStatus.PENDING)
        with pytest.raises(ActorNotPermitted):
            order.cancel(attribution_for(Customer(id="cust-999", email="other@example.com")))
        assert order.status == OrderStatus.PENDING.value

    def test_customer_cannot_return_another_customers_order(self):
        order = _order_at_state(OrderStatus.DELIVERED)
        with pytest.raises(ActorNotPermitted):
            order.return_order(attribution_for(Customer(id="cust-999")))


# ---------------------------------------------------------------
# Invalid transitions
# ---------------------------------------------------------------
class TestInvalidTransitions:
    def test_cannot_confirm_twice(self):
        order = _order_at_state(OrderStatus.CONFIRMED)
        with pytest.raises(InvalidTransition) as exc:
            order.confirm()
        assert exc.value.current == "confirmed"
        assert exc.value.requested == "confirmed"

    def test_cannot_return_before_delivery(self):
        order = _order_at_state(OrderStatus.OUT_FOR_DELIVERY)
        with pytest.raises(InvalidTransition):
            order.return_order(attribution_for(System()))

    @pytest.mark.parametrize("state", [OrderStatus.CANCELLED, OrderStatus.RETURNED])
    def test_terminal_states_reject_everything(self, state):
        order = _order_at_state(state)
        with pytest.raises(InvalidTransition):
            order.confirm()
        with pytest.raises(InvalidTransition):
            order.assign(_agent())

    def test_cannot_assign_agent_of_another_agency(self):
        order = _order_at_state(OrderStatus.CONFIRMED)
        with pytest.raises(ValidationError) as exc:
            order.assign(_agent(agency_id="agency-999"))
        assert "agent_id" in exc.value.messages
        assert order.status == OrderStatus.CONFIRMED.value

    def test_cannot_issue_code_before_assignment(self):
        order = _order_at_state(OrderStatus.CONFIRMED)
        with pytest.raises(NotIssuable):
            order.issue_delivery_code("123456", now=NOW)

    def test_cannot_issue_code_for_pickup_order(self):
        order = _order_at_state(OrderStatus.ASSIGNED, delivery_mode="pickup")
        with pytest.raises(NotIssuable):
            order.issue_delivery_code("123456", now=NOW)


# ---------------------------------------------------------------
# Pickup settlement
# ---------------------------------------------------------------
class TestPickupPayment:
    @pytest.mark.parametrize("state", [OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.ASSIGNED])
    def test_pickup_settles_to_delivered(self, state):
        order = _order_at_state(state, delivery_mode="pickup")
        order.record_pickup_payment(now=NOW, payment_note="Paid cash at counter")

        assert order.status == OrderStatus.DELIVERED.value
        assert order.payment_status == PaymentStatus.PAID.value
        assert order.payment_received is True
        assert "Payment Note: Paid cash at counter" in order.admin_notes

    def test_pickup_without_payment_stays_unpaid(self):
        order = _order_at_state(OrderStatus.PENDING, delivery_mode="pickup")
        order.record_pickup_payment(now=NOW, payment_received=False)
        assert order.status == OrderStatus.DELIVERED.value
        assert order.payment_status == PaymentStatus.UNPAID.value

    def test_home_delivery_order_cannot_be_settled_at_counter(self):
        order = _order_at_state(OrderStatus.PENDING)
        with pytest.raises(InvalidTransition) as exc:
            order.record_pickup_payment(now=NOW)
        assert "only pickup orders" in str(exc.value)

    def test_cancelled_pickup_order_cannot_be_settled(self):
        order = _order_at_state(OrderStatus.CANCELLED, delivery_mode="pickup")
        with pytest.raises(InvalidTransition):
            order.record_pickup_payment(now=NOW)
