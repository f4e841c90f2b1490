"""FulfillmentEngine: the public surface of the fulfillment domain.

The engine validates input, performs the one external call (distance
lookup) outside any transaction, hands the rest to Protean commands that each
run in a single unit of work, retries commands that lost an optimistic
concurrency race, and fires notifications only after a command committed.

Collaborators are passed in explicitly::

    engine = FulfillmentEngine(distance=GoogleDistanceMatrix(key), notifier=LogNotifier())
    with fulfillment.domain_context():
        order = engine.checkout(cart)

Every method must be called inside an active domain context.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

import structlog
from protean.exceptions import ExpectedVersionError, ValidationError
from protean.utils.globals import current_domain

from fulfillment.agency.agency import Agency
from fulfillment.api.schemas import (
    AssignPayload,
    CancelPayload,
    CheckoutRequest,
    ConfirmPayload,
    PickupPaymentPayload,
    ReturnPayload,
    VerifyCodeRequest,
    parse,
)
from fulfillment.coupon.coupon import Coupon
from fulfillment.coupon.evaluator import CouponEvaluator, Discount
from fulfillment.coupon.management import DeactivateExpiredCoupon
from fulfillment.errors import AgencyUnavailable, ConcurrentModification, CouponExpired
from fulfillment.geo.google_adapter import GoogleDistanceMatrix
from fulfillment.geo.port import DistanceCapability
from fulfillment.inventory.ledger import InventoryLedger
from fulfillment.notify.log_adapter import LogNotifier
from fulfillment.notify.port import Notifier
from fulfillment.order.actor import Actor, attribution_for
from fulfillment.order.checkout import PlaceOrder
from fulfillment.order.delivery_gate import IssueDeliveryCode, VerifyDeliveryCode
from fulfillment.order.order import DeliveryMode, Order
from fulfillment.order.queries import OrderQueries
from fulfillment.order.transitions import AssignAgent, CancelOrder, ConfirmOrder, RecordPickupPayment, ReturnOrder
from fulfillment.pricing.delivery import ChargeQuote, DeliveryChargeEvaluator
from fulfillment.settings import EngineSettings
from fulfillment.utils.logging import order_context

logger = structlog.get_logger(__name__)


class OrderAction(Enum):
    CONFIRM = "confirm"
    ASSIGN = "assign"
    CANCEL = "cancel"
    RETURN = "return"
    RECORD_PICKUP_PAYMENT = "record_pickup_payment"


@dataclass(frozen=True)
class DeliveryCode:
    code: str
    expires_at: datetime


class FulfillmentEngine:
    def __init__(
        self,
        distance: DistanceCapability,
        notifier: Notifier,
        settings: EngineSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.notifier = notifier
        self.delivery = DeliveryChargeEvaluator(distance)
        self.clock = clock or (lambda: datetime.now(UTC))
        self.queries = OrderQueries()

    @classmethod
    def from_settings(cls, settings: EngineSettings | None = None) -> "FulfillmentEngine":
        """Production wiring: Google distance lookups and log-based notifications."""
        settings = settings or EngineSettings.from_env()
        distance = GoogleDistanceMatrix(settings.google_maps_api_key, timeout=settings.distance_timeout)
        return cls(distance=distance, notifier=LogNotifier(), settings=settings)

    # -------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------
    def _process(self, build_command: Callable[[], object]):
        """Process a freshly built command, retrying on optimistic concurrency conflicts."""
        attempts = max(1, self.settings.checkout_retries)
        for attempt in range(1, attempts + 1):
            command = build_command()
            try:
                return current_domain.process(command, asynchronous=False)
            except ExpectedVersionError as exc:
                logger.warning(
                    "Concurrent modification, retrying",
                    command=type(command).__name__,
                    attempt=attempt,
                    max_attempts=attempts,
                )
                if attempt == attempts:
                    raise ConcurrentModification(
                        f"{type(command).__name__} kept conflicting with concurrent updates, please retry"
                    ) from exc

    def _notify(self, hook: str, *args) -> None:
        try:
            getattr(self.notifier, hook)(*args)
        except Exception:
            logger.exception("Notification dispatch failed", hook=hook)

    def _expire_coupon(self, coupon_id, now) -> None:
        flipped = current_domain.process(
            DeactivateExpiredCoupon(coupon_id=coupon_id, evaluated_at=now),
            asynchronous=False,
        )
        if flipped:
            coupon = current_domain.repository_for(Coupon).get(coupon_id)
            self._notify("coupon_expired", str(coupon.id), coupon.code)

    def _order(self, order_id) -> Order:
        return current_domain.repository_for(Order).get(order_id)

    def _announce_low_stock(self, order) -> None:
        lines = [(item.product_id, item.variant_label) for item in order.items]
        for level in InventoryLedger().low_stock_levels(order.agency_id, lines):
            self._notify("low_stock", level)

    def _status_changed(self, order_id, previous_status) -> Order:
        order = self._order(order_id)
        if order.status != previous_status:
            self._notify("order_status_changed", order, previous_status)
        return order

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def checkout(self, cart) -> Order:
        """Price, reserve and create a pending order, or raise without persisting anything."""
        request = parse(CheckoutRequest, cart)
        now = self.clock()

        agency = current_domain.repository_for(Agency).get(request.agency_id)
        if not agency.is_active:
            raise AgencyUnavailable(f"Agency {agency.name} is not accepting orders")

        quote = ChargeQuote.free()
        if request.delivery_mode == DeliveryMode.HOME_DELIVERY.value:
            quote = self.delivery.evaluate(agency, request.customer.address)

        items = [item.model_dump() for item in request.items]

        def build():
            return PlaceOrder(
                agency_id=request.agency_id,
                customer_id=request.customer.id,
                customer_name=request.customer.name,
                customer_email=request.customer.email,
                customer_phone=request.customer.phone,
                customer_address=request.customer.address,
                delivery_mode=request.delivery_mode,
                payment_method=request.payment_method,
                items=json.dumps(items),
                coupon_code=request.coupon_code,
                delivery_charge=quote.charge,
                delivery_distance=quote.distance_km,
                delivery_charge_type=quote.charge_type,
                placed_at=now,
            )

        try:
            order_id = self._process(build)
        except CouponExpired as exc:
            self._expire_coupon(exc.coupon_id, now)
            raise

        order = self._order(order_id)
        self._notify("order_created", order)

        self._announce_low_stock(order)
        return order

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def transition(self, order_id, action, actor: Actor, payload=None) -> Order:
        try:
            action = OrderAction(action)
        except ValueError:
            known = ", ".join(a.value for a in OrderAction)
            raise ValidationError({"action": [f"Unknown action {action!r}, expected one of: {known}"]}) from None
        try:
            attribution = attribution_for(actor)
        except TypeError as exc:
            raise ValidationError({"actor": [str(exc)]}) from None
        now = self.clock()

        if action == OrderAction.CONFIRM:
            data = parse(ConfirmPayload, payload)

            def build():
                return ConfirmOrder(order_id=order_id, admin_notes=data.admin_notes, occurred_at=now)

        elif action == OrderAction.ASSIGN:
            data = parse(AssignPayload, payload)

            def build():
                return AssignAgent(
                    order_id=order_id,
                    agent_id=data.agent_id,
                    agent_notes=data.agent_notes,
                    occurred_at=now,
                )

        elif action == OrderAction.CANCEL:
            data = parse(CancelPayload, payload)

            def build():
                return CancelOrder(
                    order_id=order_id,
                    reason=data.reason,
                    actor_role=attribution.role,
                    actor_id=attribution.actor_id,
                    actor_name=attribution.display_name,
                    actor_email=attribution.email,
                    admin_notes=data.admin_notes,
                    occurred_at=now,
                )

        elif action == OrderAction.RETURN:
            data = parse(ReturnPayload, payload)

            def build():
                return ReturnOrder(
                    order_id=order_id,
                    reason=data.reason,
                    actor_role=attribution.role,
                    actor_id=attribution.actor_id,
                    actor_name=attribution.display_name,
                    actor_email=attribution.email,
                    occurred_at=now,
                )

        else:
            data = parse(PickupPaymentPayload, payload)

            def build():
                return RecordPickupPayment(
                    order_id=order_id,
                    payment_received=data.payment_received,
                    payment_note=data.payment_note,
                    occurred_at=now,
                )

        with order_context(order_id=order_id, action=action.value):
            previous = self._process(build)
            logger.info(
                "Order transition applied",
                actor_role=attribution.role,
                actor=attribution.display_name,
            )
            order = self._status_changed(order_id, previous)
            if action in (OrderAction.CANCEL, OrderAction.RETURN) and order.status != previous:
                self._announce_low_stock(order)
            return order

    # -------------------------------------------------------------------
    # OTP delivery gate
    # -------------------------------------------------------------------
    def issue_delivery_code(self, order_id) -> DeliveryCode:
        now = self.clock()
        result = self._process(
            lambda: IssueDeliveryCode(
                order_id=order_id,
                ttl_minutes=self.settings.delivery_code_ttl_minutes,
                occurred_at=now,
            )
        )
        self._status_changed(order_id, result["previous_status"])
        return DeliveryCode(code=result["code"], expires_at=result["expires_at"])

    def verify_delivery_code(
        self,
        order_id,
        code,
        delivery_proof=None,
        delivery_note=None,
        payment_received=None,
    ) -> Order:
        data = parse(
            VerifyCodeRequest,
            {
                "code": str(code),
                "delivery_proof": delivery_proof,
                "delivery_note": delivery_note,
                "payment_received": payment_received,
            },
        )
        now = self.clock()
        previous = self._process(
            lambda: VerifyDeliveryCode(
                order_id=order_id,
                code=data.code,
                delivery_proof=data.delivery_proof,
                delivery_note=data.delivery_note,
                payment_received=data.payment_received,
                occurred_at=now,
            )
        )
        return self._status_changed(order_id, previous)

    # -------------------------------------------------------------------
    # Read-only previews
    # -------------------------------------------------------------------
    def evaluate_delivery_charge(self, agency_id, address) -> ChargeQuote:
        if not (address or "").strip():
            raise ValidationError({"customer_address": ["Address is required to estimate delivery"]})
        agency = current_domain.repository_for(Agency).get(agency_id)
        return self.delivery.evaluate(agency, address)

    def apply_coupon(self, code, agency_id, subtotal) -> Discount:
        if not (code or "").strip():
            raise ValidationError({"coupon_code": ["Coupon code is required"]})
        if subtotal is None or subtotal < 0:
            raise ValidationError({"subtotal": ["Subtotal must be zero or more"]})

        now = self.clock()
        try:
            return CouponEvaluator().apply(code, agency_id, subtotal, now=now)
        except CouponExpired as exc:
            self._expire_coupon(exc.coupon_id, now)
            raise
