"""Pricing calculator: the authoritative price breakdown of a checkout.

Client-claimed prices are never trusted: every line is re-priced from the
agency's inventory and rejected if the claim is more than 0.01 away. Percentage
tax is charged on each line's own amount. Fixed tax and the platform charge
are spread over the lines in proportion to each line's product amount, with
shares that always add up to the order-level amount.
A coupon discounts the subtotal only. The delivery charge arrives as an
already-evaluated quote, because the distance lookup is an external call that
must not run inside the checkout transaction.

The stock check runs last, after everything is priced and before anything
is reserved.
"""

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal

from protean.utils.globals import current_domain

from fulfillment.coupon.evaluator import CouponEvaluator
from fulfillment.errors import InsufficientStock, PriceMismatch
from fulfillment.inventory.ledger import InventoryLedger
from fulfillment.money import distribute_proportionally, round2, to_decimal
from fulfillment.pricing.delivery import ChargeQuote
from fulfillment.pricing.policies import PlatformChargeConfig, TaxConfig, TaxType

PRICE_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int
    price: float
    variant_label: str | None = None


@dataclass(frozen=True)
class PricedLine:
    product_id: str
    product_name: str
    variant_label: str | None
    unit_price: float
    quantity: int
    product_amount: float
    tax_amount: float
    platform_charge: float
    total: float


@dataclass(frozen=True)
class PriceBreakdown:
    lines: tuple[PricedLine, ...]
    subtotal: float
    tax_type: str
    tax_value: float
    tax_amount: float
    platform_charge: float
    delivery_charge: float
    delivery_distance: float | None
    coupon_code: str | None
    coupon_id: str | None
    coupon_discount: float
    total_amount: float


class PricingCalculator:
    def __init__(
        self,
        ledger: InventoryLedger,
        coupons: CouponEvaluator,
        tax_configs=None,
        platform_configs=None,
    ):
        self.ledger = ledger
        self.coupons = coupons
        self._tax_configs = tax_configs
        self._platform_configs = platform_configs

    def _active_tax(self) -> TaxConfig | None:
        repo = self._tax_configs if self._tax_configs is not None else current_domain.repository_for(TaxConfig)
        return repo.active()

    def _active_platform_charge(self) -> PlatformChargeConfig | None:
        repo = (
            self._platform_configs
            if self._platform_configs is not None
            else current_domain.repository_for(PlatformChargeConfig)
        )
        return repo.active()

    def price(
        self,
        agency_id,
        lines: list[CartLine],
        delivery: ChargeQuote | None = None,
        coupon_code: str | None = None,
        now=None,
    ) -> PriceBreakdown:
        delivery = delivery or ChargeQuote.free()

        # Authoritative unit prices
        resolved = []
        for line in lines:
            record = self.ledger.sellable(agency_id, line.product_id)
            label = line.variant_label if record.has_variants else None
            price = to_decimal(record.price_for(label))
            claimed = to_decimal(line.price)
            if abs(claimed - price) > PRICE_TOLERANCE:
                raise PriceMismatch(record.product_name, label, float(price), float(claimed))
            resolved.append((line, record, label, price))

        product_amounts = [round2(price * line.quantity) for line, _, _, price in resolved]
        subtotal = round2(sum(to_decimal(a) for a in product_amounts))

        # Tax
        tax = self._active_tax()
        if tax is None:
            tax_type, tax_value, tax_amount = TaxType.NONE.value, 0.0, 0.0
            tax_shares = [0.0] * len(product_amounts)
        elif tax.tax_type == TaxType.PERCENTAGE:
            # Each line is taxed on its own amount; the order-level tax is the
            # unrounded sum, rounded once, so the two may differ by a cent.
            rate = to_decimal(tax.percentage) / 100
            tax_type, tax_value = TaxType.PERCENTAGE.value, tax.percentage
            tax_amount = round2(to_decimal(subtotal) * rate)
            tax_shares = [round2(to_decimal(amount) * rate) for amount in product_amounts]
        else:
            tax_type, tax_value = TaxType.FIXED.value, tax.fixed_amount
            tax_amount = round2(tax.fixed_amount)
            tax_shares = distribute_proportionally(tax_amount, product_amounts)

        # Platform charge
        platform = self._active_platform_charge()
        platform_charge = round2(platform.amount) if platform is not None else 0.0
        platform_shares = distribute_proportionally(platform_charge, product_amounts)

        # Coupon, on the subtotal only
        coupon_code_applied = coupon_id = None
        coupon_discount = 0.0
        if coupon_code:
            discount = self.coupons.apply(coupon_code, agency_id, subtotal, now=now)
            coupon_code_applied, coupon_id, coupon_discount = discount.code, discount.coupon_id, discount.discount

        delivery_charge = round2(delivery.charge)

        total_amount = round2(
            to_decimal(subtotal)
            + to_decimal(tax_amount)
            + to_decimal(platform_charge)
            + to_decimal(delivery_charge)
            - to_decimal(coupon_discount)
        )

        priced = tuple(
            PricedLine(
                product_id=str(line.product_id),
                product_name=record.product_name,
                variant_label=label,
                unit_price=float(price),
                quantity=line.quantity,
                product_amount=amount,
                tax_amount=tax_share,
                platform_charge=platform_share,
                total=round2(to_decimal(amount) + to_decimal(tax_share) + to_decimal(platform_share)),
            )
            for (line, record, label, price), amount, tax_share, platform_share in zip(
                resolved, product_amounts, tax_shares, platform_shares, strict=True
            )
        )

        self._check_stock(agency_id, priced)

        return PriceBreakdown(
            lines=priced,
            subtotal=subtotal,
            tax_type=tax_type,
            tax_value=tax_value,
            tax_amount=tax_amount,
            platform_charge=platform_charge,
            delivery_charge=delivery_charge,
            delivery_distance=delivery.distance_km,
            coupon_code=coupon_code_applied,
            coupon_id=coupon_id,
            coupon_discount=coupon_discount,
            total_amount=total_amount,
        )

    def _check_stock(self, agency_id, lines):
        """Reject if any variant is short, counting repeated lines together."""
        required = defaultdict(int)
        names = {}
        for line in lines:
            key = (line.product_id, line.variant_label)
            required[key] += line.quantity
            names[key] = line.product_name

        for (product_id, label), quantity in required.items():
            available = self.ledger.available(agency_id, product_id, label)
            if available < quantity:
                raise InsufficientStock(names[(product_id, label)], label, available, quantity)
