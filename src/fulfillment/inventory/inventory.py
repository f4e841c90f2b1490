"""AgencyInventory aggregate (CQRS): per-(product, agency) stock record.

A record either keeps a flat ``stock`` counter priced at ``agency_price``, or an
ordered collection of variants (cylinder sizes), each with its own label,
price and stock counter. ``is_active`` hides the product from customers of
this agency without touching the catalogue-level product.

Stock counters never go negative: ``reserve`` checks and decrements on the
same loaded aggregate, and the aggregate version guards against a concurrent
writer having changed the row in between.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String

from fulfillment.domain import fulfillment
from fulfillment.errors import InsufficientStock, VariantNotFound
from fulfillment.inventory.events import (
    InventoryVisibilityChanged,
    LowStockDetected,
    ProductStocked,
    StockLevelSet,
    StockReleased,
    StockReserved,
    VariantAdded,
)


@fulfillment.entity(part_of="AgencyInventory")
class InventoryVariant:
    label = String(required=True, max_length=50)
    unit = String(max_length=20)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)


@fulfillment.aggregate
class AgencyInventory:
    agency_id = Identifier(required=True)
    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    stock = Integer(default=0, min_value=0)
    agency_price = Float(default=0.0, min_value=0.0)
    low_stock_threshold = Integer(default=10, min_value=0)
    is_active = Boolean(default=True)
    variants = HasMany(InventoryVariant)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def stock_is_never_negative(self):
        if (self.stock or 0) < 0 or any((v.stock or 0) < 0 for v in self.variants):
            raise ValidationError({"stock": ["Stock cannot be negative"]})

    @invariant.post
    def variant_labels_are_unique(self):
        labels = [v.label for v in self.variants]
        if len(labels) != len(set(labels)):
            raise ValidationError({"variants": ["Variant labels must be unique within a product"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def stock_product(
        cls,
        agency_id,
        product_id,
        product_name,
        variants=None,
        stock=0,
        agency_price=0.0,
        low_stock_threshold=10,
    ):
        """Start stocking a product at an agency.

        Args:
            variants: Optional list of dicts with label, unit, price, stock.
                      When omitted the record uses the flat stock/agency_price.
        """
        now = datetime.now(UTC)
        record = cls(
            agency_id=agency_id,
            product_id=product_id,
            product_name=product_name,
            stock=stock,
            agency_price=agency_price,
            low_stock_threshold=low_stock_threshold,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        for variant in variants or []:
            record.add_variants(
                InventoryVariant(
                    label=variant["label"],
                    unit=variant.get("unit"),
                    price=variant["price"],
                    stock=variant.get("stock", 0),
                )
            )

        record.raise_(
            ProductStocked(
                inventory_id=str(record.id),
                agency_id=str(agency_id),
                product_id=str(product_id),
                product_name=product_name,
                variant_count=len(variants or []),
                stocked_at=now,
            )
        )
        return record

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    @property
    def has_variants(self) -> bool:
        return bool(self.variants)

    def variant(self, label):
        return next((v for v in self.variants if v.label == label), None)

    def _require_variant(self, label):
        variant = self.variant(label)
        if variant is None:
            raise VariantNotFound(self.product_name, label)
        return variant

    def price_for(self, label=None) -> float:
        """Authoritative unit price for ``label`` (or the flat agency price)."""
        if self.has_variants:
            return self._require_variant(label).price
        return self.agency_price

    def available(self, label=None) -> int:
        if self.has_variants:
            return self._require_variant(label).stock
        return self.stock

    # -------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------
    def reserve(self, label, quantity, order_id=None):
        """Decrement stock for an order. Rejects the whole call if stock is short."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        available = self.available(label)
        if available < quantity:
            raise InsufficientStock(self.product_name, label if self.has_variants else None, available, quantity)

        remaining = available - quantity
        self._write_stock(label, remaining)

        now = datetime.now(UTC)
        self.raise_(
            StockReserved(
                inventory_id=str(self.id),
                agency_id=str(self.agency_id),
                product_id=str(self.product_id),
                variant_label=label if self.has_variants else None,
                quantity=quantity,
                remaining=remaining,
                order_id=order_id,
                reserved_at=now,
            )
        )
        self._check_low_stock(label, remaining)
        return remaining

    def release(self, label, quantity, order_id=None) -> bool:
        """Put reserved units back. Returns False when the variant no longer exists."""
        if self.has_variants and self.variant(label) is None:
            return False

        remaining = self.available(label) + quantity
        self._write_stock(label, remaining)

        self.raise_(
            StockReleased(
                inventory_id=str(self.id),
                agency_id=str(self.agency_id),
                product_id=str(self.product_id),
                variant_label=label if self.has_variants else None,
                quantity=quantity,
                remaining=remaining,
                order_id=order_id,
                released_at=datetime.now(UTC),
            )
        )
        self._check_low_stock(label, remaining)
        return True

    def _write_stock(self, label, value):
        if self.has_variants:
            self._require_variant(label).stock = value
        else:
            self.stock = value
        self.updated_at = datetime.now(UTC)

    def _check_low_stock(self, label, current):
        """Raise LowStockDetected if stock is at or below the threshold."""
        if current <= self.low_stock_threshold:
            self.raise_(
                LowStockDetected(
                    inventory_id=str(self.id),
                    agency_id=str(self.agency_id),
                    product_id=str(self.product_id),
                    product_name=self.product_name,
                    variant_label=label if self.has_variants else None,
                    current_stock=current,
                    threshold=self.low_stock_threshold,
                    detected_at=datetime.now(UTC),
                )
            )

    def low_stock_levels(self):
        """(label, stock) pairs currently at or below the threshold."""
        if self.has_variants:
            return [(v.label, v.stock) for v in self.variants if v.stock <= self.low_stock_threshold]
        if self.stock <= self.low_stock_threshold:
            return [(None, self.stock)]
        return []

    # -------------------------------------------------------------------
    # Stock edits
    # -------------------------------------------------------------------
    def set_stock(self, label, stock):
        if stock < 0:
            raise ValidationError({"stock": ["Stock cannot be negative"]})

        previous = self.available(label)
        self._write_stock(label, stock)
        self.raise_(
            StockLevelSet(
                inventory_id=str(self.id),
                variant_label=label if self.has_variants else None,
                previous_stock=previous,
                new_stock=stock,
                set_at=datetime.now(UTC),
            )
        )
        self._check_low_stock(label, stock)

    def add_variant(self, label, price, stock=0, unit=None):
        if self.variant(label) is not None:
            raise ValidationError({"label": [f"Variant {label} already exists for {self.product_name}"]})

        self.add_variants(InventoryVariant(label=label, unit=unit, price=price, stock=stock))
        self.updated_at = datetime.now(UTC)
        self.raise_(
            VariantAdded(
                inventory_id=str(self.id),
                label=label,
                price=price,
                stock=stock,
            )
        )

    def set_active(self, is_active):
        if bool(is_active) == bool(self.is_active):
            return

        now = datetime.now(UTC)
        self.is_active = bool(is_active)
        self.updated_at = now
        self.raise_(
            InventoryVisibilityChanged(
                inventory_id=str(self.id),
                is_active=self.is_active,
                changed_at=now,
            )
        )

    def set_low_stock_threshold(self, threshold):
        if threshold < 0:
            raise ValidationError({"low_stock_threshold": ["Threshold cannot be negative"]})
        self.low_stock_threshold = threshold
        self.updated_at = datetime.now(UTC)
