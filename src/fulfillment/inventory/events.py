"""Domain events for the AgencyInventory aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from fulfillment.domain import fulfillment


@fulfillment.event(part_of="AgencyInventory")
class ProductStocked:
    """An agency started stocking a product."""

    __version__ = 1

    inventory_id = Identifier(required=True)
    agency_id = Identifier(required=True)
    product_id = Identifier(required=True)
    product_name = String(required=True)
    variant_count = Integer(default=0)
    stocked_at = DateTime(required=True)


@fulfillment.event(part_of="AgencyInventory")
class StockReserved:
    """Units of a variant were reserved for an order at checkout."""

    __version__ = 1

    inventory_id = Identifier(required=True)
    agency_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_label = String()
    quantity = Integer(required=True)
    remaining = Integer(required=True)
    order_id = Identifier()
    reserved_at = DateTime(required=True)


@fulfillment.event(part_of="AgencyInventory")
class StockReleased:
    """Reserved units went back on the shelf after a cancellation or return."""

    __version__ = 1

    inventory_id = Identifier(required=True)
    agency_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_label = String()
    quantity = Integer(required=True)
    remaining = Integer(required=True)
    order_id = Identifier()
    released_at = DateTime(required=True)


@fulfillment.event(part_of="AgencyInventory")
class StockLevelSet:
    """An agency owner or admin overwrote a stock counter."""

    __version__ = 1

    inventory_id = Identifier(required=True)
    variant_label = String()
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    set_at = DateTime(required=True)


@fulfillment.event(part_of="AgencyInventory")
class VariantAdded:
    __version__ = 1

    inventory_id = Identifier(required=True)
    label = String(required=True)
    price = Float(required=True)
    stock = Integer(required=True)


@fulfillment.event(part_of="AgencyInventory")
class InventoryVisibilityChanged:
    __version__ = 1

    inventory_id = Identifier(required=True)
    is_active = Boolean()
    changed_at = DateTime(required=True)


@fulfillment.event(part_of="AgencyInventory")
class LowStockDetected:
    """Stock fell to or below the configured threshold."""

    __version__ = 1

    inventory_id = Identifier(required=True)
    agency_id = Identifier(required=True)
    product_id = Identifier(required=True)
    product_name = String(required=True)
    variant_label = String()
    current_stock = Integer(required=True)
    threshold = Integer(required=True)
    detected_at = DateTime(required=True)
