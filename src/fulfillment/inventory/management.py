"""Inventory management: commands and handler for agency stock edits."""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from fulfillment.agency.agency import Agency
from fulfillment.domain import fulfillment
from fulfillment.inventory.inventory import AgencyInventory


@fulfillment.command(part_of="AgencyInventory")
class StockProduct:
    """Start stocking a product at an agency, flat or with variants."""

    agency_id = Identifier(required=True)
    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    variants = Text()  # JSON: list of {label, unit, price, stock}
    stock = Integer(default=0, min_value=0)
    agency_price = Float(default=0.0, min_value=0.0)
    low_stock_threshold = Integer(default=10, min_value=0)


@fulfillment.command(part_of="AgencyInventory")
class SetStock:
    """Overwrite a stock counter (a variant's, or the flat counter when no label is given)."""

    inventory_id = Identifier(required=True)
    variant_label = String(max_length=50)
    stock = Integer(required=True, min_value=0)


@fulfillment.command(part_of="AgencyInventory")
class AddVariant:
    inventory_id = Identifier(required=True)
    label = String(required=True, max_length=50)
    unit = String(max_length=20)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)


@fulfillment.command(part_of="AgencyInventory")
class SetInventoryActive:
    inventory_id = Identifier(required=True)
    is_active = Boolean(default=True)


@fulfillment.command(part_of="AgencyInventory")
class SetLowStockThreshold:
    inventory_id = Identifier(required=True)
    low_stock_threshold = Integer(required=True, min_value=0)


@fulfillment.command_handler(part_of=AgencyInventory)
class InventoryCommandHandler:
    @handle(StockProduct)
    def stock_product(self, command):
        current_domain.repository_for(Agency).get(command.agency_id)

        repo = current_domain.repository_for(AgencyInventory)
        if repo.for_product(command.agency_id, command.product_id) is not None:
            raise ValidationError({"product_id": ["This agency already stocks the product"]})

        variants = json.loads(command.variants) if isinstance(command.variants, str) else command.variants
        record = AgencyInventory.stock_product(
            agency_id=command.agency_id,
            product_id=command.product_id,
            product_name=command.product_name,
            variants=variants,
            stock=command.stock,
            agency_price=command.agency_price,
            low_stock_threshold=command.low_stock_threshold,
        )
        repo.add(record)
        return str(record.id)

    @handle(SetStock)
    def set_stock(self, command):
        repo = current_domain.repository_for(AgencyInventory)
        record = repo.get(command.inventory_id)
        record.set_stock(command.variant_label, command.stock)
        repo.add(record)

    @handle(AddVariant)
    def add_variant(self, command):
        repo = current_domain.repository_for(AgencyInventory)
        record = repo.get(command.inventory_id)
        record.add_variant(command.label, command.price, stock=command.stock, unit=command.unit)
        repo.add(record)

    @handle(SetInventoryActive)
    def set_inventory_active(self, command):
        repo = current_domain.repository_for(AgencyInventory)
        record = repo.get(command.inventory_id)
        record.set_active(command.is_active)
        repo.add(record)

    @handle(SetLowStockThreshold)
    def set_low_stock_threshold(self, command):
        repo = current_domain.repository_for(AgencyInventory)
        record = repo.get(command.inventory_id)
        record.set_low_stock_threshold(command.low_stock_threshold)
        repo.add(record)
