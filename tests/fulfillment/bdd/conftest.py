"""Shared BDD fixtures and step definitions for fulfillment scenarios."""

import json

import pytest
from fulfillment.inventory.inventory import AgencyInventory
from fulfillment.inventory.management import StockProduct
from fulfillment.order.order import Order
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then


@pytest.fixture()
def context():
    """Scenario state shared between steps."""
    return {"order": None, "inventory_id": None, "code": None, "error": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("an agency with {small:d} cylinders of 14.2kg at 300 and {large:d} of 19kg at 700"))
def _(agency_id, context, small, large):
    variants = [
        {"label": "14.2kg", "unit": "kg", "price": 300.0, "stock": small},
        {"label": "19kg", "unit": "kg", "price": 700.0, "stock": large},
    ]
    context["inventory_id"] = current_domain.process(
        StockProduct(
            agency_id=agency_id,
            product_id="lpg-cylinder",
            product_name="LPG Cylinder",
            variants=json.dumps(variants),
            low_stock_threshold=1,
        ),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order is "{status}"'))
def _(context, status):
    assert current_domain.repository_for(Order).get(context["order"].id).status == status


@then(parsers.cfparse('{count:d} "{label}" cylinders remain'))
def _(context, count, label):
    record = current_domain.repository_for(AgencyInventory).get(context["inventory_id"])
    assert record.available(label) == count


@then(parsers.cfparse('the request is rejected with "{message}"'))
def _(context, message):
    assert isinstance(context["error"], ValidationError), f"Expected a rejection, got {context['error']!r}"
    assert str(context["error"]) == message


@then("the request is rejected")
def _(context):
    assert isinstance(context["error"], ValidationError), f"Expected a rejection, got {context['error']!r}"
