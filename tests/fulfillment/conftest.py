"""Shared fixtures for fulfillment tests: an agency stocking cylinders and an engine wired to fakes."""

import json

import pytest
from fulfillment.agency.management import RegisterAgency, RegisterDeliveryAgent
from fulfillment.engine import FulfillmentEngine
from fulfillment.geo.fake_adapter import FakeDistance
from fulfillment.inventory.management import StockProduct
from fulfillment.notify.fake_adapter import RecordingNotifier
from fulfillment.order.actor import Admin
from protean import current_domain


def _register_agency(**overrides):
    data = {
        "name": "Sai Gas Agency",
        "email": "owner@saigas.example",
        "phone": "08012345678",
        "address": "14 Residency Road",
        "city": "Bengaluru",
        "pincode": "560025",
    }
    data.update(overrides)
    return current_domain.process(RegisterAgency(**data), asynchronous=False)


def _register_agent(agency_id, **overrides):
    data = {"agency_id": agency_id, "name": "Ravi Kumar", "phone": "9000000001", "vehicle_number": "ka01ab1234"}
    data.update(overrides)
    return current_domain.process(RegisterDeliveryAgent(**data), asynchronous=False)


@pytest.fixture()
def agency_id():
    return _register_agency()


@pytest.fixture()
def other_agency_id():
    return _register_agency(name="Lakshmi Gas", email="owner@lakshmigas.example", address="2 Hosur Road")


@pytest.fixture()
def inventory_id(agency_id):
    """14.2kg at 300 (10 in stock) and 19kg at 700 (5 in stock); low-stock threshold 2."""
    variants = [
        {"label": "14.2kg", "unit": "kg", "price": 300.0, "stock": 10},
        {"label": "19kg", "unit": "kg", "price": 700.0, "stock": 5},
    ]
    command = StockProduct(
        agency_id=agency_id,
        product_id="lpg-cylinder",
        product_name="LPG Cylinder",
        variants=json.dumps(variants),
        low_stock_threshold=2,
    )
    return current_domain.process(command, asynchronous=False)


@pytest.fixture()
def agent_id(agency_id):
    return _register_agent(agency_id)


@pytest.fixture()
def other_agent_id(other_agency_id):
    return _register_agent(other_agency_id, name="Imran Shaikh", phone="9000000002")


@pytest.fixture()
def distance():
    return FakeDistance(default_km=3.0)


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def engine(distance, notifier):
    return FulfillmentEngine(distance=distance, notifier=notifier)


@pytest.fixture()
def admin():
    return Admin(id="admin-001", name="Platform Admin", email="admin@gasflow.example")
