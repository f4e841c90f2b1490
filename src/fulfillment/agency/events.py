"""Domain events for the Agency and DeliveryAgent aggregates."""

from protean.fields import DateTime, Identifier, String

from fulfillment.domain import fulfillment


@fulfillment.event(part_of="Agency")
class AgencyRegistered:
    """A new agency was registered on the platform."""

    __version__ = 1

    agency_id = Identifier(required=True)
    name = String(required=True)
    city = String()
    registered_at = DateTime(required=True)


@fulfillment.event(part_of="Agency")
class AgencyStatusChanged:
    """An agency was activated or deactivated."""

    __version__ = 1

    agency_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@fulfillment.event(part_of="DeliveryAgent")
class DeliveryAgentRegistered:
    """A delivery agent joined an agency's fleet."""

    __version__ = 1

    agent_id = Identifier(required=True)
    agency_id = Identifier(required=True)
    name = String(required=True)
    registered_at = DateTime(required=True)


@fulfillment.event(part_of="DeliveryAgent")
class DeliveryAgentStatusChanged:
    """A delivery agent went online or offline."""

    __version__ = 1

    agent_id = Identifier(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)
