"""Agency and DeliveryAgent aggregates.

Only the parts of an agency that take part in fulfillment live here: its
address (the origin of every delivery-distance lookup), its status (checkout
is refused for inactive agencies) and its fleet of delivery agents.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String

from fulfillment.agency.events import (
    AgencyRegistered,
    AgencyStatusChanged,
    DeliveryAgentRegistered,
    DeliveryAgentStatusChanged,
)
from fulfillment.domain import fulfillment


class AgencyStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AgentStatus(Enum):
    ONLINE = "online"
    OFFLINE = "offline"


@fulfillment.aggregate
class Agency:
    name = String(required=True, max_length=255)
    email = String(required=True, max_length=255)
    phone = String(max_length=20)
    address = String(required=True, max_length=500)
    city = String(required=True, max_length=100)
    pincode = String(max_length=10)
    status = String(choices=AgencyStatus, default=AgencyStatus.ACTIVE.value)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(cls, name, email, address, city, phone=None, pincode=None):
        now = datetime.now(UTC)
        agency = cls(
            name=name,
            email=email.strip().lower(),
            phone=phone,
            address=address,
            city=city,
            pincode=pincode,
            status=AgencyStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )
        agency.raise_(
            AgencyRegistered(
                agency_id=str(agency.id),
                name=name,
                city=city,
                registered_at=now,
            )
        )
        return agency

    @property
    def is_active(self) -> bool:
        return self.status == AgencyStatus.ACTIVE.value

    @property
    def full_address(self) -> str:
        """Origin address handed to the distance capability."""
        return ", ".join(part for part in (self.address, self.city, self.pincode) if part)

    def change_status(self, status):
        try:
            new_status = AgencyStatus(status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown agency status {status}"]}) from None

        if new_status.value == self.status:
            return

        previous = self.status
        now = datetime.now(UTC)
        self.status = new_status.value
        self.updated_at = now
        self.raise_(
            AgencyStatusChanged(
                agency_id=str(self.id),
                previous_status=previous,
                new_status=new_status.value,
                changed_at=now,
            )
        )


@fulfillment.aggregate
class DeliveryAgent:
    agency_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    email = String(max_length=255)
    phone = String(required=True, max_length=20)
    vehicle_number = String(max_length=20)
    status = String(choices=AgentStatus, default=AgentStatus.OFFLINE.value)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(cls, agency_id, name, phone, email=None, vehicle_number=None):
        now = datetime.now(UTC)
        agent = cls(
            agency_id=agency_id,
            name=name,
            phone=phone,
            email=email.strip().lower() if email else None,
            vehicle_number=vehicle_number.strip().upper() if vehicle_number else None,
            status=AgentStatus.OFFLINE.value,
            created_at=now,
            updated_at=now,
        )
        agent.raise_(
            DeliveryAgentRegistered(
                agent_id=str(agent.id),
                agency_id=str(agency_id),
                name=name,
                registered_at=now,
            )
        )
        return agent

    def set_status(self, status):
        try:
            new_status = AgentStatus(status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown agent status {status}"]}) from None

        now = datetime.now(UTC)
        self.status = new_status.value
        self.updated_at = now
        self.raise_(
            DeliveryAgentStatusChanged(
                agent_id=str(self.id),
                new_status=new_status.value,
                changed_at=now,
            )
        )
