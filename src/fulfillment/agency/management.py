"""Agency and fleet management: commands and handlers."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from fulfillment.agency.agency import Agency, DeliveryAgent
from fulfillment.domain import fulfillment
from fulfillment.errors import AgencyInUse
from fulfillment.order.order import Order

logger = structlog.get_logger(__name__)


@fulfillment.command(part_of="Agency")
class RegisterAgency:
    name = String(required=True, max_length=255)
    email = String(required=True, max_length=255)
    phone = String(max_length=20)
    address = String(required=True, max_length=500)
    city = String(required=True, max_length=100)
    pincode = String(max_length=10)


@fulfillment.command(part_of="Agency")
class ChangeAgencyStatus:
    agency_id = Identifier(required=True)
    status = String(required=True, max_length=20)


@fulfillment.command(part_of="Agency")
class RemoveAgency:
    """Delete an agency. Refused while any order still references it."""

    agency_id = Identifier(required=True)


@fulfillment.command(part_of="DeliveryAgent")
class RegisterDeliveryAgent:
    agency_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    phone = String(required=True, max_length=20)
    email = String(max_length=255)
    vehicle_number = String(max_length=20)


@fulfillment.command(part_of="DeliveryAgent")
class SetAgentStatus:
    agent_id = Identifier(required=True)
    status = String(required=True, max_length=20)


@fulfillment.command_handler(part_of=Agency)
class AgencyCommandHandler:
    @handle(RegisterAgency)
    def register_agency(self, command):
        agency = Agency.register(
            name=command.name,
            email=command.email,
            phone=command.phone,
            address=command.address,
            city=command.city,
            pincode=command.pincode,
        )
        current_domain.repository_for(Agency).add(agency)
        logger.info("Agency registered", agency_id=str(agency.id), city=command.city)
        return str(agency.id)

    @handle(ChangeAgencyStatus)
    def change_agency_status(self, command):
        repo = current_domain.repository_for(Agency)
        agency = repo.get(command.agency_id)
        agency.change_status(command.status)
        repo.add(agency)

    @handle(RemoveAgency)
    def remove_agency(self, command):
        repo = current_domain.repository_for(Agency)
        agency = repo.get(command.agency_id)

        referencing = current_domain.repository_for(Order).count_for_agency(str(agency.id))
        if referencing:
            raise AgencyInUse(f"Agency {agency.name} cannot be removed: {referencing} order(s) reference it")

        repo._dao.delete(agency)
        logger.info("Agency removed", agency_id=str(agency.id))


@fulfillment.command_handler(part_of=DeliveryAgent)
class DeliveryAgentCommandHandler:
    @handle(RegisterDeliveryAgent)
    def register_agent(self, command):
        # Raises ObjectNotFoundError for an unknown agency
        current_domain.repository_for(Agency).get(command.agency_id)

        agent = DeliveryAgent.register(
            agency_id=command.agency_id,
            name=command.name,
            phone=command.phone,
            email=command.email,
            vehicle_number=command.vehicle_number,
        )
        current_domain.repository_for(DeliveryAgent).add(agent)
        return str(agent.id)

    @handle(SetAgentStatus)
    def set_agent_status(self, command):
        repo = current_domain.repository_for(DeliveryAgent)
        agent = repo.get(command.agent_id)
        agent.set_status(command.status)
        repo.add(agent)
