"""Who performed an order transition.

An actor is one of Admin, AgencyOwner, Customer or System. ``attribution_for``
is the single place that turns an actor into the (role, id, display name)
triple stored on the order.
"""

from dataclasses import dataclass
from enum import Enum


class ActorRole(Enum):
    ADMIN = "admin"
    AGENCY = "agency"
    CUSTOMER = "customer"
    SYSTEM = "system"


@dataclass(frozen=True)
class Admin:
    id: str
    name: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class AgencyOwner:
    id: str
    name: str | None = None
    email: str | None = None
    agency_id: str | None = None


@dataclass(frozen=True)
class Customer:
    id: str
    name: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class System:
    name: str = "System"


Actor = Admin | AgencyOwner | Customer | System


@dataclass(frozen=True)
class Attribution:
    role: str
    actor_id: str | None
    display_name: str
    email: str | None = None


_ROLES = {
    Admin: ActorRole.ADMIN,
    AgencyOwner: ActorRole.AGENCY,
    Customer: ActorRole.CUSTOMER,
}


def attribution_for(actor: Actor) -> Attribution:
    if isinstance(actor, System):
        return Attribution(role=ActorRole.SYSTEM.value, actor_id=None, display_name=actor.name)

    role = _ROLES.get(type(actor))
    if role is None:
        raise TypeError(f"Unknown actor {actor!r}")

    return Attribution(
        role=role.value,
        actor_id=str(actor.id),
        display_name=actor.name or actor.email or role.value.title(),
        email=actor.email,
    )
