"""Pydantic input contracts for the fulfillment engine.

These are external contracts (anti-corruption layer), separate from the
internal Protean commands. Malformed input is rejected here, before the
engine touches the store.
"""

from protean.exceptions import ValidationError
from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as SchemaError


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutItemSchema(BaseModel):
    product_id: str = Field(min_length=1)
    variant_label: str | None = None
    quantity: int = Field(ge=1)
    price: float = Field(ge=0)


class CustomerSchema(BaseModel):
    id: str | None = None
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    phone: str = Field(min_length=5, max_length=20)
    address: str | None = Field(default=None, max_length=500)


class CheckoutRequest(BaseModel):
    agency_id: str = Field(min_length=1)
    customer: CustomerSchema
    delivery_mode: str = Field(pattern="^(home_delivery|pickup)$")
    payment_method: str | None = Field(default=None, max_length=30)
    items: list[CheckoutItemSchema] = Field(min_length=1)
    coupon_code: str | None = Field(default=None, max_length=50)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "agency_id": "agency-001",
                    "customer": {
                        "name": "Asha Rao",
                        "email": "asha@example.com",
                        "phone": "9876543210",
                        "address": "12 MG Road, Bengaluru 560001",
                    },
                    "delivery_mode": "home_delivery",
                    "items": [{"product_id": "lpg-cylinder", "variant_label": "14.2kg", "quantity": 1, "price": 905}],
                    "coupon_code": "WELCOME10",
                }
            ]
        }
    }

    @model_validator(mode="after")
    def home_delivery_needs_an_address(self):
        if self.delivery_mode == "home_delivery" and not (self.customer.address or "").strip():
            raise ValueError("Customer address is required for home delivery")
        return self


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------
class ConfirmPayload(BaseModel):
    admin_notes: str | None = None


class AssignPayload(BaseModel):
    agent_id: str = Field(min_length=1)
    agent_notes: str | None = None


class CancelPayload(BaseModel):
    reason: str | None = Field(default=None, max_length=500)
    admin_notes: str | None = None


class ReturnPayload(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class PickupPaymentPayload(BaseModel):
    payment_received: bool = True
    payment_note: str | None = Field(default=None, max_length=500)


class VerifyCodeRequest(BaseModel):
    code: str = Field(min_length=1, max_length=20)
    delivery_proof: str | None = Field(default=None, max_length=500)
    delivery_note: str | None = Field(default=None, max_length=1000)
    payment_received: bool | None = None


def parse(schema: type[BaseModel], data) -> BaseModel:
    """Validate ``data`` against ``schema``, raising Protean's ValidationError on failure."""
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data or {})
    except SchemaError as exc:
        messages: dict[str, list[str]] = {}
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"]) or "input"
            messages.setdefault(field, []).append(error["msg"])
        raise ValidationError(messages) from exc
