"""Coupon management: commands and handler."""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Date, DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from fulfillment.agency.agency import Agency
from fulfillment.coupon.coupon import Coupon, normalize_code
from fulfillment.domain import fulfillment

logger = structlog.get_logger(__name__)


@fulfillment.command(part_of="Coupon")
class CreateCoupon:
    code = String(required=True, max_length=50)
    agency_id = Identifier(required=True)
    discount_type = String(required=True, max_length=20)
    discount_value = Float(required=True, min_value=0.0)
    min_amount = Float(default=0.0, min_value=0.0)
    max_amount = Float(min_value=0.0)
    expiry_date = Date(required=True)
    expiry_time = String(required=True, max_length=8)


@fulfillment.command(part_of="Coupon")
class ToggleCoupon:
    coupon_id = Identifier(required=True)


@fulfillment.command(part_of="Coupon")
class DeleteCoupon:
    coupon_id = Identifier(required=True)


@fulfillment.command(part_of="Coupon")
class DeactivateExpiredCoupon:
    """Persist the auto-expiry of a coupon that was evaluated past its expiry."""

    coupon_id = Identifier(required=True)
    evaluated_at = DateTime()


@fulfillment.command_handler(part_of=Coupon)
class CouponCommandHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        current_domain.repository_for(Agency).get(command.agency_id)

        repo = current_domain.repository_for(Coupon)
        if repo.by_code(normalize_code(command.code)) is not None:
            raise ValidationError({"code": ["Coupon code already exists"]})

        coupon = Coupon.create(
            code=command.code,
            agency_id=command.agency_id,
            discount_type=command.discount_type,
            discount_value=command.discount_value,
            min_amount=command.min_amount,
            max_amount=command.max_amount,
            expiry_date=command.expiry_date,
            expiry_time=command.expiry_time,
        )
        repo.add(coupon)
        logger.info("Coupon created", coupon_id=str(coupon.id), code=coupon.code, agency_id=str(command.agency_id))
        return str(coupon.id)

    @handle(ToggleCoupon)
    def toggle_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = repo.get(command.coupon_id)
        coupon.toggle()
        repo.add(coupon)
        return coupon.is_active

    @handle(DeleteCoupon)
    def delete_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = repo.get(command.coupon_id)
        repo._dao.delete(coupon)

    @handle(DeactivateExpiredCoupon)
    def deactivate_expired_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = repo.get(command.coupon_id)

        flipped = coupon.expire(command.evaluated_at or datetime.now(UTC))
        if flipped:
            repo.add(coupon)
            logger.info("Coupon deactivated after expiry", coupon_id=str(coupon.id), code=coupon.code)
        return flipped
