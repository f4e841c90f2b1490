"""Fulfillment bounded context: Order Fulfillment Engine for gas-cylinder delivery.

Validates and prices checkouts against agency-scoped inventory, reserves stock,
drives orders through the delivery state machine with an OTP-gated handoff,
and releases reservations on cancellation or return. All aggregates are CQRS
(not event sourced): each command runs inside a single unit of work and relies
on aggregate versioning for optimistic concurrency.
"""

from protean.domain import Domain

fulfillment = Domain(name="fulfillment")
