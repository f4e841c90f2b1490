"""Notification dispatcher port.

Fire-and-forget hooks the engine calls after its unit of work has committed.
Implementations must not be relied on for correctness: the engine logs and
swallows their failures.
"""

from abc import ABC, abstractmethod


class Notifier(ABC):
    @abstractmethod
    def order_created(self, order) -> None: ...

    @abstractmethod
    def order_status_changed(self, order, previous_status: str) -> None: ...

    @abstractmethod
    def low_stock(self, level: dict) -> None:
        """``level`` carries agency_id, product_id, product_name, variant_label, stock and threshold."""
        ...

    @abstractmethod
    def coupon_expired(self, coupon_id: str, code: str) -> None: ...
