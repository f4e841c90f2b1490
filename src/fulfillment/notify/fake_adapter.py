"""Recording notifier for tests. Can be told to raise on every call."""

from fulfillment.notify.port import Notifier


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self.should_fail = False

    def _record(self, hook: str, **details) -> None:
        self.calls.append((hook, details))
        if self.should_fail:
            raise RuntimeError(f"{hook} dispatch failed")

    def hooks(self) -> list[str]:
        return [hook for hook, _ in self.calls]

    def order_created(self, order) -> None:
        self._record("order_created", order_id=str(order.id))

    def order_status_changed(self, order, previous_status: str) -> None:
        self._record(
            "order_status_changed",
            order_id=str(order.id),
            previous_status=previous_status,
            new_status=order.status,
        )

    def low_stock(self, level: dict) -> None:
        self._record("low_stock", **level)

    def coupon_expired(self, coupon_id: str, code: str) -> None:
        self._record("coupon_expired", coupon_id=coupon_id, code=code)
