"""Human-readable order numbers: ``ORD-<last 6 digits of epoch ms>-<6 random chars>``.

Collisions are made unlikely by the random suffix and impossible by the
unique constraint on ``Order.order_number``.
"""

import secrets
import string
import time

_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number(now_ms: int | None = None) -> str:
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(6))
    return f"ORD-{str(now_ms)[-6:]}-{suffix}"


def generate_delivery_code() -> str:
    """Six-digit numeric one-time code (100000-999999)."""
    return str(100000 + secrets.randbelow(900000))
