"""
Payments config: типизированная обёртка над sharehub.core.config для курса и лимитов покупки.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from sharehub.core.config import settings

CENT = Decimal("0.01")


def get_tokens_rate() -> Decimal:
    return Decimal(settings.tokens_per_fiat_unit)


def get_min_amount() -> Decimal:
    return Decimal(settings.purchase_min_amount)


def get_max_amount() -> Decimal:
    return Decimal(settings.purchase_max_amount)


def get_poll_interval() -> float:
    return settings.payment_poll_interval_seconds


def get_poll_max_attempts() -> int:
    return settings.payment_poll_max_attempts


def get_poll_jitter() -> float:
    return settings.payment_poll_jitter_seconds


def tokens_for_amount(amount: Decimal) -> Decimal:
    """Фиксированный линейный курс: 1 единица фиата = rate токенов (0.25 -> 2.50)."""
    return (Decimal(amount) * get_tokens_rate()).quantize(CENT, rounding=ROUND_HALF_UP)


def describe_purchase(tokens: Decimal) -> str:
    return f"Покупка {tokens:.2f} токенов"
