# services/pricing.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from services.countdown import compute_remaining, parse_instant, utcnow

EARLY_BIRD_PRICE = 297
STANDARD_PRICE = 397


def price(expired: bool) -> int:
    """早鳥期間 297，截止後 397（美元）。"""
    return STANDARD_PRICE if expired else EARLY_BIRD_PRICE


@dataclass(frozen=True)
class PriceQuote:
    amount: int
    original_amount: int
    is_early_bird: bool

    @property
    def savings(self) -> int:
        return self.original_amount - self.amount

    @property
    def unit_amount_cents(self) -> int:
        return self.amount * 100


def quote(expired: bool) -> PriceQuote:
    return PriceQuote(amount=price(expired), original_amount=STANDARD_PRICE, is_early_bird=not expired)


def current_quote(deadline: str | datetime, now: datetime | None = None) -> PriceQuote:
    remaining = compute_remaining(parse_instant(deadline), now or utcnow())
    return quote(remaining.expired)
