# services/container.py
"""create_app() 組好的協作者，放在 app.extensions 裡讓 blueprint 取用。"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from flask import current_app

from services.calendar import CalendarEvent
from services.checkout import CheckoutInitiator, PaymentGateway
from services.countdown import Countdown, CountdownTimer
from services.identity import IdentityGate, IdentityProvider
from services.orders import OrderStore

EXTENSION_KEY = "masterclass"


@dataclass
class Collaborators:
    identity: IdentityProvider
    gate: IdentityGate
    orders: OrderStore
    gateway: PaymentGateway
    checkout: CheckoutInitiator
    early_bird_deadline: str
    event: CalendarEvent
    ticker: Optional[CountdownTimer] = None

    def new_countdown(self) -> Countdown:
        # 每個 request 都從頭算，不沿用上一次的狀態
        return Countdown(self.early_bird_deadline)


def get_collaborators() -> Collaborators:
    return current_app.extensions[EXTENSION_KEY]
