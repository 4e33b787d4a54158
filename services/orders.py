# services/orders.py
"""dashboard 用的唯讀查詢：訂閱狀態與訂單歷史（資料由 Stripe webhook 寫入）。"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError

from services.db import get_session
from services.errors import DataStoreError
from services.models import Order, Subscription


@dataclass(frozen=True)
class SubscriptionView:
    subscription_status: str
    price_id: Optional[str]

    @property
    def label(self) -> str:
        return self.subscription_status.replace("_", " ").upper()


@dataclass(frozen=True)
class OrderView:
    order_id: int
    amount_total: int
    currency: str
    payment_status: str
    order_status: str
    order_date: datetime

    @property
    def amount_display(self) -> str:
        return f"${self.amount_total / 100:,.2f} {self.currency.upper()}"


class OrderStore:
    def get_subscription(self, user_id: int) -> Optional[SubscriptionView]:
        try:
            with get_session() as s:
                row = s.query(Subscription).filter_by(user_id=user_id).one_or_none()
        except SQLAlchemyError as e:
            raise DataStoreError("Failed to load subscription") from e
        if row is None:
            return None
        return SubscriptionView(row.subscription_status, row.price_id)

    def list_orders(self, user_id: int) -> List[OrderView]:
        try:
            with get_session() as s:
                rows = (
                    s.query(Order)
                    .filter_by(user_id=user_id)
                    .order_by(desc(Order.order_date), desc(Order.id))
                    .all()
                )
        except SQLAlchemyError as e:
            raise DataStoreError("Failed to load orders") from e
        return [
            OrderView(
                order_id=r.id,
                amount_total=r.amount_total,
                currency=r.currency,
                payment_status=r.payment_status,
                order_status=r.order_status,
                order_date=r.order_date,
            )
            for r in rows
        ]
