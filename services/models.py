# services/models.py
from __future__ import annotations

from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy import Integer, String, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from services.db import Base


# -------------------------
# Users
# -------------------------
class User(Base, UserMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def set_password(self, raw_password: str) -> None:
        self.password_hash = generate_password_hash(raw_password)

    def check_password(self, raw_password: str) -> bool:
        return bool(self.password_hash) and check_password_hash(self.password_hash, raw_password)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} email={self.email!r}>"


# -------------------------
# Webhook 原始事件（審計/重放/對帳）
# -------------------------
class WebhookEvent(Base):
    """
    保存從 Stripe 收到的原始事件。
    - 以 event_id 做唯一性，避免重送事件造成重複。
    """
    __tablename__ = "webhook_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    type: Mapped[str] = mapped_column(String(64))
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<WebhookEvent id={self.id} event_id={self.event_id!r} type={self.type!r}>"


# -------------------------
# 訂單（dashboard 的 Order History）
# -------------------------
class Order(Base):
    """
    對應一次 checkout.session.completed。
    - 以 checkout_session_id 去重，避免重送事件新增多筆。
    - amount_total 以「分」保存，和 Stripe 一致。
    """
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, index=True, nullable=True)
    checkout_session_id: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    payment_intent_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    course_id: Mapped[str] = mapped_column(String(64), default="unknown")
    amount_total: Mapped[int] = mapped_column(Integer, default=0)
    currency: Mapped[str] = mapped_column(String(8), default="usd")
    payment_status: Mapped[str] = mapped_column(String(32), default="unpaid")
    order_status: Mapped[str] = mapped_column(String(32), default="pending")
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    order_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Order id={self.id} session={self.checkout_session_id!r} "
            f"amount_total={self.amount_total} status={self.order_status!r}>"
        )


# -------------------------
# 訂閱狀態（每個 user 最多一列）
# -------------------------
class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, unique=True, index=True)
    subscription_status: Mapped[str] = mapped_column(String(32), default="not_started")
    price_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Subscription user_id={self.user_id} status={self.subscription_status!r}>"
