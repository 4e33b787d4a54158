# services/checkout.py
"""
建立 Stripe Checkout Session 並交回轉導網址。

- StripeGateway：唯一會呼叫 Stripe 的地方（一次 Session.create）。
- CheckoutInitiator：登入檢查、同一 user + 課程同時只允許一個請求、
  把每次請求記成 CheckoutRequest（idle -> pending -> succeeded / failed）。
"""
from __future__ import annotations

import abc
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

import stripe

from models.catalog import get_course
from services.errors import CheckoutSessionError, FunnelError, UNEXPECTED_ERROR_MESSAGE

logger = logging.getLogger(__name__)

# ---- 不直接 from stripe.error 匯入，新舊版 stripe 都能用 ----
_stripe_error = getattr(stripe, "error", None)
StripeError = getattr(stripe, "StripeError", None) or getattr(_stripe_error, "StripeError", Exception)
# -----------------------------------------------------------------------


@dataclass(frozen=True)
class CheckoutHandle:
    session_id: str
    url: Optional[str]


class PaymentGateway(abc.ABC):
    @abc.abstractmethod
    def create_checkout_session(
        self,
        *,
        product_id: str,
        title: str,
        unit_amount_cents: int,
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str] = None,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> CheckoutHandle:
        raise NotImplementedError

    def retrieve_summary(self, session_id: str) -> Optional[Dict[str, Any]]:
        return None


class StripeGateway(PaymentGateway):
    def __init__(self, api_key: str, currency: str = "usd"):
        self._api_key = api_key
        self._currency = currency

    def create_checkout_session(
        self,
        *,
        product_id: str,
        title: str,
        unit_amount_cents: int,
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str] = None,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> CheckoutHandle:
        if not self._api_key:
            raise CheckoutSessionError("Payments are not configured (missing STRIPE_API_KEY)")

        stripe.api_key = self._api_key
        meta = {"course_id": product_id, **dict(metadata or {})}

        # 避免把 None 傳給 customer_email
        params: Dict[str, Any] = {
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "line_items": [{
                "quantity": 1,
                "price_data": {
                    "currency": self._currency,
                    "unit_amount": unit_amount_cents,
                    "product_data": {
                        "name": title,
                        "metadata": {"course_id": product_id},
                    },
                },
            }],
            "metadata": meta,
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = stripe.checkout.Session.create(**params)
        except StripeError as e:
            user_msg = getattr(e, "user_message", None)
            raise CheckoutSessionError(f"Payment provider error: {user_msg or str(e)}") from e

        # 安全取得 URL
        checkout_url = getattr(session, "url", None)
        if not checkout_url and isinstance(session, dict):
            checkout_url = session.get("url")
        session_id = getattr(session, "id", None) or (session.get("id") if isinstance(session, dict) else "")
        return CheckoutHandle(session_id=session_id or "", url=checkout_url)

    def retrieve_summary(self, session_id: str) -> Optional[Dict[str, Any]]:
        """成功頁顯示用；實際交易結果仍以 Webhook 入庫為準。"""
        if not self._api_key:
            return None
        stripe.api_key = self._api_key
        try:
            sess = stripe.checkout.Session.retrieve(session_id, expand=["customer_details"])
        except StripeError as e:
            logger.warning("retrieve checkout session failed: %s", e)
            return None
        return {
            "session_id": sess.get("id"),
            "status": sess.get("payment_status"),
            "amount": (sess.get("amount_total") or 0) / 100,
            "email": (sess.get("customer_details") or {}).get("email"),
            "course_id": (sess.get("metadata") or {}).get("course_id"),
        }


# -------------------------
# 請求狀態
# -------------------------
class RequestState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class CheckoutRequest:
    product_id: str
    state: RequestState = RequestState.IDLE
    value: Optional[CheckoutHandle] = None
    error: Optional[str] = None
    history: List[RequestState] = field(default_factory=lambda: [RequestState.IDLE])

    def _move(self, state: RequestState) -> None:
        self.state = state
        self.history.append(state)

    def begin(self) -> None:
        self._move(RequestState.PENDING)

    def succeed(self, handle: CheckoutHandle) -> None:
        self.value = handle
        self._move(RequestState.SUCCEEDED)

    def fail(self, message: str) -> None:
        self.error = message
        self._move(RequestState.FAILED)


class OutcomeKind(str, Enum):
    REDIRECT = "redirect"
    SIGN_IN_REQUIRED = "sign_in_required"
    BUSY = "busy"
    FAILED = "failed"


@dataclass(frozen=True)
class CheckoutOutcome:
    kind: OutcomeKind
    redirect_url: Optional[str] = None
    error: Optional[str] = None
    request: Optional[CheckoutRequest] = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.REDIRECT


class CheckoutInitiator:
    def __init__(self, gateway: PaymentGateway):
        self._gateway = gateway
        self._lock = threading.Lock()
        self._in_flight: Set[Tuple[str, str]] = set()

    def is_in_flight(self, user_id: Any, product_id: str) -> bool:
        with self._lock:
            return (str(user_id), product_id) in self._in_flight

    def start(
        self,
        user: Any,
        product_id: str,
        *,
        amount: int,
        success_url: str,
        cancel_url: str,
        form_data: Optional[Mapping[str, str]] = None,
    ) -> CheckoutOutcome:
        if user is None:
            logger.info("checkout requested without a session; redirecting to sign-in")
            return CheckoutOutcome(OutcomeKind.SIGN_IN_REQUIRED)

        key = (str(user.id), product_id)
        with self._lock:
            if key in self._in_flight:
                logger.info("checkout already in flight", extra={"user_id": key[0], "product_id": product_id})
                return CheckoutOutcome(OutcomeKind.BUSY, error="Checkout is already in progress")
            self._in_flight.add(key)

        request = CheckoutRequest(product_id=product_id)
        try:
            request.begin()
            course = get_course(product_id)
            if course is None:
                raise CheckoutSessionError("Unknown course")

            metadata = {"user_id": key[0]}
            metadata.update({k: v for k, v in (form_data or {}).items() if v})
            handle = self._gateway.create_checkout_session(
                product_id=product_id,
                title=course["title"],
                unit_amount_cents=int(amount) * 100,
                success_url=success_url,
                cancel_url=cancel_url,
                customer_email=getattr(user, "email", None),
                metadata=metadata,
            )
            if not handle.url:
                raise CheckoutSessionError("Payment provider did not return a checkout URL")
            request.succeed(handle)
        except FunnelError as e:
            logger.warning("checkout failed: %s", e, extra={"product_id": product_id})
            request.fail(e.user_message)
        except Exception:
            logger.exception("checkout failed unexpectedly")
            request.fail(UNEXPECTED_ERROR_MESSAGE)
        finally:
            with self._lock:
                self._in_flight.discard(key)

        if request.state is RequestState.SUCCEEDED:
            logger.info(
                "checkout session created",
                extra={"user_id": key[0], "product_id": product_id, "session_id": request.value.session_id},
            )
            return CheckoutOutcome(OutcomeKind.REDIRECT, redirect_url=request.value.url, request=request)
        return CheckoutOutcome(OutcomeKind.FAILED, error=request.error, request=request)
