# blueprints/billing/routes.py
from __future__ import annotations

from typing import Mapping, Optional

import stripe
from flask import jsonify, request, current_app, redirect, url_for, render_template, flash, Response
from . import bp
from models import catalog

from services.calendar import ICS_FILENAME, generate_ics, google_calendar_link, outlook_calendar_link
from services.checkout import OutcomeKind
from services.container import get_collaborators
from services.db import get_session
from services.models import Order, Subscription, WebhookEvent
from services.pricing import current_quote

# ---- 不直接 from stripe.error 匯入，動態抓取 ----
_stripe_error = getattr(stripe, "error", None)
SignatureVerificationError = (
    getattr(stripe, "SignatureVerificationError", None)
    or getattr(_stripe_error, "SignatureVerificationError", Exception)
)
StripeError = getattr(stripe, "StripeError", None) or getattr(_stripe_error, "StripeError", Exception)
# -----------------------------------------------------------------------

SUBSCRIPTION_EVENTS = {
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
}


def begin_checkout(
    course_id: str,
    form_data: Optional[Mapping[str, str]] = None,
    return_to: Optional[str] = None,
) -> Optional[Response]:
    """
    共用的結帳入口（dashboard 購買鈕、報名精靈最後一步）。
    回傳要送出的 redirect；失敗時已 flash 錯誤並回傳 None。
    """
    c = get_collaborators()
    user = c.gate.resolve().user
    price = current_quote(c.early_bird_deadline)

    success_url = url_for("billing.checkout_success", _external=True) + "?session_id={CHECKOUT_SESSION_ID}"
    cancel_url = url_for("billing.checkout_cancel", _external=True)

    outcome = c.checkout.start(
        user,
        course_id,
        amount=price.amount,
        success_url=success_url,
        cancel_url=cancel_url,
        form_data=form_data,
    )
    if outcome.kind is OutcomeKind.SIGN_IN_REQUIRED:
        flash("Please sign in to complete your purchase.", "error")
        return redirect(url_for("auth.login", next=return_to or url_for("dashboard.index")))
    if outcome.ok:
        # 303 轉向到 Stripe Checkout
        return redirect(outcome.redirect_url, code=303)

    flash(outcome.error or "Failed to start checkout process", "error")
    return None


@bp.get("/checkout")
def checkout_get():
    return "Please use the purchase button to start checkout (POST).", 405


@bp.post("/checkout")
def checkout():
    course_id = (request.form.get("course_id") or "").strip()
    if not course_id:
        flash("Missing course_id.", "error")
        return redirect(url_for("dashboard.index"))

    response = begin_checkout(course_id)
    if response is not None:
        return response
    return redirect(url_for("dashboard.index"))


@bp.get("/success")
def checkout_success():
    """
    成功頁：有 session_id 就嘗試查詢一次細節；查不到也不會 500。
    另外提供加入行事曆的連結。
    """
    c = get_collaborators()
    session_id = request.args.get("session_id")
    summary = None
    if session_id:
        try:
            summary = c.gateway.retrieve_summary(session_id)
        except Exception as e:
            current_app.logger.warning(f"[success] retrieve session failed: {e}")

    return render_template(
        "billing/success.html",
        summary=summary,
        session_id=session_id,
        event=c.event,
        google_link=google_calendar_link(c.event),
        outlook_link=outlook_calendar_link(c.event),
        course=catalog.MASTERCLASS,
    )


@bp.get("/cancel")
def checkout_cancel():
    return render_template("billing/cancel.html")


@bp.get("/calendar.ics")
def calendar_ics():
    body = generate_ics(get_collaborators().event)
    return Response(
        body,
        mimetype="text/calendar",
        headers={"Content-Disposition": f"attachment; filename={ICS_FILENAME}"},
    )


def _to_int(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _store_order(data_obj: dict) -> None:
    session_id = data_obj.get("id") or ""
    meta = data_obj.get("metadata") or {}
    payment_status = data_obj.get("payment_status") or "unpaid"
    order_status = "completed" if payment_status == "paid" else "pending"

    with get_session() as s:
        order = s.query(Order).filter_by(checkout_session_id=session_id).first()
        if not order:
            order = Order(
                checkout_session_id=session_id,
                user_id=_to_int(meta.get("user_id")),
                payment_intent_id=data_obj.get("payment_intent"),
                course_id=meta.get("course_id") or "unknown",
                amount_total=int(data_obj.get("amount_total") or 0),
                currency=data_obj.get("currency") or "usd",
                payment_status=payment_status,
                order_status=order_status,
                customer_email=(data_obj.get("customer_details") or {}).get("email"),
            )
            s.add(order)
        else:
            # Stripe 可能重送事件：僅更新狀態，不新增
            order.payment_status = payment_status
            order.order_status = order_status
        s.commit()

    current_app.logger.info(
        f"[webhook] checkout.completed stored: session={session_id} "
        f"user_id={meta.get('user_id')} amount_total={data_obj.get('amount_total')} status={payment_status}"
    )


def _store_subscription(etype: str, data_obj: dict) -> None:
    user_id = _to_int((data_obj.get("metadata") or {}).get("user_id"))
    if user_id is None:
        current_app.logger.info(f"[webhook] {etype} without user_id metadata; skipped")
        return

    items = (data_obj.get("items") or {}).get("data") or []
    price_id = ((items[0].get("price") or {}).get("id")) if items else None
    status = "canceled" if etype == "customer.subscription.deleted" else (data_obj.get("status") or "incomplete")

    with get_session() as s:
        sub = s.query(Subscription).filter_by(user_id=user_id).first()
        if not sub:
            sub = Subscription(user_id=user_id)
            s.add(sub)
        sub.subscription_status = status
        sub.price_id = price_id
        s.commit()


@bp.post("/webhook")
def webhook():
    """
    Stripe Webhook：驗簽 → 記錄事件（webhook_events）→
    checkout.session.completed 寫/更新 orders；customer.subscription.* 寫 subscriptions。
    本地測試：stripe listen --forward-to http://localhost:5000/billing/webhook
    """
    secret = current_app.config.get("STRIPE_WEBHOOK_SECRET", "")
    if not secret:
        # 未設定密鑰，拒絕處理，避免被偽造請求打爆
        return jsonify({"ok": False, "error": "missing STRIPE_WEBHOOK_SECRET"}), 400

    payload = request.data  # 必須是 bytes 原文
    sig_header = request.headers.get("Stripe-Signature", "")

    # --- 驗簽 ---
    try:
        event = stripe.Webhook.construct_event(
            payload=payload,
            sig_header=sig_header,
            secret=secret,
        )
    except SignatureVerificationError:
        return jsonify({"ok": False, "error": "invalid signature"}), 400
    except StripeError as e:
        return jsonify({"ok": False, "error": f"stripe error: {str(e)}"}), 400
    except Exception as e:
        return jsonify({"ok": False, "error": f"bad payload: {e}"}), 400

    etype = event.get("type", "")
    data_obj = (event.get("data") or {}).get("object") or {}
    eid = event.get("id")

    # --- 將原始事件冪等寫入 webhook_events ---
    try:
        with get_session() as s:
            if eid and not s.query(WebhookEvent).filter_by(event_id=eid).first():
                raw = event.to_dict() if hasattr(event, "to_dict") else dict(event)
                s.add(WebhookEvent(event_id=eid, type=etype, payload=raw))
                s.commit()
    except Exception as e:
        current_app.logger.exception(f"[webhook] save event failed: {e}")
        # 回 200 避免 Stripe 持續重試；錯誤留在 log
        return jsonify({"ok": False, "warning": "event log failed but ignored"}), 200

    try:
        if etype == "checkout.session.completed":
            _store_order(data_obj)
        elif etype in SUBSCRIPTION_EVENTS:
            _store_subscription(etype, data_obj)
        else:
            current_app.logger.info(f"[webhook] received event: {etype}")
    except Exception as e:
        current_app.logger.exception(f"[webhook] save {etype} failed: {e}")
        return jsonify({"ok": False, "warning": "event processing failed but ignored"}), 200

    return jsonify({"ok": True}), 200
