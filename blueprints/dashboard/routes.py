# blueprints/dashboard/routes.py
from __future__ import annotations

from flask import render_template, redirect, url_for, request, current_app

from . import bp
from models import catalog
from services.container import get_collaborators
from services.errors import FunnelError, user_message
from services.pricing import current_quote


@bp.get("/")
def index():
    """
    帳戶狀態頁。
    先確認登入（沒登入直接轉去登入頁），確認完才查訂閱與訂單。
    """
    c = get_collaborators()
    session = c.gate.resolve()
    if not session.authenticated:
        return redirect(url_for("auth.login", next=request.path))

    user = session.user
    subscription = None
    orders = []
    error = None
    try:
        subscription = c.orders.get_subscription(user.id)
        orders = c.orders.list_orders(user.id)
    except FunnelError as e:
        current_app.logger.warning(f"[dashboard] load failed for user={user.id}: {e}")
        error = e.user_message
    except Exception as e:
        current_app.logger.exception(f"[dashboard] unexpected error for user={user.id}")
        error = user_message(e)

    return render_template(
        "dashboard.html",
        user=user,
        subscription=subscription,
        orders=orders,
        error=error,
        products=catalog.COURSE_CATALOG,
        price=current_quote(c.early_bird_deadline),
    )
