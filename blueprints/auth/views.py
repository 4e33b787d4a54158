# blueprints/auth/views.py
from flask import render_template, request, redirect, url_for, flash, current_app
from flask_login import login_required

from . import bp
from services.container import get_collaborators
from services.errors import IdentityError, user_message


def _safe_next(default_endpoint: str) -> str:
    # 只接受站內相對路徑，避免 open redirect
    nxt = request.args.get("next") or request.form.get("next") or ""
    if nxt.startswith("/") and not nxt.startswith("//"):
        return nxt
    return url_for(default_endpoint)


@bp.route("/signup", methods=["GET", "POST"])
def signup():
    """註冊：email + password + 確認密碼 → 建立帳號並直接登入"""
    if request.method == "POST":
        email = request.form.get("email") or ""
        password = request.form.get("password") or ""
        confirm = request.form.get("confirm_password") or ""

        try:
            get_collaborators().identity.sign_up(email, password, confirm)
        except IdentityError as e:
            flash(e.user_message, "error")
            return render_template("auth/signup.html", email=email), 400
        except Exception as e:
            current_app.logger.exception(f"[auth] sign up failed: {e}")
            flash(user_message(e), "error")
            return render_template("auth/signup.html", email=email), 500

        flash("Account created! Welcome to the N8N Masterclass.", "success")
        return redirect(_safe_next("dashboard.index"))

    return render_template("auth/signup.html")


@bp.route("/login", methods=["GET", "POST"])
def login():
    if request.method == "POST":
        email = request.form.get("email") or ""
        password = request.form.get("password") or ""

        try:
            get_collaborators().identity.sign_in(email, password)
        except IdentityError as e:
            flash(e.user_message, "error")
            return render_template("auth/login.html", email=email), 401
        except Exception as e:
            current_app.logger.exception(f"[auth] sign in failed: {e}")
            flash(user_message(e), "error")
            return render_template("auth/login.html", email=email), 500

        flash("Signed in successfully.", "success")
        return redirect(_safe_next("dashboard.index"))

    return render_template("auth/login.html")


@bp.get("/logout")
@login_required
def logout():
    get_collaborators().identity.sign_out()
    flash("You have been signed out.", "success")
    return redirect(url_for("index"))
