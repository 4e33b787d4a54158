# app.py
import atexit
import logging

from flask import Flask, render_template, jsonify
from config import Config
from models import catalog

# DB / Login
from services.db import init_db, create_all
from services.log_config import setup_logging
from flask_login import LoginManager

from services.calendar import CalendarEvent
from services.checkout import CheckoutInitiator, StripeGateway
from services.container import Collaborators, EXTENSION_KEY, get_collaborators
from services.countdown import Countdown, CountdownTimer
from services.identity import IdentityGate, IdentityProvider
from services.orders import OrderStore
from services.pricing import quote

login_manager = LoginManager()
login_manager.login_view = "auth.login"  # type: ignore[assignment]
login_manager.login_message = "Please sign in to continue."


def _start_ticker(app: Flask, deadline: str) -> CountdownTimer:
    def on_expired() -> None:
        app.logger.info("[pricing] early-bird pricing ended; price is now $%s", quote(True).amount)

    timer = CountdownTimer(Countdown(deadline, on_expired=on_expired))
    timer.start()
    # 行程結束時取消重複計時
    atexit.register(timer.stop)
    return timer


def create_app(test_config=None, gateway=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    setup_logging(app.config.get("LOG_LEVEL", "INFO"))
    logging.getLogger("stripe").setLevel(logging.WARNING)

    # ---- 初始化資料庫 ----
    db_uri = app.config["SQLALCHEMY_DATABASE_URI"]
    init_db(db_uri, echo=app.config.get("SQLALCHEMY_ECHO", False))
    create_all()

    # ---- 協作者（由這裡建立，blueprint 透過 get_collaborators() 取用）----
    identity = IdentityProvider()
    gateway = gateway or StripeGateway(
        app.config.get("STRIPE_API_KEY", ""),
        currency=app.config.get("STRIPE_CURRENCY", "usd"),
    )
    deadline = app.config["EARLY_BIRD_DEADLINE"]
    collaborators = Collaborators(
        identity=identity,
        gate=IdentityGate(identity),
        orders=OrderStore(),
        gateway=gateway,
        checkout=CheckoutInitiator(gateway),
        early_bird_deadline=deadline,
        event=CalendarEvent.from_config(
            title="N8N Automations Masterclass",
            description=catalog.EVENT_DESCRIPTION,
            start=app.config["EVENT_START"],
            end=app.config["EVENT_END"],
            location=catalog.MASTERCLASS["location"],
        ),
    )
    if app.config.get("COUNTDOWN_TICKER"):
        collaborators.ticker = _start_ticker(app, deadline)
    app.extensions[EXTENSION_KEY] = collaborators

    # ---- 初始化 Flask-Login ----
    login_manager.init_app(app)
    login_manager.user_loader(identity.load_user)

    @app.before_request
    def resolve_session():
        # 每個 request 先解析一次登入狀態；使用者資料讀不到就整個 request 當訪客
        get_collaborators().gate.resolve()

    # ---- 藍圖註冊 ----
    from blueprints.auth import bp as auth_bp
    from blueprints.billing import bp as billing_bp
    from blueprints.dashboard import bp as dashboard_bp
    from blueprints.register import bp as register_bp

    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(billing_bp, url_prefix="/billing")
    app.register_blueprint(dashboard_bp, url_prefix="/dashboard")
    app.register_blueprint(register_bp, url_prefix="/register")

    # ---- 頁面與健康檢查 ----
    @app.get("/")
    def index():
        c = get_collaborators()
        session = c.gate.resolve()
        remaining = c.new_countdown().current_state()
        return render_template(
            "index.html",
            user=session.user,
            remaining=remaining,
            price=quote(remaining.expired),
            course=catalog.MASTERCLASS,
            event=c.event,
        )

    @app.get("/api/countdown")
    def countdown_api():
        # 前端每秒輪詢一次；到期後 expired=true 就可以停止
        remaining = get_collaborators().new_countdown().current_state()
        return jsonify({**remaining.to_dict(), "price": quote(remaining.expired).amount})

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app
