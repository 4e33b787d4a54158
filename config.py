# config.py
import os
from dotenv import load_dotenv

# 載入專案根目錄的 .env（沒有也不會報錯）
load_dotenv()


class Config:
    # Flask
    SECRET_KEY = os.getenv("SECRET_KEY", "please_change_me_in_dev")

    # Database（預設用 SQLite 檔案）
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///masterclass.db")
    SQLALCHEMY_ECHO = os.getenv("SQLALCHEMY_ECHO", "0") == "1"

    # Stripe
    STRIPE_API_KEY = os.getenv("STRIPE_API_KEY", "")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_CURRENCY = os.getenv("STRIPE_CURRENCY", "usd")

    # 早鳥截止與課程時間是兩個獨立設定，不假設兩者同步
    # 沒有時區的時間一律視為 UTC
    EARLY_BIRD_DEADLINE = os.getenv("EARLY_BIRD_DEADLINE", "2025-07-20T23:59:59")
    EVENT_START = os.getenv("EVENT_START", "2025-07-24T19:00:00Z")
    EVENT_END = os.getenv("EVENT_END", "2025-07-24T22:00:00Z")

    # 背景倒數（每秒 tick 一次，到期時記 log）
    COUNTDOWN_TICKER = os.getenv("COUNTDOWN_TICKER", "0") == "1"

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
