import threading

import pytest

from app import create_app
from services.checkout import CheckoutHandle, PaymentGateway
from services.errors import CheckoutSessionError

FAKE_CHECKOUT_URL = "https://checkout.stripe.test/c/pay/cs_test_123"


class FakeGateway(PaymentGateway):
    def __init__(self, url=FAKE_CHECKOUT_URL, error=None):
        self.url = url
        self.error = error
        self.calls = []

    def create_checkout_session(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return CheckoutHandle(session_id="cs_test_123", url=self.url)

    def retrieve_summary(self, session_id):
        return {
            "session_id": session_id,
            "status": "paid",
            "amount": 297.0,
            "email": "ada@example.com",
            "course_id": "n8n_masterclass",
        }


class BlockingGateway(FakeGateway):
    """第一個呼叫會卡住，直到 release 被 set。"""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.entered = threading.Event()
        self.release = threading.Event()

    def create_checkout_session(self, **kwargs):
        self.calls.append(kwargs)
        self.entered.set()
        self.release.wait(5)
        if self.error is not None:
            raise self.error
        return CheckoutHandle(session_id="cs_test_123", url=self.url)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def make_app(tmp_path):
    def _make(gateway=None, **overrides):
        config = {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{(tmp_path / 'test.db').as_posix()}",
            "STRIPE_API_KEY": "",
            "STRIPE_WEBHOOK_SECRET": "whsec_test",
            "EARLY_BIRD_DEADLINE": "2999-01-01T00:00:00Z",
            "EVENT_START": "2025-07-24T19:00:00Z",
            "EVENT_END": "2025-07-24T22:00:00Z",
            "COUNTDOWN_TICKER": False,
            "LOG_LEVEL": "WARNING",
        }
        config.update(overrides)
        return create_app(config, gateway=gateway or FakeGateway())

    return _make


@pytest.fixture
def app(make_app, gateway):
    return make_app(gateway=gateway)


@pytest.fixture
def client(app):
    return app.test_client()


def sign_up(client, email="ada@example.com", password="correct-horse"):
    return client.post(
        "/auth/signup",
        data={"email": email, "password": password, "confirm_password": password},
    )


@pytest.fixture
def signed_in_client(client):
    response = sign_up(client)
    assert response.status_code == 302
    return client


