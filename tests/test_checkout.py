import threading
from types import SimpleNamespace

from conftest import BlockingGateway, FakeGateway, FAKE_CHECKOUT_URL
from services.checkout import CheckoutHandle, CheckoutInitiator, OutcomeKind, RequestState
from services.errors import CheckoutSessionError

USER = SimpleNamespace(id=7, email="ada@example.com")
PRODUCT = "n8n_masterclass"


def start(initiator, user=USER, product=PRODUCT, **kwargs):
    return initiator.start(
        user,
        product,
        amount=kwargs.pop("amount", 297),
        success_url="https://example.test/billing/success",
        cancel_url="https://example.test/dashboard/",
        **kwargs,
    )


def test_anonymous_checkout_never_calls_gateway():
    gateway = FakeGateway()
    outcome = start(CheckoutInitiator(gateway), user=None)

    assert outcome.kind is OutcomeKind.SIGN_IN_REQUIRED
    assert gateway.calls == []


def test_successful_checkout_returns_hosted_url():
    gateway = FakeGateway()
    initiator = CheckoutInitiator(gateway)

    outcome = start(initiator, form_data={"full_name": "Ada", "company": ""})

    assert outcome.ok
    assert outcome.redirect_url == FAKE_CHECKOUT_URL
    assert outcome.request.history == [RequestState.IDLE, RequestState.PENDING, RequestState.SUCCEEDED]
    call = gateway.calls[0]
    assert call["unit_amount_cents"] == 29700
    assert call["customer_email"] == "ada@example.com"
    assert call["metadata"] == {"user_id": "7", "full_name": "Ada"}
    assert initiator.is_in_flight(USER.id, PRODUCT) is False


def test_provider_error_becomes_message_and_releases_flag():
    gateway = FakeGateway(error=CheckoutSessionError("Payment provider error: card declined"))
    initiator = CheckoutInitiator(gateway)

    outcome = start(initiator)

    assert outcome.kind is OutcomeKind.FAILED
    assert outcome.error == "Payment provider error: card declined"
    assert outcome.request.history[-1] is RequestState.FAILED
    assert initiator.is_in_flight(USER.id, PRODUCT) is False


def test_unexpected_error_uses_generic_message():
    initiator = CheckoutInitiator(FakeGateway(error=RuntimeError("socket closed")))

    outcome = start(initiator)

    assert outcome.error == "An unexpected error occurred"
    assert initiator.is_in_flight(USER.id, PRODUCT) is False


def test_missing_url_is_a_failure():
    class NoUrlGateway(FakeGateway):
        def create_checkout_session(self, **kwargs):
            self.calls.append(kwargs)
            return CheckoutHandle(session_id="cs_1", url=None)

    outcome = start(CheckoutInitiator(NoUrlGateway()))

    assert outcome.kind is OutcomeKind.FAILED
    assert "checkout URL" in outcome.error


def test_unknown_product_fails_without_request():
    gateway = FakeGateway()
    outcome = start(CheckoutInitiator(gateway), product="nope")

    assert outcome.kind is OutcomeKind.FAILED
    assert gateway.calls == []


def _run_in_thread(initiator, results, **kwargs):
    thread = threading.Thread(target=lambda: results.append(start(initiator, **kwargs)))
    thread.start()
    return thread


def test_second_call_for_same_product_is_rejected_while_pending():
    gateway = BlockingGateway()
    initiator = CheckoutInitiator(gateway)
    results = []

    thread = _run_in_thread(initiator, results)
    assert gateway.entered.wait(2)
    assert initiator.is_in_flight(USER.id, PRODUCT) is True

    second = start(initiator)
    gateway.release.set()
    thread.join(2)

    assert second.kind is OutcomeKind.BUSY
    assert len(gateway.calls) == 1
    assert results[0].ok
    assert initiator.is_in_flight(USER.id, PRODUCT) is False


def test_flag_released_when_pending_call_fails():
    gateway = BlockingGateway(error=RuntimeError("boom"))
    initiator = CheckoutInitiator(gateway)
    results = []

    thread = _run_in_thread(initiator, results)
    assert gateway.entered.wait(2)
    gateway.release.set()
    thread.join(2)

    assert results[0].kind is OutcomeKind.FAILED
    assert initiator.is_in_flight(USER.id, PRODUCT) is False


def test_different_users_do_not_block_each_other():
    gateway = BlockingGateway()
    initiator = CheckoutInitiator(gateway)
    results = []

    thread = _run_in_thread(initiator, results)
    assert gateway.entered.wait(2)

    other = SimpleNamespace(id=8, email="grace@example.com")
    other_thread = _run_in_thread(initiator, results, user=other)
    gateway.release.set()
    thread.join(2)
    other_thread.join(2)

    assert len(gateway.calls) == 2
    assert all(r.ok for r in results)
