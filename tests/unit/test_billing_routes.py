import hashlib
import hmac
import json
import time
from unittest.mock import AsyncMock
from urllib.parse import parse_qs

from conftest import USER_ID
from fastapi.testclient import TestClient

from offerready.services.billing import provisioning_service


def _configure_stripe(monkeypatch):
    settings = provisioning_service.settings
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setattr(settings, "STRIPE_PRICE_MONTHLY", "price_month")
    monkeypatch.setattr(settings, "STRIPE_PRICE_ANNUAL", "price_year")
    monkeypatch.setattr(settings, "STRIPE_API_BASE_URL", "https://api.stripe.com/v1")


def test_checkout_missing_authorization_header(app):
    client = TestClient(app)

    response = client.post(
        "/billing/checkout", json={"priceType": "monthly", "returnUrl": "https://app.test"}
    )

    assert response.status_code == 401
    assert response.json() == {"error": "Missing Authorization header"}


def test_checkout_malformed_authorization_header(app):
    client = TestClient(app)

    response = client.post(
        "/billing/checkout",
        json={"priceType": "monthly", "returnUrl": "https://app.test"},
        headers={"Authorization": "Token abc"},
    )

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid Authorization header"}


def test_checkout_unverifiable_token(app):
    client = TestClient(app)

    response = client.post(
        "/billing/checkout",
        json={"priceType": "monthly", "returnUrl": "https://app.test"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid token"}


def test_checkout_rejects_weekly_price(app, apply_auth_override):
    apply_auth_override(app)
    client = TestClient(app)

    response = client.post(
        "/billing/checkout", json={"priceType": "weekly", "returnUrl": "https://app.test"}
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid priceType. Must be monthly or annual"}


def test_checkout_requires_return_url(app, apply_auth_override):
    apply_auth_override(app)
    client = TestClient(app)

    response = client.post("/billing/checkout", json={"priceType": "annual"})

    assert response.status_code == 400
    assert response.json() == {"error": "Missing returnUrl"}


def test_checkout_creates_customer_and_session(app, apply_auth_override, monkeypatch, httpx_mock):
    apply_auth_override(app)
    _configure_stripe(monkeypatch)
    monkeypatch.setattr(
        provisioning_service.SubscriptionRepository, "get_customer_id", AsyncMock(return_value=None)
    )
    link_customer = AsyncMock(return_value="cus_1")
    monkeypatch.setattr(provisioning_service.SubscriptionRepository, "link_customer", link_customer)
    httpx_mock.add_response(
        method="POST", url="https://api.stripe.com/v1/customers", json={"id": "cus_1"}
    )
    httpx_mock.add_response(
        method="POST",
        url="https://api.stripe.com/v1/checkout/sessions",
        json={"id": "cs_1", "url": "https://checkout.stripe.com/c/cs_1"},
    )
    client = TestClient(app)

    response = client.post(
        "/billing/checkout",
        json={"priceType": "monthly", "returnUrl": "https://app.test/settings"},
    )

    assert response.status_code == 200
    assert response.json() == {"url": "https://checkout.stripe.com/c/cs_1"}
    link_customer.assert_awaited_once_with(USER_ID, "cus_1")

    session_request = httpx_mock.get_requests()[-1]
    form = parse_qs(session_request.content.decode())
    assert form["success_url"] == ["https://app.test/settings?checkout=success"]
    assert form["cancel_url"] == ["https://app.test/settings?checkout=canceled"]
    assert form["subscription_data[trial_period_days]"] == ["7"]


def test_checkout_surfaces_stripe_error(app, apply_auth_override, monkeypatch, httpx_mock):
    apply_auth_override(app)
    _configure_stripe(monkeypatch)
    monkeypatch.setattr(
        provisioning_service.SubscriptionRepository,
        "get_customer_id",
        AsyncMock(return_value="cus_existing"),
    )
    httpx_mock.add_response(
        method="POST",
        url="https://api.stripe.com/v1/checkout/sessions",
        status_code=400,
        json={"error": {"message": "No such customer: 'cus_existing'"}},
    )
    client = TestClient(app)

    response = client.post(
        "/billing/checkout", json={"priceType": "monthly", "returnUrl": "https://app.test"}
    )

    assert response.status_code == 500
    assert response.json() == {"error": "No such customer: 'cus_existing'"}


def test_checkout_rejects_get(app):
    client = TestClient(app)

    response = client.get("/billing/checkout")

    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}


def test_billing_preflight_allows_any_origin(app):
    client = TestClient(app)

    response = client.options(
        "/billing/checkout",
        headers={
            "Origin": "https://offerready.app",
            "Access-Control-Request-Method": "POST",
        },
    )

    assert response.status_code == 204
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert response.headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"
    assert "authorization" in response.headers["Access-Control-Allow-Headers"]
    assert "apikey" in response.headers["Access-Control-Allow-Headers"]


def test_portal_without_customer(app, apply_auth_override, monkeypatch):
    apply_auth_override(app)
    _configure_stripe(monkeypatch)
    monkeypatch.setattr(
        provisioning_service.SubscriptionRepository, "get_customer_id", AsyncMock(return_value=None)
    )
    client = TestClient(app)

    response = client.post("/billing/portal", json={"returnUrl": "https://app.test"})

    assert response.status_code == 400
    assert response.json() == {"error": "No subscription found"}


def test_webhook_invalid_signature(app, monkeypatch):
    monkeypatch.setattr("offerready.services.billing.webhook_service.settings.STRIPE_WEBHOOK_SECRET", "whsec_test")
    client = TestClient(app)

    response = client.post(
        "/billing/webhook",
        content=b'{"type": "invoice.paid"}',
        headers={"Stripe-Signature": "t=1,v1=bad", "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid signature"}


def test_webhook_valid_signature(app, monkeypatch):
    monkeypatch.setattr("offerready.services.billing.webhook_service.settings.STRIPE_WEBHOOK_SECRET", "whsec_test")
    client = TestClient(app)

    raw = json.dumps({"type": "invoice.paid"}).encode("utf-8")
    timestamp = int(time.time())
    digest = hmac.new(b"whsec_test", f"{timestamp}.".encode() + raw, hashlib.sha256).hexdigest()

    response = client.post(
        "/billing/webhook",
        content=raw,
        headers={"Stripe-Signature": f"t={timestamp},v1={digest}", "Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert response.json() == {"received": True}


def test_subscription_status_for_user_without_row(app, apply_auth_override, monkeypatch):
    apply_auth_override(app)
    monkeypatch.setattr(
        "offerready.services.cached_reads.SubscriptionRepository.get", AsyncMock(return_value=None)
    )
    client = TestClient(app)

    response = client.get("/billing/subscription")

    assert response.status_code == 200
    body = response.json()
    assert body["plan"] == "free"
    assert body["is_pro"] is False
