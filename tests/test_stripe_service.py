"""
Tests for the Stripe wrapper: parameter mapping and error translation.
The SDK classes are patched; nothing reaches the network.
"""
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import stripe

from app.services import stripe_service
from app.services.stripe_service import ExternalServiceError
from app.storage.base import build_storage_key


@pytest.mark.parametrize("interval_type, expected", [("monthly", "month"), ("yearly", "year"), ("one_time", None)])
def test_to_stripe_interval(interval_type, expected):
    assert stripe_service.to_stripe_interval(interval_type) == expected


def test_to_interval_type():
    assert stripe_service.to_interval_type({"recurring": {"interval": "month"}}) == "monthly"
    assert stripe_service.to_interval_type({"recurring": {"interval": "year"}}) == "yearly"
    assert stripe_service.to_interval_type({"recurring": None}) == "one_time"


def test_create_price_maps_interval_and_amount(monkeypatch):
    create = MagicMock(return_value={"id": "price_1"})
    monkeypatch.setattr(stripe.Price, "create", create)

    stripe_service.create_price("prod_1", 9.99, "USD", "monthly")
    stripe_service.create_price("prod_1", 4.5, "usd", "one_time")

    monthly, one_time = create.call_args_list
    assert monthly.kwargs == {
        "product": "prod_1",
        "unit_amount": 999,
        "currency": "usd",
        "recurring": {"interval": "month"},
    }
    assert "recurring" not in one_time.kwargs
    assert one_time.kwargs["unit_amount"] == 450


def test_sdk_errors_become_external_service_errors(monkeypatch):
    monkeypatch.setattr(stripe.Product, "create", MagicMock(side_effect=stripe.StripeError("boom")))

    with pytest.raises(ExternalServiceError):
        stripe_service.create_product("Basic", "Monthly plan")


def test_checkout_session_carries_metadata(monkeypatch):
    create = MagicMock(return_value=SimpleNamespace(id="cs_1", url="https://checkout.stripe.com/c/pay/cs_1"))
    monkeypatch.setattr(stripe.checkout.Session, "create", create)
    metadata = {"user_id": "7", "type": "subscription", "package_id": "", "plan_id": "basic"}

    result = stripe_service.create_checkout_session(7, "jane@example.com", "price_basic", "subscription", metadata)

    assert result == {"url": "https://checkout.stripe.com/c/pay/cs_1", "session_id": "cs_1"}
    params = create.call_args.kwargs
    assert params["line_items"] == [{"price": "price_basic", "quantity": 1}]
    assert params["subscription_data"] == {"metadata": metadata}
    assert params["customer_email"] == "jane@example.com"
    assert "{CHECKOUT_SESSION_ID}" in params["success_url"]


def test_construct_event_rejects_missing_signature():
    with pytest.raises(stripe_service.WebhookVerificationError):
        stripe_service.construct_event(b"{}", None)


def test_storage_key_is_namespaced_and_sanitized():
    key = build_storage_key(42, "My CV (final).pdf")
    assert key.startswith("42/")
    assert key.endswith("-My_CV_final_.pdf")
    assert "/" not in key[len("42/"):]
