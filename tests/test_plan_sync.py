"""
Tests for Stripe -> billing_plans synchronization and CSV bulk upload.
"""
import io
import json
from unittest.mock import MagicMock

import pytest

from app.db.models.billing_plan import BillingPlan
from app.services import plan_sync, stripe_service
from app.services.plan_sync import parse_plan_csv, select_primary_price, sync_from_stripe
from app.services.settings_service import get_setting

PRODUCTS = [
    {"id": "prod_basic", "name": "Basic", "description": "Monthly plan", "active": True,
     "metadata": {"credits": "100", "features": json.dumps(["100 analyses"]), "sort_order": "1"}},
    {"id": "prod_annual", "name": "Annual", "description": "Yearly plan", "active": True,
     "metadata": {"credits": "1500"}},
    {"id": "prod_pack", "name": "Credit Pack", "description": None, "active": True,
     "metadata": {"credits": "50"}},
]

PRICES = [
    {"id": "price_basic", "product": "prod_basic", "unit_amount": 999, "currency": "usd",
     "recurring": {"interval": "month"}, "active": True},
    {"id": "price_annual", "product": "prod_annual", "unit_amount": 9900, "currency": "usd",
     "recurring": {"interval": "year"}, "active": True},
    {"id": "price_pack", "product": "prod_pack", "unit_amount": 499, "currency": "usd",
     "recurring": None, "active": True},
]


@pytest.fixture
def stripe_catalog(monkeypatch):
    products = MagicMock(return_value=PRODUCTS)
    prices = MagicMock(return_value=PRICES)
    monkeypatch.setattr(stripe_service, "list_active_products", products)
    monkeypatch.setattr(stripe_service, "list_active_prices", prices)
    return products


def _plans(db):
    return {p.stripe_product_id: p for p in db.query(BillingPlan).all()}


def test_sync_maps_intervals_and_metadata(db, stripe_catalog):
    result = sync_from_stripe(db)

    assert result["success"] is True
    assert result["errors"] == []
    assert [r["action"] for r in result["results"]] == ["created", "created", "created"]

    plans = _plans(db)
    assert plans["prod_basic"].interval_type == "monthly"
    assert plans["prod_basic"].price == 9.99
    assert plans["prod_basic"].credits == 100
    assert plans["prod_basic"].features == ["100 analyses"]
    assert plans["prod_basic"].sort_order == 1
    assert plans["prod_annual"].interval_type == "yearly"
    assert plans["prod_pack"].interval_type == "one_time"
    assert plans["prod_pack"].description == ""
    assert get_setting(db, "stripe", "last_synced_at") is not None


def test_sync_is_idempotent(db, stripe_catalog):
    sync_from_stripe(db)
    second = sync_from_stripe(db)

    assert [r["action"] for r in second["results"]] == ["updated", "updated", "updated"]
    assert db.query(BillingPlan).count() == 3


def test_sync_links_unlinked_row_by_name(db, stripe_catalog):
    db.add(BillingPlan(name="Basic", description="old", price=5, interval_type="monthly", features=[]))
    db.commit()

    sync_from_stripe(db)

    assert db.query(BillingPlan).count() == 3
    basic = db.query(BillingPlan).filter(BillingPlan.name == "Basic").one()
    assert basic.stripe_product_id == "prod_basic"
    assert basic.description == "Monthly plan"


def test_one_bad_product_does_not_stop_the_pass(db, monkeypatch):
    broken = {"id": "prod_broken", "name": "Broken", "active": True, "metadata": {"credits": "lots"}}
    monkeypatch.setattr(stripe_service, "list_active_products", MagicMock(return_value=[broken] + PRODUCTS))
    monkeypatch.setattr(
        stripe_service, "list_active_prices",
        MagicMock(return_value=PRICES + [{"id": "price_broken", "product": "prod_broken", "unit_amount": 100}]),
    )

    result = sync_from_stripe(db)

    assert result["success"] is False
    assert [e["product_id"] for e in result["errors"]] == ["prod_broken"]
    assert len(result["results"]) == 3
    assert "prod_broken" not in _plans(db)


def test_product_without_price_is_skipped(db, monkeypatch):
    monkeypatch.setattr(stripe_service, "list_active_products", MagicMock(return_value=PRODUCTS[:1]))
    monkeypatch.setattr(stripe_service, "list_active_prices", MagicMock(return_value=[]))

    result = sync_from_stripe(db)

    assert result["results"][0]["action"] == "skipped"
    assert db.query(BillingPlan).count() == 0


def test_select_primary_price_prefers_active_default():
    product = {"id": "prod_1", "default_price": "price_b"}
    prices = [{"id": "price_a", "active": True}, {"id": "price_b", "active": True}]
    assert select_primary_price(product, prices)["id"] == "price_b"

    prices[1]["active"] = False
    assert select_primary_price(product, prices)["id"] == "price_a"
    assert select_primary_price(product, []) is None


def test_sync_endpoint(client, db, super_admin, auth_headers, stripe_catalog):
    response = client.post("/api/admin/stripe-plans/sync", headers=auth_headers(super_admin))

    assert response.status_code == 200
    assert response.json()["message"] == "Synced 3 products"


def test_parse_plan_csv():
    text = (
        "\ufeffname,description,price,interval_type,credits,features,sort_order\n"
        "Starter,Entry plan,4.99,monthly,25,25 analyses|Email support,1\n"
        ",,,,,,\n"
        "Unlimited,No limits,49,monthly,-1,,2\n"
    )
    rows = parse_plan_csv(text)

    assert [r["name"] for r in rows] == ["Starter", "Unlimited"]
    assert rows[0]["features"] == ["25 analyses", "Email support"]
    assert rows[1]["credits"] == "-1"
    assert rows[1]["features"] == []


def test_parse_plan_csv_requires_header():
    with pytest.raises(ValueError):
        parse_plan_csv("foo,bar\n1,2\n")


def test_bulk_upload_isolates_bad_rows(client, db, super_admin, auth_headers, monkeypatch):
    monkeypatch.setattr(plan_sync, "create_plan", MagicMock(
        side_effect=lambda db, data: BillingPlan(id=42, name=data.name)
    ))
    csv_text = (
        "name,description,price,interval_type,credits,features,sort_order\n"
        "Starter,Entry plan,4.99,monthly,25,,1\n"
        "Weekly,Bad interval,2.00,weekly,5,,2\n"
    )

    response = client.post(
        "/api/admin/stripe-plans/bulk-upload",
        files={"file": ("plans.csv", io.BytesIO(csv_text.encode("utf-8")), "text/csv")},
        headers=auth_headers(super_admin),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["created"] == 1
    assert body["failed"] == 1
    assert body["results"][0] == {"row": 1, "name": "Starter", "success": True, "plan_id": 42, "error": None}
    assert body["results"][1]["success"] is False
    assert "interval_type" in body["results"][1]["error"]
