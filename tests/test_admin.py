"""
Tests for the admin back office endpoints.
"""
from datetime import datetime, timedelta

from app.db.models.billing_plan import BillingPlan
from app.db.models.credit_transaction import CreditTransaction
from app.db.models.resume import Resume
from app.db.models.user import Profile
from app.services.settings_service import get_setting, set_setting


def _reload(db, profile_id):
    db.expire_all()
    return db.get(Profile, profile_id)


def test_list_users_filters_and_counts(client, db, make_profile, super_admin, auth_headers):
    make_profile(email="alice@example.com", full_name="Alice")
    make_profile(email="bob@example.com", full_name="Bob", is_blocked=True)

    headers = auth_headers(super_admin)
    everyone = client.get("/api/admin/users", headers=headers).json()
    assert everyone["pagination"]["total"] == 3

    blocked = client.get("/api/admin/users", params={"status": "blocked"}, headers=headers).json()
    assert [u["email"] for u in blocked["users"]] == ["bob@example.com"]

    found = client.get("/api/admin/users", params={"search": "ALI"}, headers=headers).json()
    assert [u["email"] for u in found["users"]] == ["alice@example.com"]
    assert found["users"][0]["resume_count"] == 0


def test_update_user_credits_goes_through_ledger(client, db, profile, super_admin, auth_headers):
    response = client.put(
        f"/api/admin/users/{profile.id}",
        json={"credits": 25, "is_blocked": True},
        headers=auth_headers(super_admin),
    )

    assert response.status_code == 200
    assert response.json()["credits"] == 25
    assert response.json()["is_blocked"] is True
    grant = db.query(CreditTransaction).filter(CreditTransaction.user_id == profile.id).one()
    assert grant.type == "admin_grant"
    assert grant.amount == 15


def test_update_user_subscription_status_is_validated(client, db, profile, super_admin, auth_headers):
    db.add(BillingPlan(name="Team", description="", price=49, interval_type="monthly", credits=300, features=[]))
    db.commit()
    headers = auth_headers(super_admin)
    url = f"/api/admin/users/{profile.id}"

    assert client.put(url, json={"subscription_status": "Premium"}, headers=headers).json()["subscription_status"] == "premium"
    assert client.put(url, json={"subscription_status": "team"}, headers=headers).json()["subscription_status"] == "team"

    response = client.put(url, json={"subscription_status": "platinum"}, headers=headers)
    assert response.status_code == 400
    assert _reload(db, profile.id).subscription_status == "team"


def test_resume_listing_rejects_unknown_status(client, super_admin, auth_headers):
    headers = auth_headers(super_admin)

    assert client.get("/api/admin/resumes", params={"status": "failed"}, headers=headers).status_code == 200
    assert client.get("/api/admin/resumes", params={"status": "stuck"}, headers=headers).status_code == 400


def test_update_unknown_user(client, super_admin, auth_headers):
    assert client.put("/api/admin/users/9999", json={"full_name": "X"}, headers=auth_headers(super_admin)).status_code == 404


def test_assign_plan_resets_credits_and_status(client, db, profile, super_admin, auth_headers):
    plan = BillingPlan(name="Team", description="", price=49, interval_type="monthly", credits=300, features=[])
    db.add(plan)
    db.commit()

    response = client.post(
        f"/api/admin/users/{profile.id}/assign-plan",
        json={"plan_id": plan.id},
        headers=auth_headers(super_admin),
    )

    assert response.status_code == 200
    profile = _reload(db, profile.id)
    assert profile.credits == 300
    assert profile.subscription_status == "team"
    entry = db.query(CreditTransaction).filter(CreditTransaction.user_id == profile.id).one()
    assert entry.is_reset is True
    assert entry.type == "admin_grant"


def test_assign_plan_with_credit_override(client, db, profile, super_admin, auth_headers):
    plan = BillingPlan(name="Team", description="", price=49, interval_type="monthly", credits=300, features=[])
    db.add(plan)
    db.commit()

    client.post(
        f"/api/admin/users/{profile.id}/assign-plan",
        json={"plan_id": plan.id, "credits": -1},
        headers=auth_headers(super_admin),
    )

    assert _reload(db, profile.id).credits == -1


def test_assign_unknown_plan(client, profile, super_admin, auth_headers):
    response = client.post(
        f"/api/admin/users/{profile.id}/assign-plan",
        json={"plan_id": 9999},
        headers=auth_headers(super_admin),
    )
    assert response.status_code == 404


def test_stats(client, db, profile, super_admin, auth_headers):
    db.add_all([
        Resume(user_id=profile.id, filename="a.pdf", file_path="k/a", file_size=1, file_type="application/pdf", status="completed"),
        Resume(user_id=profile.id, filename="b.pdf", file_path="k/b", file_size=1, file_type="application/pdf", status="failed"),
        CreditTransaction(user_id=profile.id, amount=-1, type="usage", description="Resume analysis: a.pdf"),
        CreditTransaction(user_id=profile.id, amount=100, type="purchase", description="Purchased 100 credits"),
    ])
    db.commit()

    stats = client.get("/api/admin/stats", headers=auth_headers(super_admin)).json()

    assert stats["total_users"] == 2
    assert stats["total_resumes"] == 2
    assert stats["completed_resumes"] == 1
    assert stats["failed_resumes"] == 1
    assert stats["total_credits_used"] == 1
    assert stats["estimated_revenue"] == 10.0


def test_transactions_filter_by_type(client, db, profile, super_admin, auth_headers):
    db.add_all([
        CreditTransaction(user_id=profile.id, amount=10, type="bonus", description="Welcome bonus credits"),
        CreditTransaction(user_id=profile.id, amount=-1, type="usage", description="Resume analysis: a.pdf"),
    ])
    db.commit()

    body = client.get("/api/admin/transactions", params={"type": "usage"}, headers=auth_headers(super_admin)).json()

    assert body["pagination"]["total"] == 1
    assert body["transactions"][0]["user_email"] == profile.email


def test_settings_roundtrip_and_public_view(client, db, super_admin, auth_headers):
    headers = auth_headers(super_admin)
    payload = {"settings": [
        {"category": "general", "key": "site_name", "value": "CV Analyzer", "is_public": True},
        {"category": "billing", "key": "signup_bonus", "value": 10},
    ]}

    assert client.put("/api/admin/settings", json=payload, headers=headers).status_code == 200

    admin_view = client.get("/api/admin/settings", headers=headers).json()["settings"]
    assert {(s["category"], s["key"]) for s in admin_view} == {("general", "site_name"), ("billing", "signup_bonus")}

    public_view = client.get("/api/settings/public").json()["settings"]
    assert [(s["key"], s["value"]) for s in public_view] == [("site_name", "CV Analyzer")]


def test_settings_rejects_non_list(client, super_admin, auth_headers):
    response = client.put("/api/admin/settings", json={"settings": {"key": "x"}}, headers=auth_headers(super_admin))
    assert response.status_code == 400


def test_settings_rejects_item_without_key(client, db, super_admin, auth_headers):
    set_setting(db, "general", "site_name", "Before")

    response = client.put(
        "/api/admin/settings",
        json={"settings": [{"category": "general", "key": "site_name", "value": "After"}, {"category": "general"}]},
        headers=auth_headers(super_admin),
    )

    assert response.status_code == 400
    db.expire_all()
    assert get_setting(db, "general", "site_name") == "Before"


def test_reconcile_reports_stuck_resumes_and_drift(client, db, make_profile, super_admin, auth_headers):
    drifted = make_profile(email="drift@example.com", credits=50)
    stale = datetime.utcnow() - timedelta(hours=2)
    db.add(Resume(user_id=drifted.id, filename="s.pdf", file_path="k/s", file_size=1,
                  file_type="application/pdf", status="processing", created_at=stale, updated_at=stale))
    db.commit()

    body = client.post("/api/admin/maintenance/reconcile", headers=auth_headers(super_admin)).json()

    assert body["stuck_resumes_failed"] == 1
    drift_ids = {d["user_id"] for d in body["drift"]}
    assert drifted.id in drift_ids
