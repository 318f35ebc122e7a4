"""
Tests for signup, login, logout and the access guard.
"""
from app.db.models.credit_transaction import CreditTransaction
from app.db.models.user import Profile


def test_signup_grants_bonus_through_ledger(client, db):
    response = client.post(
        "/auth/signup",
        json={"full_name": "Test User", "email": "New.User@Example.com", "password": "testpass123"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "new.user@example.com"
    assert body["credits"] == 10
    assert body["subscription_status"] == "free"

    bonus = db.query(CreditTransaction).filter(CreditTransaction.user_id == body["id"]).one()
    assert bonus.type == "bonus"
    assert bonus.amount == 10


def test_signup_duplicate_email(client, profile):
    response = client.post(
        "/auth/signup",
        json={"full_name": "Again", "email": profile.email, "password": "testpass123"},
    )
    assert response.status_code == 400


def test_signup_rejects_short_password(client):
    response = client.post(
        "/auth/signup",
        json={"full_name": "Test User", "email": "short@example.com", "password": "abc"},
    )
    assert response.status_code == 422


def test_login_and_me(client, profile):
    response = client.post("/auth/login", data={"username": profile.email, "password": "testpass123"})

    assert response.status_code == 200
    token = response.json()["access_token"]
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["id"] == profile.id
    assert me.json()["admin_role"] is None


def test_login_wrong_password(client, profile):
    response = client.post("/auth/login", data={"username": profile.email, "password": "wrongpass"})
    assert response.status_code == 401


def test_blocked_user_cannot_login(client, make_profile):
    blocked = make_profile(email="blocked@example.com", is_blocked=True)

    response = client.post("/auth/login", data={"username": blocked.email, "password": "testpass123"})

    assert response.status_code == 403
    assert "blocked" in response.json()["detail"]


def test_blocked_user_is_denied_but_can_see_status(client, make_profile, auth_headers):
    blocked = make_profile(email="blocked@example.com", is_blocked=True)
    headers = auth_headers(blocked)

    assert client.get("/api/credits", headers=headers).status_code == 403
    assert client.get("/api/resumes", headers=headers).status_code == 403
    me = client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["is_blocked"] is True


def test_logout_invalidates_existing_tokens(client, db, profile, auth_headers):
    headers = auth_headers(profile)

    assert client.post("/auth/logout", headers=headers).status_code == 200
    assert client.get("/auth/me", headers=headers).status_code == 401

    db.expire_all()
    assert db.get(Profile, profile.id).session_version == 1


def test_update_own_profile(client, db, profile, auth_headers):
    response = client.put("/auth/me", json={"full_name": "  Jane Q. Doe "}, headers=auth_headers(profile))

    assert response.status_code == 200
    assert response.json()["full_name"] == "Jane Q. Doe"
    db.expire_all()
    assert db.get(Profile, profile.id).full_name == "Jane Q. Doe"


def test_update_own_profile_rejects_blank_name(client, profile, auth_headers):
    response = client.put("/auth/me", json={"full_name": "   "}, headers=auth_headers(profile))
    assert response.status_code == 422


def test_blocked_user_cannot_update_profile(client, make_profile, auth_headers):
    blocked = make_profile(email="blocked@example.com", is_blocked=True)

    response = client.put("/auth/me", json={"full_name": "New Name"}, headers=auth_headers(blocked))

    assert response.status_code == 403


def test_missing_or_garbage_token(client):
    assert client.get("/api/credits").status_code == 401
    assert client.get("/api/credits", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401


def test_admin_routes_require_super_admin(client, make_profile, auth_headers):
    regular = make_profile(email="regular@example.com")
    plain_admin = make_profile(email="staff@example.com", admin_role="admin")

    for who in (regular, plain_admin):
        assert client.get("/api/admin/users", headers=auth_headers(who)).status_code == 403
        assert client.get("/api/admin/stats", headers=auth_headers(who)).status_code == 403


def test_admin_check(client, profile, super_admin, auth_headers):
    assert client.get("/api/admin/check", headers=auth_headers(profile)).json() == {"is_admin": False, "role": None}
    assert client.get("/api/admin/check", headers=auth_headers(super_admin)).json() == {
        "is_admin": True,
        "role": "super_admin",
    }


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
