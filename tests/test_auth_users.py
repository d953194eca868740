from __future__ import annotations

from datetime import timedelta

from fastapi.testclient import TestClient

from sportspm.core.security import create_access_token, get_password_hash, verify_password
from sportspm.models.user import User

from conftest import TEST_PASSWORD, auth_headers

API = "/api/v1"


def test_password_hash_round_trip() -> None:
    hashed = get_password_hash("hunter22")
    assert hashed != "hunter22"
    assert verify_password("hunter22", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("hunter22", None)
    assert not verify_password("hunter22", "not-a-bcrypt-hash")


def test_register_creates_team_member_and_returns_token(client: TestClient, session) -> None:
    response = client.post(
        f"{API}/auth/register",
        json={"name": "Sam Sprinter", "email": "sam@example.com", "password": "runfast1"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "User registered successfully"
    assert body["user"]["role"] == "Team Member"
    assert body["token"] == body["access_token"]
    assert "password" not in body["user"]
    assert "access_token" in response.cookies

    stored = session.get(User, body["user"]["id"])
    assert stored.password != "runfast1"


def test_register_validates_input_and_duplicates(client: TestClient, member) -> None:
    short = client.post(
        f"{API}/auth/register",
        json={"name": "Shorty", "email": "short@example.com", "password": "123"},
    )
    assert short.status_code == 422

    bad_email = client.post(
        f"{API}/auth/register",
        json={"name": "No At", "email": "not-an-email", "password": "secret1"},
    )
    assert bad_email.status_code == 422

    duplicate = client.post(
        f"{API}/auth/register",
        json={"name": "Tess Again", "email": member.email, "password": "secret1"},
    )
    assert duplicate.status_code == 409


def test_only_admin_can_register_elevated_roles(client: TestClient, admin_headers, member_headers) -> None:
    anonymous = client.post(
        f"{API}/auth/register",
        json={"name": "Mo", "email": "mo@example.com", "password": "secret1", "role": "Manager"},
    )
    assert anonymous.status_code == 403

    by_member = client.post(
        f"{API}/auth/register",
        json={"name": "Mo", "email": "mo@example.com", "password": "secret1", "role": "Admin"},
        headers=member_headers,
    )
    assert by_member.status_code == 403

    by_admin = client.post(
        f"{API}/auth/register",
        json={"name": "Mo", "email": "mo@example.com", "password": "secret1", "role": "Manager"},
        headers=admin_headers,
    )
    assert by_admin.status_code == 201
    assert by_admin.json()["user"]["role"] == "Manager"


def test_login_issues_token_and_records_last_login(client: TestClient, member, session) -> None:
    response = client.post(f"{API}/auth/login", json={"email": member.email, "password": TEST_PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["user"]["email"] == member.email
    assert body["token_type"] == "bearer"

    session.refresh(member)
    assert member.last_login is not None

    client.cookies.clear()
    profile = client.get(f"{API}/auth/profile", headers={"Authorization": f"Bearer {body['token']}"})
    assert profile.status_code == 200
    assert profile.json()["name"] == member.name


def test_login_with_wrong_password_is_unauthorized(client: TestClient, member) -> None:
    response = client.post(f"{API}/auth/login", json={"email": member.email, "password": "nope"})
    assert response.status_code == 401
    missing = client.post(f"{API}/auth/login", json={"email": "ghost@example.com", "password": "nope"})
    assert missing.status_code == 401


def test_oauth2_token_form_login(client: TestClient, member) -> None:
    response = client.post(
        f"{API}/auth/token", data={"username": member.email, "password": TEST_PASSWORD}
    )
    assert response.status_code == 200
    assert response.json()["token_type"] == "bearer"


def test_cookie_authenticates_and_logout_clears_it(client: TestClient, member) -> None:
    client.post(f"{API}/auth/login", json={"email": member.email, "password": TEST_PASSWORD})
    assert client.get(f"{API}/users/me").status_code == 200

    logout = client.get(f"{API}/auth/logout")
    assert logout.status_code == 200
    client.cookies.clear()
    assert client.get(f"{API}/users/me").status_code == 401


def test_missing_invalid_and_orphaned_tokens(client: TestClient, session, member) -> None:
    assert client.get(f"{API}/users/me").status_code == 401

    bad = client.get(f"{API}/users/me", headers={"Authorization": "Bearer garbage"})
    assert bad.status_code == 403

    expired = create_access_token(subject=member.email, expires_delta=timedelta(minutes=-1))
    assert client.get(f"{API}/users/me", headers={"Authorization": f"Bearer {expired}"}).status_code == 403

    ghost = create_access_token(subject="ghost@example.com")
    assert client.get(f"{API}/users/me", headers={"Authorization": f"Bearer {ghost}"}).status_code == 401


def test_user_listing_requires_manager(client: TestClient, admin, manager, member) -> None:
    assert client.get(f"{API}/users", headers=auth_headers(member)).status_code == 403

    response = client.get(f"{API}/users", headers=auth_headers(manager))
    assert response.status_code == 200
    assert {u["email"] for u in response.json()} == {admin.email, manager.email, member.email}

    members_only = client.get(f"{API}/users", params={"role": "Team Member"}, headers=auth_headers(admin))
    assert [u["email"] for u in members_only.json()] == [member.email]


def test_user_can_read_self_but_not_others(client: TestClient, member, other_member, manager) -> None:
    assert client.get(f"{API}/users/{member.id}", headers=auth_headers(member)).status_code == 200
    assert client.get(f"{API}/users/{other_member.id}", headers=auth_headers(member)).status_code == 403
    assert client.get(f"{API}/users/{other_member.id}", headers=auth_headers(manager)).status_code == 200
    assert client.get(f"{API}/users/9999", headers=auth_headers(manager)).status_code == 404


def test_update_me_cannot_change_role(client: TestClient, member, session) -> None:
    response = client.put(
        f"{API}/users/me",
        json={"name": "Tess Runner", "role": "Admin"},
        headers=auth_headers(member),
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Tess Runner"
    assert response.json()["role"] == "Team Member"


def test_admin_manages_users(client: TestClient, admin, member, manager) -> None:
    headers = auth_headers(admin)

    created = client.post(
        f"{API}/users",
        json={"name": "Cora Coach", "email": "cora@example.com", "password": "secret1", "role": "Manager"},
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["role"] == "Manager"

    promoted = client.put(f"{API}/users/{member.id}", json={"role": "Manager"}, headers=headers)
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "Manager"

    taken = client.put(f"{API}/users/{member.id}", json={"email": manager.email}, headers=headers)
    assert taken.status_code == 409

    assert client.put(f"{API}/users/{member.id}", json={"role": "Admin"}, headers=auth_headers(manager)).status_code == 403
    assert client.delete(f"{API}/users/{admin.id}", headers=headers).status_code == 400

    deleted = client.delete(f"{API}/users/{created.json()['id']}", headers=headers)
    assert deleted.status_code == 200
    assert client.get(f"{API}/users/{created.json()['id']}", headers=headers).status_code == 404
