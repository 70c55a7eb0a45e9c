from __future__ import annotations

from datetime import UTC, datetime, timedelta

from fastapi.testclient import TestClient
from jose import jwt

from doviz.core.db import SessionLocal
from doviz.core.security import (
    JWT_ALGORITHM,
    SESSION_COOKIE,
    resolve_secret_key,
    sign_session_token,
)
from doviz.modules.identity.models import User, UserRole
from doviz.modules.identity.service import create_user


def _make_user(email: str, role: UserRole = UserRole.USER) -> dict[str, str]:
    with SessionLocal() as session:
        user = create_user(session, email=email, password="pw", role=role, name="Test")
        return {"id": str(user.id), "email": user.email, "role": user.role.value}


def test_register_login_me_logout(app):
    with TestClient(app) as client:
        resp = client.post(
            "/api/auth/register",
            json={"name": "Ada", "email": "Ada@Example.com", "password": "s3cret"},
        )
        assert resp.status_code == 201
        assert resp.json()["user"]["email"] == "ada@example.com"
        assert client.cookies.get(SESSION_COOKIE)

        me = client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["user"]["role"] == "USER"

        resp = client.post("/api/auth/logout")
        assert resp.status_code == 200
        assert not client.cookies.get(SESSION_COOKIE)

        me = client.get("/api/auth/me")
        assert me.status_code == 401
        assert me.json() == {"user": None}

        bad = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "x"})
        assert bad.status_code == 401

        ok = client.post(
            "/api/auth/login", json={"email": "ada@example.com", "password": "s3cret"}
        )
        assert ok.status_code == 200
        assert ok.json()["message"] == "Login successful"
        assert client.get("/api/auth/me").status_code == 200


def test_register_rejects_duplicate_email(app):
    _make_user("dup@example.com")
    with TestClient(app) as client:
        resp = client.post(
            "/api/auth/register", json={"email": "dup@example.com", "password": "pw"}
        )
        assert resp.status_code == 400


def test_update_profile_requires_current_password_for_change(app):
    subject = _make_user("bob@example.com")
    with TestClient(app) as client:
        client.cookies.set(SESSION_COOKIE, sign_session_token(subject))

        resp = client.put(
            "/api/user/update",
            json={"name": "Bob", "email": "bob@example.com", "new_password": "new"},
        )
        assert resp.status_code == 400

        resp = client.put(
            "/api/user/update",
            json={
                "name": "Bobby",
                "email": "bobby@example.com",
                "current_password": "pw",
                "new_password": "new",
            },
        )
        assert resp.status_code == 200
        assert resp.json()["user"]["name"] == "Bobby"

    with SessionLocal() as session:
        from doviz.modules.identity.service import authenticate_user

        assert authenticate_user(session, email="bobby@example.com", password="new")


def test_protected_pages_redirect_to_login_with_callback(app):
    with TestClient(app) as client:
        for path in ("/profile", "/messages", "/admin/users"):
            resp = client.get(path, follow_redirects=False)
            assert resp.status_code == 303
            assert resp.headers["location"] == f"/login?callbackUrl={path}"

        client.cookies.set(SESSION_COOKIE, "not-a-token")
        resp = client.get("/profile", follow_redirects=False)
        assert resp.headers["location"] == "/login?callbackUrl=/profile"


def test_wrong_role_redirects_to_unauthorized(app):
    subject = _make_user("user@example.com")
    with TestClient(app) as client:
        client.cookies.set(SESSION_COOKIE, sign_session_token(subject))

        resp = client.get("/admin", follow_redirects=False)
        assert resp.status_code == 303
        assert resp.headers["location"] == "/unauthorized"

        resp = client.get("/profile")
        assert resp.status_code == 200
        assert "user@example.com" in resp.text


def test_admin_pages_render_for_admin(app):
    subject = _make_user("admin@example.com", role=UserRole.ADMIN)
    with TestClient(app) as client:
        client.cookies.set(SESSION_COOKIE, sign_session_token(subject))
        for path in ("/admin", "/admin/currencies", "/admin/users"):
            resp = client.get(path)
            assert resp.status_code == 200, path
        assert "admin@example.com" in client.get("/admin/users").text


def test_session_close_to_expiry_is_refreshed_on_protected_page(app):
    subject = _make_user("carol@example.com")
    now = datetime.now(UTC)
    old = jwt.encode(
        {
            **subject,
            "iat": now - timedelta(hours=23, minutes=30),
            "exp": now + timedelta(minutes=30),
        },
        resolve_secret_key(),
        algorithm=JWT_ALGORITHM,
    )
    with TestClient(app) as client:
        client.cookies.set(SESSION_COOKIE, old)
        resp = client.get("/profile")
        assert resp.status_code == 200
        refreshed = resp.cookies.get(SESSION_COOKIE)
        assert refreshed
        assert refreshed != old


def test_fresh_session_is_not_rewritten(app):
    subject = _make_user("dave@example.com")
    with TestClient(app) as client:
        client.cookies.set(SESSION_COOKIE, sign_session_token(subject))
        resp = client.get("/profile")
        assert resp.status_code == 200
        assert "set-cookie" not in resp.headers


def test_form_login_redirects_to_callback(app):
    _make_user("erin@example.com")
    with TestClient(app) as client:
        page = client.get("/login?callbackUrl=/messages")
        assert 'value="/messages"' in page.text

        resp = client.post(
            "/login",
            data={"email": "erin@example.com", "password": "pw", "callback_url": "/messages"},
            follow_redirects=False,
        )
        assert resp.status_code == 303
        assert resp.headers["location"] == "/messages"
        assert client.cookies.get(SESSION_COOKIE)

        bad = client.post("/login", data={"email": "erin@example.com", "password": "nope"})
        assert bad.status_code == 401
        assert "Invalid credentials" in bad.text


def test_form_login_ignores_offsite_callback(app):
    _make_user("frank@example.com")
    with TestClient(app) as client:
        resp = client.post(
            "/login",
            data={
                "email": "frank@example.com",
                "password": "pw",
                "callback_url": "//evil.example.com",
            },
            follow_redirects=False,
        )
        assert resp.headers["location"] == "/"


def test_admin_can_change_roles_but_not_demote_self(app):
    admin = _make_user("root@example.com", role=UserRole.ADMIN)
    target = _make_user("target@example.com")
    with TestClient(app) as client:
        client.cookies.set(SESSION_COOKIE, sign_session_token(admin))

        resp = client.patch(f"/api/users/{target['id']}/role", json={"role": "ADMIN"})
        assert resp.status_code == 200
        assert resp.json()["role"] == "ADMIN"

        resp = client.patch(f"/api/users/{admin['id']}/role", json={"role": "USER"})
        assert resp.status_code == 400

        listing = client.get("/api/users").json()
        assert {row["user"]["email"] for row in listing} == {
            "root@example.com",
            "target@example.com",
        }

    with SessionLocal() as session:
        from sqlalchemy import select

        promoted = session.scalar(select(User).where(User.email == "target@example.com"))
        assert promoted.role == UserRole.ADMIN


def test_user_endpoints_require_admin(app):
    subject = _make_user("plain@example.com")
    with TestClient(app) as client:
        assert client.get("/api/users").status_code == 401
        client.cookies.set(SESSION_COOKIE, sign_session_token(subject))
        assert client.get("/api/users").status_code == 403


def test_logout_page_clears_cookie_and_redirects(app):
    subject = _make_user("leaver@example.com")
    with TestClient(app) as client:
        client.cookies.set(SESSION_COOKIE, sign_session_token(subject))
        resp = client.post("/logout", follow_redirects=False)
        assert resp.status_code == 303
        assert resp.headers["location"] == "/login"
        assert f"{SESSION_COOKIE}=" in resp.headers["set-cookie"]
        assert "Max-Age=0" in resp.headers["set-cookie"]


def test_logout_page_fails_loudly_when_cookie_is_not_cleared(app, monkeypatch):
    monkeypatch.setattr("doviz.web.ui.invalidate_session", lambda response: False)
    with TestClient(app) as client:
        resp = client.post("/logout", follow_redirects=False)
        assert resp.status_code == 500
        assert resp.json()["detail"] == "Could not clear session"
