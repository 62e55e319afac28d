"""Tests for token handling and editor identity on saves."""

import time

import pytest

from feedstudio.core.config import settings
from feedstudio.core.token_factory import create_token, decode_token
from feedstudio.models import ContentVersion, User

SECRET = "test-secret"


class TestTokenFactory:

    def test_round_trip(self):
        token = create_token("editor-7", "admin", SECRET)
        payload = decode_token(token, SECRET)
        assert payload is not None
        assert payload.sub == "editor-7"
        assert payload.role == "admin"

    def test_wrong_secret(self):
        token = create_token("editor-7", "user", SECRET)
        assert decode_token(token, "another-secret") is None

    def test_expired(self):
        token = create_token("editor-7", "user", SECRET, expires_hours=-1)
        assert decode_token(token, SECRET) is None

    def test_tampered_claims(self):
        header, claims, signature = create_token("editor-7", "user", SECRET).split(".")
        forged = create_token("admin-1", "admin", "attacker").split(".")[1]
        assert decode_token(".".join([header, forged, signature]), SECRET) is None

    def test_malformed(self):
        for token in ("", "abc", "a.b", "a.b.c.d", "!!.??.**"):
            assert decode_token(token, SECRET) is None

    def test_unsupported_algorithm(self):
        token = create_token("editor-7", "user", SECRET)
        assert decode_token(token, SECRET, algorithm="RS256") is None

    def test_expiry_is_in_the_future(self):
        payload = decode_token(create_token("editor-7", "user", SECRET, expires_hours=2), SECRET)
        assert payload.exp.timestamp() > time.time() + 3600


@pytest.fixture()
def auth_enabled(monkeypatch):
    monkeypatch.setattr(settings, "auth_enabled", True)
    monkeypatch.setattr(settings, "jwt_secret_key", SECRET)


@pytest.fixture()
def editor(db):
    user = User(user_id="editor-7", display_name="Editor Seven", role="user")
    db.add(user)
    db.commit()
    return user


def _bearer(subject: str) -> dict:
    return {"Authorization": f"Bearer {create_token(subject, 'user', SECRET)}"}


class TestSaveWithAuth:

    def test_missing_token_is_401(self, client, make_content, auth_enabled):
        make_content("c1")
        resp = client.put("/api/content/c1/edit", json={"body": "x"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "UNAUTHORIZED"

    def test_invalid_token_is_401(self, client, make_content, auth_enabled):
        make_content("c1")
        resp = client.put(
            "/api/content/c1/edit",
            json={"body": "x"},
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert resp.status_code == 401

    def test_unknown_user_is_401(self, client, make_content, auth_enabled):
        make_content("c1")
        resp = client.put("/api/content/c1/edit", json={"body": "x"}, headers=_bearer("ghost"))
        assert resp.status_code == 401

    def test_deactivated_user_is_401(self, client, db, make_content, editor, auth_enabled):
        editor.is_active = False
        db.commit()
        make_content("c1")
        resp = client.put("/api/content/c1/edit", json={"body": "x"}, headers=_bearer("editor-7"))
        assert resp.status_code == 401

    def test_editor_is_recorded_on_version(self, client, db, make_content, editor, auth_enabled):
        make_content("c1")

        resp = client.put("/api/content/c1/edit", json={"body": "x"}, headers=_bearer("editor-7"))

        assert resp.status_code == 200
        db.expire_all()
        assert db.query(ContentVersion).one().edited_by == "editor-7"

    def test_reads_stay_open(self, client, make_content, auth_enabled):
        make_content("c1")
        assert client.get("/api/content/c1/edit").status_code == 200
