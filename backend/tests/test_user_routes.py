"""Tests for the signed-in card owner's endpoints."""
import os

from nfc_card.core.config import settings
from nfc_card.services.clicks import record_click

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class TestOwnProfile:
    def test_returns_profile_for_signed_in_email(self, client, make_profile, login):
        profile = make_profile(email="owner@example.com", name="Owner")
        login("Owner@Example.com")

        resp = client.get("/api/user/me")

        assert resp.status_code == 200
        assert resp.json()["id"] == profile.id

    def test_account_without_profile(self, client, login):
        login("ghost@example.com")
        resp = client.get("/api/user/me")
        assert resp.status_code == 404

    def test_owner_cannot_grant_admin(self, client, make_profile, login):
        profile = make_profile(email="owner@example.com")
        login(profile.email)

        resp = client.put("/api/user/me", json={"designation": "Chef", "is_admin": True})

        assert resp.status_code == 200
        assert resp.json()["designation"] == "Chef"
        assert resp.json()["is_admin"] is False

    def test_own_insights(self, client, db, hub, make_profile, login):
        profile = make_profile(email="owner@example.com", phone="tel:1", maps="https://maps.example")
        for link_type in ("maps", "phone", "phone"):
            record_click(db, profile.id, link_type, hub=hub)
        login(profile.email)

        body = client.get("/api/user/me/insights").json()

        assert body["total"] == 3
        assert [item["link_type"] for item in body["insights"]] == ["phone", "maps"]


class TestImageUpload:
    def test_avatar_is_stored_and_linked(self, client, make_profile, login, storage_dir):
        profile = make_profile(email="owner@example.com")
        login(profile.email)

        resp = client.post(
            "/api/user/me/avatar",
            files={"file": ("me.png", PNG_BYTES, "image/png")},
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["field"] == "avatar"
        assert body["profile"]["avatar"] == body["url"]
        key = body["url"].split("/image/", 1)[1]
        assert key.startswith("images/") and key.endswith(".png")
        assert os.path.exists(storage_dir / "image" / key)

    def test_background_goes_to_its_own_folder(self, client, make_profile, login):
        profile = make_profile(email="owner@example.com")
        login(profile.email)

        resp = client.post(
            "/api/user/me/background",
            files={"file": ("bg.gif", b"GIF89a" + b"\x00" * 16, "image/gif")},
        )

        assert "/background_images/" in resp.json()["url"]

    def test_rejects_non_image(self, client, make_profile, login):
        profile = make_profile(email="owner@example.com")
        login(profile.email)

        resp = client.post(
            "/api/user/me/avatar",
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )

        assert resp.status_code == 422
        assert "valid image" in resp.json()["detail"]

    def test_rejects_oversized_image(self, client, make_profile, login, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_bytes", 32)
        profile = make_profile(email="owner@example.com")
        login(profile.email)

        resp = client.post(
            "/api/user/me/avatar",
            files={"file": ("me.png", PNG_BYTES, "image/png")},
        )

        assert resp.status_code == 422
