"""Tests for profile lifecycle and click logging services."""
import pytest
from sqlalchemy.exc import OperationalError

from nfc_card.core.config import settings
from nfc_card.core.errors import BackendUnavailable, Conflict, NotFound, PartialFailure, ValidationError
from nfc_card.models import LinkClick, Profile
from nfc_card.services.clicks import public_links, record_click, resolve_public_profile, try_record_click
from nfc_card.services.profiles import (
    create_profile,
    delete_profile,
    get_profile,
    list_profiles,
    partition_profiles,
    update_profile,
    verify_profile,
)


class TestCreateProfile:
    def test_new_profile_is_pending(self, db, hub):
        profile = create_profile(db, {"email": "A@X.com", "name": " Asha "}, hub=hub)

        assert profile.email == "a@x.com"
        assert profile.name == "Asha"
        assert profile.is_verified is False
        assert profile.is_admin is False
        assert profile.created_at is not None

    def test_email_is_required(self, db, hub):
        with pytest.raises(ValidationError):
            create_profile(db, {"email": "  ", "name": "Nobody"}, hub=hub)

    def test_email_is_unique_case_insensitively(self, db, hub):
        create_profile(db, {"email": "a@x.com"}, hub=hub)
        with pytest.raises(Conflict):
            create_profile(db, {"email": "A@x.com"}, hub=hub)

    def test_publishes_insert(self, db, hub):
        seen = []
        hub.subscribe("social_media_data", seen.append)
        profile = create_profile(db, {"email": "a@x.com"}, hub=hub)
        assert [(e.event_type, e.new["id"]) for e in seen] == [("INSERT", profile.id)]


class TestVerification:
    def test_pending_then_verified_scenario(self, db, hub):
        """A new profile lists as pending until verified."""
        profile = create_profile(db, {"email": "a@x.com", "is_verified": False}, hub=hub)

        verified, pending = partition_profiles(list_profiles(db))
        assert [p.id for p in pending] == [profile.id]
        assert verified == []

        verify_profile(db, profile.id, hub=hub)

        verified, pending = partition_profiles(list_profiles(db))
        assert [p.id for p in verified] == [profile.id]
        assert pending == []

    def test_verify_is_idempotent(self, db, hub, make_profile):
        profile = make_profile()
        once = verify_profile(db, profile.id, hub=hub)
        state_once = (once.is_verified, once.created_at, once.email)
        twice = verify_profile(db, profile.id, hub=hub)
        assert (twice.is_verified, twice.created_at, twice.email) == state_once

    def test_second_verify_publishes_nothing(self, db, hub, make_profile):
        profile = make_profile()
        verify_profile(db, profile.id, hub=hub)
        seen = []
        hub.subscribe("social_media_data", seen.append)
        verify_profile(db, profile.id, hub=hub)
        assert seen == []

    def test_verification_cannot_be_revoked(self, db, hub, make_profile):
        profile = make_profile(is_verified=True)
        with pytest.raises(ValidationError):
            update_profile(db, profile.id, {"is_verified": False}, admin=True, hub=hub)

    def test_verify_unknown_profile(self, db, hub):
        with pytest.raises(NotFound):
            verify_profile(db, "missing", hub=hub)


class TestUpdateProfile:
    def test_owner_cannot_touch_flags(self, db, hub, make_profile):
        profile = make_profile()
        with pytest.raises(ValidationError):
            update_profile(db, profile.id, {"is_admin": True}, hub=hub)

    def test_blank_link_is_stored_as_null(self, db, hub, make_profile):
        profile = make_profile(website="https://old.example")
        updated = update_profile(db, profile.id, {"website": "  "}, hub=hub)
        assert updated.website is None

    def test_empty_background_keeps_stored_value(self, db, hub, make_profile):
        profile = make_profile(background_image="https://themes.example/blue.png")
        updated = update_profile(db, profile.id, {"background_image": ""}, hub=hub)
        assert updated.background_image == "https://themes.example/blue.png"

    def test_admin_email_change_must_stay_unique(self, db, hub, make_profile):
        first = make_profile(email="one@example.com")
        make_profile(email="two@example.com")
        with pytest.raises(Conflict):
            update_profile(db, first.id, {"email": "TWO@example.com"}, admin=True, hub=hub)

    def test_created_at_and_id_never_change(self, db, hub, make_profile):
        profile = make_profile()
        before = (profile.id, profile.created_at)
        updated = update_profile(db, profile.id, {"name": "Renamed", "is_admin": True}, admin=True, hub=hub)
        assert (updated.id, updated.created_at) == before


class TestDeleteProfile:
    def test_removes_all_clicks_and_profile(self, db, hub, make_profile):
        profile = make_profile(phone="tel:1", maps="https://maps.example")
        keep = make_profile(phone="tel:2")
        for link_type in ("phone", "maps", "phone"):
            record_click(db, profile.id, link_type, hub=hub)
        record_click(db, keep.id, "phone", hub=hub)

        removed = delete_profile(db, profile.id, hub=hub)

        assert removed == 3
        assert db.get(Profile, profile.id) is None
        assert db.query(LinkClick).filter(LinkClick.social_media_data_id == profile.id).count() == 0
        assert db.query(LinkClick).count() == 1

    def test_profile_without_clicks(self, db, hub, make_profile):
        profile = make_profile()
        assert delete_profile(db, profile.id, hub=hub) == 0
        assert db.get(Profile, profile.id) is None

    def test_click_deletion_failure_keeps_profile(self, db, hub, engine, make_profile):
        profile = make_profile()
        LinkClick.__table__.drop(engine)

        with pytest.raises(PartialFailure) as excinfo:
            delete_profile(db, profile.id, hub=hub)

        assert excinfo.value.step == "link_clicks"
        assert db.get(Profile, profile.id) is not None

    def test_publishes_delete(self, db, hub, make_profile):
        profile = make_profile()
        seen = []
        hub.subscribe("social_media_data", seen.append)
        delete_profile(db, profile.id, hub=hub)
        assert [(e.event_type, e.old["id"]) for e in seen] == [("DELETE", profile.id)]

    def test_publishes_delete_for_each_click(self, db, hub, make_profile):
        profile = make_profile(phone="tel:1")
        click_ids = [record_click(db, profile.id, "phone", hub=hub).id for _ in range(2)]
        seen = []
        hub.subscribe("link_clicks", seen.append, where=("social_media_data_id", profile.id))

        delete_profile(db, profile.id, hub=hub)

        assert [e.event_type for e in seen] == ["DELETE", "DELETE"]
        assert sorted(e.old["id"] for e in seen) == sorted(click_ids)


class TestRecordClick:
    def test_unknown_link_type(self, db, hub, make_profile):
        profile = make_profile(phone="tel:1")
        with pytest.raises(ValidationError):
            record_click(db, profile.id, "telegram", hub=hub)

    def test_missing_profile_creates_no_orphan(self, db, hub):
        with pytest.raises(NotFound):
            record_click(db, "missing", "phone", hub=hub)
        assert db.query(LinkClick).count() == 0

    def test_absent_link_is_never_logged(self, db, hub, make_profile):
        profile = make_profile(phone=None)
        with pytest.raises(ValidationError):
            record_click(db, profile.id, "phone", hub=hub)
        assert db.query(LinkClick).count() == 0

    def test_defaults_value_to_profile_link(self, db, hub, make_profile):
        profile = make_profile(website="https://shop.example")
        click = record_click(db, profile.id, "website", hub=hub)
        assert click.link_value == "https://shop.example"

    def test_best_effort_swallows_errors(self, db, hub):
        assert try_record_click(db, "missing", "phone", hub=hub) is False

    def test_public_links_skip_empty_fields(self, make_profile):
        profile = make_profile(phone="tel:1", website="", drive_link="https://drive.example")
        links = [(link.link_type, link.value) for link in public_links(profile)]
        assert links == [
            ("phone", "tel:1"),
            ("email", profile.email),
            ("gallery", "https://drive.example"),
        ]


class TestPublicVisibility:
    def test_unverified_profiles_resolve_by_default(self, db, make_profile):
        profile = make_profile()
        assert resolve_public_profile(db, profile.id).id == profile.id

    def test_verification_gate(self, db, make_profile, monkeypatch):
        monkeypatch.setattr(settings, "public_requires_verification", True)
        profile = make_profile()
        with pytest.raises(NotFound):
            resolve_public_profile(db, profile.id)


class _FlakySession:
    def __init__(self, failures):
        self.failures = failures
        self.calls = 0
        self.rollbacks = 0

    def get(self, model, key):
        self.calls += 1
        if self.calls <= self.failures:
            raise OperationalError("SELECT", {}, Exception("server closed the connection"))
        return None

    def rollback(self):
        self.rollbacks += 1


class TestReadRetry:
    def test_transient_failure_is_retried(self, no_retry_delay):
        session = _FlakySession(failures=1)
        with pytest.raises(NotFound):
            get_profile(session, "missing")
        assert session.calls == 2
        assert session.rollbacks == 1

    def test_gives_up_after_bounded_retries(self, no_retry_delay, monkeypatch):
        monkeypatch.setattr(settings, "read_retries", 2)
        session = _FlakySession(failures=10)
        with pytest.raises(BackendUnavailable):
            get_profile(session, "missing")
        assert session.calls == 3
