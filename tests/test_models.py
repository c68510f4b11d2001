"""Tests for record helpers."""

from datetime import datetime, timezone

import pytest

from models import format_date, initials, normalize_completed, profile_for_user, user_from_identity


class TestNormalizeCompleted:
    @pytest.mark.parametrize("raw", [True, 1, -1, -0.5, "1", "2", 3.5, "true", "TRUE"])
    def test_truthy_values(self, raw):
        assert normalize_completed(raw) is True

    @pytest.mark.parametrize("raw", [False, 0, "0", "", None, "-1", "false", " 0 "])
    def test_falsy_values(self, raw):
        assert normalize_completed(raw) is False


class TestUserFromIdentity:
    def test_uses_display_name_and_photo(self, identity):
        user = user_from_identity(identity)

        assert user["name"] == "Ada Lovelace"
        assert user["avatar_url"] == "https://example.com/ada.png"
        assert user["google_id"] == "google-uid-1"
        assert user["profile_completed"] is False
        assert user["id"].startswith("user_")

    def test_name_falls_back_to_email(self):
        user = user_from_identity({"email": "bob@example.com", "display_name": "", "uid": "u"})

        assert user["name"] == "bob@example.com"
        assert user["avatar_url"] is None


def test_profile_for_user_trims_values():
    profile = profile_for_user(
        {"id": "user_1"},
        {"organization": "  Acme ", "role": "Designer", "phone_number": " +1 555 "},
    )

    assert profile["user_id"] == "user_1"
    assert profile["organization"] == "Acme"
    assert profile["phone_number"] == "+1 555"


def test_initials():
    assert initials("Ada Lovelace") == "AL"
    assert initials("cher") == "C"
    assert initials("") == ""


class TestFormatDate:
    def test_iso_string(self):
        assert format_date("2026-01-05T10:00:00+00:00") == "January 5, 2026"

    def test_zulu_suffix(self):
        assert format_date("2026-03-15T08:30:00Z") == "March 15, 2026"

    def test_datetime(self):
        assert format_date(datetime(2025, 12, 1, tzinfo=timezone.utc)) == "December 1, 2025"

    def test_garbage(self):
        assert format_date("soon") == ""
        assert format_date(None) == ""
