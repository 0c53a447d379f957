"""Tests for the failed-logon classifier."""

import pytest

from banwarden.config import BanWardenConfig
from banwarden.engine.classifier import classify, is_username_allowed
from banwarden.models.event import Decision, LoginFailureEvent


def _config(allowed):
    return BanWardenConfig(_env_file=None, allowed_usernames=allowed)


class TestClassifier:
    def test_allowed_username_is_case_insensitive(self):
        """'Admin' matches an allow-list entry of 'admin'."""
        event = LoginFailureEvent(target_username="Admin", source_address="198.51.100.4")
        assert classify(event, _config(["admin"])) is Decision.IGNORE

    def test_mixed_case_allow_list_entry(self):
        event = LoginFailureEvent(target_username="svc-backup", source_address="198.51.100.4")
        assert classify(event, _config(["SVC-Backup"])) is Decision.IGNORE

    def test_unknown_username_is_suspect(self):
        event = LoginFailureEvent(target_username="root", source_address="198.51.100.4")
        assert classify(event, _config(["admin"])) is Decision.SUSPECT

    @pytest.mark.parametrize("address", ["", "-", "   ", " - "])
    def test_missing_address_is_ignored(self, address):
        """No actionable address means nothing to ban, whatever the username."""
        for username in ("root", "admin", ""):
            event = LoginFailureEvent(target_username=username, source_address=address)
            assert classify(event, _config(["admin"])) is Decision.IGNORE

    @pytest.mark.parametrize("username", ["", "   "])
    def test_empty_username_is_suspect(self, username):
        event = LoginFailureEvent(target_username=username, source_address="198.51.100.4")
        assert classify(event, _config(["admin"])) is Decision.SUSPECT

    def test_empty_allow_list_makes_everything_suspect(self):
        event = LoginFailureEvent(target_username="Administrator", source_address="198.51.100.4")
        assert classify(event, _config([])) is Decision.SUSPECT

    def test_scenario_administrator_is_suspect(self, config):
        event = LoginFailureEvent(target_username="Administrator", source_address="203.0.113.7")
        assert classify(event, config) is Decision.SUSPECT

    def test_is_username_allowed(self):
        assert is_username_allowed("SVC-Admin", ["svc-admin"]) is True
        assert is_username_allowed(" svc-admin ", ["svc-admin"]) is True
        assert is_username_allowed("svc-admin2", ["svc-admin"]) is False
        assert is_username_allowed(None, ["svc-admin"]) is False
        assert is_username_allowed("", [""]) is False

    def test_classify_has_no_side_effects(self, config):
        event = LoginFailureEvent(target_username="root", source_address="203.0.113.9")
        assert classify(event, config) == classify(event, config)
        assert config.allowed_usernames == ["svc-admin"]
