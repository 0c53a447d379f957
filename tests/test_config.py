"""Tests for BanWarden configuration."""

import pytest
from pydantic import ValidationError

from banwarden.config import DEFAULT_RULE_PREFIX, BanWardenConfig, get_config


class TestConfig:
    def test_defaults(self, monkeypatch):
        for key in ("BANWARDEN_ALLOWED_USERNAMES", "BANWARDEN_WHITELISTED_IPS", "BANWARDEN_FIREWALL_RULE_PREFIX"):
            monkeypatch.delenv(key, raising=False)
        config = BanWardenConfig(_env_file=None)

        assert config.allowed_usernames == []
        assert config.whitelisted_ips == ["127.0.0.1", "::1"]
        assert config.firewall_rule_prefix == DEFAULT_RULE_PREFIX
        assert config.log_banned_ips is True

    def test_loopback_always_whitelisted(self):
        config = BanWardenConfig(_env_file=None, whitelisted_ips=["10.1.1.1", " "])
        assert config.whitelisted_ips == ["10.1.1.1", "127.0.0.1", "::1"]

    def test_usernames_stripped_and_folded(self):
        config = BanWardenConfig(_env_file=None, allowed_usernames=[" Admin ", "", "svc-Backup"])
        assert config.allowed_usernames == ["Admin", "svc-Backup"]
        assert config.allowed_usernames_folded == frozenset({"admin", "svc-backup"})

    @pytest.mark.parametrize("prefix", ["", "Ban Me", "RB.", "x" * 101])
    def test_invalid_prefix_rejected(self, prefix):
        with pytest.raises(ValidationError):
            BanWardenConfig(_env_file=None, firewall_rule_prefix=prefix)

    def test_invalid_timeout_rejected(self):
        with pytest.raises(ValidationError):
            BanWardenConfig(_env_file=None, netsh_timeout=0)

    def test_frozen(self, config):
        with pytest.raises(ValidationError):
            config.firewall_rule_prefix = "Other_"

    def test_loads_from_environment(self, monkeypatch):
        monkeypatch.setenv("BANWARDEN_ALLOWED_USERNAMES", '["ops"]')
        monkeypatch.setenv("BANWARDEN_FIREWALL_RULE_PREFIX", "RB_")
        config = get_config()
        assert config.allowed_usernames == ["ops"]
        assert config.firewall_rule_prefix == "RB_"
