"""BanWarden configuration system using Pydantic Settings."""

from __future__ import annotations

import re

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOOPBACK_ADDRESSES = ["127.0.0.1", "::1"]
DEFAULT_RULE_PREFIX = "BanWarden_Ban_"

_RULE_PREFIX_RE = re.compile(r'^[a-zA-Z0-9_-]{1,100}$')


class BanWardenConfig(BaseSettings):
    """Daemon configuration. Loads from .env file and BANWARDEN_* environment variables.

    Loaded once at startup and frozen for the lifetime of the process.
    """

    model_config = SettingsConfigDict(
        env_prefix="BANWARDEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Usernames whose failed logons are never treated as hostile (case-insensitive)
    allowed_usernames: list[str] = []
    # Addresses that are never banned (exact match)
    whitelisted_ips: list[str] = list(LOOPBACK_ADDRESSES)
    firewall_rule_prefix: str = DEFAULT_RULE_PREFIX
    log_banned_ips: bool = True
    netsh_timeout: int = 10  # seconds per netsh invocation

    # Logging
    debug: bool = False
    log_dir: str = "logs"
    log_max_bytes: int = 1_000_000
    log_backup_count: int = 31

    @field_validator("allowed_usernames")
    @classmethod
    def strip_usernames(cls, v: list[str]) -> list[str]:
        return [name.strip() for name in v if name and name.strip()]

    @field_validator("whitelisted_ips")
    @classmethod
    def include_loopback(cls, v: list[str]) -> list[str]:
        ips = [ip.strip() for ip in v if ip and ip.strip()]
        for loopback in LOOPBACK_ADDRESSES:
            if loopback not in ips:
                ips.append(loopback)
        return ips

    @field_validator("firewall_rule_prefix")
    @classmethod
    def validate_rule_prefix(cls, v: str) -> str:
        if not _RULE_PREFIX_RE.match(v):
            raise ValueError("firewall_rule_prefix must be non-empty and use only letters, digits, '_' or '-'")
        return v

    @field_validator("netsh_timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("netsh_timeout must be positive")
        return v

    @property
    def allowed_usernames_folded(self) -> frozenset[str]:
        return frozenset(name.casefold() for name in self.allowed_usernames)


def get_config() -> BanWardenConfig:
    """Factory function to create config instance."""
    return BanWardenConfig()
