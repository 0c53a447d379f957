"""Ban record and firewall rule models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

# Remote address value the firewall reports for rules not bound to a host
ANY_ADDRESS = "Any"


class BanOutcome(str, Enum):
    BANNED = "banned"
    ALREADY_BANNED = "already_banned"
    WHITELISTED = "whitelisted"
    REJECTED = "rejected"


class UnbanOutcome(str, Enum):
    UNBANNED = "unbanned"
    NOT_BANNED = "not_banned"
    REJECTED = "rejected"


@dataclass(frozen=True)
class BanRecord:
    """A committed ban. Identity is the literal address string."""

    address: str
    reason: str
    first_banned_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "reason": self.reason,
            "first_banned_at": self.first_banned_at.isoformat(),
        }


@dataclass(frozen=True)
class FirewallRule:
    """One inbound rule as reported by the firewall control surface."""

    name: str
    remote_address: str = ANY_ADDRESS
    enabled: bool = True


@dataclass(frozen=True)
class ManagedRule:
    """A prefixed rule paired with the address it is bound to."""

    rule_name: str
    bound_address: str
