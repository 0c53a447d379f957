"""Login failure event model."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

# What the Security log writes in IpAddress for logons with no network source
NO_ADDRESS_SENTINEL = "-"


class Decision(str, Enum):
    IGNORE = "ignore"
    SUSPECT = "suspect"


@dataclass(frozen=True)
class LoginFailureEvent:
    """One normalized failed-authentication record, consumed once by the classifier."""

    target_username: str = ""
    source_address: str = ""
    workstation: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    target_domain: str = ""


def is_missing_address(address: str | None) -> bool:
    """True for empty, whitespace-only, or sentinel addresses."""
    if address is None:
        return True
    stripped = address.strip()
    return not stripped or stripped == NO_ADDRESS_SENTINEL
