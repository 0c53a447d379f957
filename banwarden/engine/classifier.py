"""Event classifier — decides whether a failed logon is worth banning.

Pure functions of the event and configuration; no I/O.
"""

from typing import Collection

from ..config import BanWardenConfig
from ..models.event import Decision, LoginFailureEvent, is_missing_address


def is_username_allowed(username: str | None, allowed_folded: Collection[str]) -> bool:
    """Membership in an already casefolded allow-list. Empty usernames are never allowed."""
    if not username or not username.strip():
        return False
    return username.strip().casefold() in allowed_folded


def classify(event: LoginFailureEvent, config: BanWardenConfig) -> Decision:
    """Classify one login failure as IGNORE or SUSPECT.

    Rules, in order:
        1. No actionable source address -> IGNORE.
        2. Empty username -> SUSPECT (an admin appears in the allow-list by name).
        3. Username in the allow-list -> IGNORE.
        4. Anything else -> SUSPECT.
    """
    if is_missing_address(event.source_address):
        return Decision.IGNORE
    if is_username_allowed(event.target_username, config.allowed_usernames_folded):
        return Decision.IGNORE
    return Decision.SUSPECT
