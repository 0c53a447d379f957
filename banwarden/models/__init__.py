"""Data models package."""

from .ban import ANY_ADDRESS, BanOutcome, BanRecord, FirewallRule, ManagedRule, UnbanOutcome
from .event import NO_ADDRESS_SENTINEL, Decision, LoginFailureEvent, is_missing_address
