"""Ban decision and firewall synchronization engine."""

from .ban_store import BanStateStore
from .classifier import classify, is_username_allowed
from .firewall import FirewallControl, FirewallSynchronizer, sanitize_address
from .netsh import NetshFirewall, parse_rule_listing
