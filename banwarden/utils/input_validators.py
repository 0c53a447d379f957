"""Input validation for values that reach netsh command lines.

Rejects anything that could widen a rule (address lists, ranges) or smuggle
extra arguments, before a process is spawned.
"""

import ipaddress
import re

# Valid firewall rule name: alphanumeric, underscores, hyphens
_RULE_NAME_RE = re.compile(r'^[a-zA-Z0-9_-]{1,200}$')


def validate_ip_address(value: str) -> str:
    """Validate a single IPv4 or IPv6 address and return it unchanged.

    Raises ValueError if the input is not exactly one address.
    """
    if value is None or value != value.strip():
        raise ValueError(f"Invalid IP address: {value!r}")
    try:
        ipaddress.ip_address(value)
    except ValueError:
        raise ValueError(f"Invalid IP address: {value!r}")
    return value


def validate_rule_name(value: str) -> str:
    """Validate a firewall rule name (alphanumeric + underscores + hyphens, max 200)."""
    if not value or not _RULE_NAME_RE.match(value):
        raise ValueError(
            f"Invalid firewall rule name: must be alphanumeric with underscores/hyphens, "
            f"max 200 chars. Got: {value!r}"
        )
    return value
