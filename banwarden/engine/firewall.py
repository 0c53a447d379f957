"""Firewall synchronizer — turns ban decisions into idempotent rule mutations.

Rule names are deterministic (prefix + sanitized address) so a retried ban
finds the rule it already created, and so rules can be enumerated at startup.
The name is an opaque key only: the banned address always comes from the
rule's bound remote-address field.
"""

import ipaddress
from typing import Protocol

from ..models.ban import ANY_ADDRESS, FirewallRule, ManagedRule
from ..utils.logging import get_logger

logger = get_logger("engine.firewall")


class FirewallControl(Protocol):
    """Outbound contract to the host firewall."""

    async def add_inbound_block_rule(self, name: str, remote_address: str) -> bool: ...

    async def delete_rule(self, name: str) -> bool: ...

    async def find_rules(self, name: str) -> list[FirewallRule]: ...

    async def list_inbound_rules(self) -> list[FirewallRule]: ...


def sanitize_address(address: str) -> str:
    """Replace every '.' and ':' with '_' (lossy; never reversed)."""
    return address.replace(".", "_").replace(":", "_")


def same_address(a: str, b: str) -> bool:
    """Compare two addresses as IPs, falling back to literal text."""
    try:
        return ipaddress.ip_address(a.strip()) == ipaddress.ip_address(b.strip())
    except ValueError:
        return a.strip() == b.strip()


class FirewallSynchronizer:
    """Applies and revokes bans through a FirewallControl.

    Failures are reported as booleans and never retried here.
    """

    def __init__(self, control: FirewallControl, rule_prefix: str):
        if not rule_prefix:
            raise ValueError("rule_prefix must be non-empty")
        self._control = control
        self._rule_prefix = rule_prefix

    @property
    def rule_prefix(self) -> str:
        return self._rule_prefix

    def rule_name_for(self, address: str) -> str:
        return f"{self._rule_prefix}{sanitize_address(address)}"

    def is_managed_name(self, name: str) -> bool:
        return name.startswith(self._rule_prefix)

    async def apply_ban(self, address: str) -> bool:
        """Add an inbound block rule for address. True if the rule is in place.

        An existing rule under the same name only counts when it is enabled
        and bound to this address. Disabled leftovers are replaced. An enabled
        rule bound to a different address (sanitized names collide) is left
        alone and the ban fails.
        """
        rule_name = self.rule_name_for(address)
        try:
            existing = await self._control.find_rules(rule_name)
            enabled = [rule for rule in existing if rule.enabled]
            if any(same_address(rule.remote_address, address) for rule in enabled):
                logger.info("firewall_rule_already_present", rule=rule_name, ip=address)
                return True
            if enabled:
                logger.error(
                    "firewall_rule_name_collision",
                    rule=rule_name,
                    ip=address,
                    bound=[rule.remote_address for rule in enabled],
                )
                return False
            if existing:
                logger.warning("firewall_disabled_rule_replaced", rule=rule_name, ip=address)
                if not await self._control.delete_rule(rule_name):
                    logger.error("firewall_disabled_rule_delete_rejected", rule=rule_name)
                    return False
            success = await self._control.add_inbound_block_rule(rule_name, address)
        except Exception as e:
            logger.error("firewall_add_failed", rule=rule_name, ip=address, error=str(e))
            return False

        if not success:
            logger.error("firewall_add_rejected", rule=rule_name, ip=address)
        return success

    async def revoke_ban(self, address: str) -> bool:
        """Delete the rule for address. A rule that is already gone counts as success."""
        rule_name = self.rule_name_for(address)
        try:
            success = await self._control.delete_rule(rule_name)
        except Exception as e:
            logger.error("firewall_delete_failed", rule=rule_name, ip=address, error=str(e))
            return False

        if not success:
            logger.error("firewall_delete_rejected", rule=rule_name, ip=address)
        return success

    async def list_managed_rules(self) -> list[ManagedRule]:
        """Enumerate enabled prefixed inbound rules bound to a concrete address.

        An empty or unreadable listing degrades to no known rules.
        """
        try:
            rules = await self._control.list_inbound_rules()
        except Exception as e:
            logger.warning("firewall_listing_failed", error=str(e))
            return []

        managed: list[ManagedRule] = []
        for rule in rules or []:
            if not self.is_managed_name(rule.name) or not rule.enabled:
                continue
            address = (rule.remote_address or "").strip()
            if not address or address.lower() == ANY_ADDRESS.lower():
                logger.debug("firewall_rule_unbound_skipped", rule=rule.name)
                continue
            managed.append(ManagedRule(rule_name=rule.name, bound_address=address))

        logger.info("firewall_managed_rules_listed", total=len(rules or []), managed=len(managed))
        return managed
