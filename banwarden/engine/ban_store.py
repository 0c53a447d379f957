"""Ban state store — the authoritative set of banned addresses.

Every mutation runs under one asyncio.Lock and is committed only after the
firewall synchronizer confirms it, so the in-memory set and the firewall
rule set never diverge through this process. Reconciliation at startup
rebuilds the set from whatever rules survived a restart.
"""

import asyncio
from datetime import datetime, timezone
from typing import Iterable, Optional

from ..exceptions import ReconcileError, StoreNotReadyError
from ..models.ban import BanOutcome, BanRecord, ManagedRule, UnbanOutcome
from ..models.event import is_missing_address
from ..utils.logging import get_logger
from .firewall import FirewallSynchronizer

logger = get_logger("engine.ban_store")

RECONCILED_REASON = "reconciled from firewall"


class BanStateStore:
    """Owns the banned-address set and gates every ban/unban request."""

    def __init__(
        self,
        synchronizer: FirewallSynchronizer,
        whitelisted_addresses: Iterable[str] = (),
        log_banned_ips: bool = True,
    ):
        self._synchronizer = synchronizer
        self._whitelist: frozenset[str] = frozenset(whitelisted_addresses)
        self._log_banned_ips = log_banned_ips
        self._records: dict[str, BanRecord] = {}
        self._lock = asyncio.Lock()
        self._reconciled = False

        self._stats: dict = {
            "bans_committed": 0,
            "unbans_committed": 0,
            "already_banned": 0,
            "whitelisted": 0,
            "rejected": 0,
        }

    @property
    def ready(self) -> bool:
        return self._reconciled

    def __len__(self) -> int:
        return len(self._records)

    # --- Lookups ---

    def is_banned(self, address: str) -> bool:
        return address in self._records

    def is_whitelisted(self, address: str) -> bool:
        return address in self._whitelist

    def get(self, address: str) -> Optional[BanRecord]:
        return self._records.get(address)

    def records(self) -> list[BanRecord]:
        """Committed bans, oldest first."""
        return sorted(self._records.values(), key=lambda r: r.first_banned_at)

    def stats(self) -> dict:
        return {"banned": len(self._records), "reconciled": self._reconciled, **self._stats}

    # --- Mutations ---

    async def reconcile(self, existing_rules: Iterable[ManagedRule]) -> int:
        """Rebuild the set from the firewall's managed rules. Allowed exactly once.

        Returns the number of addresses loaded.
        """
        async with self._lock:
            if self._reconciled:
                raise ReconcileError("ban state store has already been reconciled")

            now = datetime.now(timezone.utc)
            for rule in existing_rules:
                if not self._synchronizer.is_managed_name(rule.rule_name):
                    continue
                address = rule.bound_address
                if is_missing_address(address):
                    continue
                if self.is_whitelisted(address):
                    logger.warning("reconcile_whitelisted_rule_skipped", rule=rule.rule_name, ip=address)
                    continue
                if address in self._records:
                    logger.warning("reconcile_duplicate_rule", rule=rule.rule_name, ip=address)
                    continue
                self._records[address] = BanRecord(
                    address=address, reason=RECONCILED_REASON, first_banned_at=now,
                )

            self._reconciled = True
            logger.info("reconcile_complete", banned=len(self._records))
            return len(self._records)

    async def request_ban(self, address: str, reason: str) -> BanOutcome:
        """Ban address unless it is missing, whitelisted, or already banned."""
        self._require_ready()

        if is_missing_address(address):
            self._stats["rejected"] += 1
            logger.debug("ban_rejected_no_address", ip=address)
            return BanOutcome.REJECTED

        if self.is_whitelisted(address):
            self._stats["whitelisted"] += 1
            logger.info("ban_skipped_whitelisted", ip=address)
            return BanOutcome.WHITELISTED

        async with self._lock:
            if address in self._records:
                self._stats["already_banned"] += 1
                logger.debug("ban_skipped_already_banned", ip=address)
                return BanOutcome.ALREADY_BANNED

            if not await self._synchronizer.apply_ban(address):
                self._stats["rejected"] += 1
                logger.error("ban_rejected_firewall_failure", ip=address, reason=reason)
                return BanOutcome.REJECTED

            self._records[address] = BanRecord(address=address, reason=reason)
            self._stats["bans_committed"] += 1

        if self._log_banned_ips:
            logger.warning("ban_committed", ip=address, reason=reason)
        return BanOutcome.BANNED

    async def request_unban(self, address: str) -> UnbanOutcome:
        """Remove the ban on address once the firewall rule is gone."""
        self._require_ready()

        if is_missing_address(address):
            self._stats["rejected"] += 1
            return UnbanOutcome.REJECTED

        async with self._lock:
            if address not in self._records:
                return UnbanOutcome.NOT_BANNED

            if not await self._synchronizer.revoke_ban(address):
                self._stats["rejected"] += 1
                logger.error("unban_rejected_firewall_failure", ip=address)
                return UnbanOutcome.REJECTED

            del self._records[address]
            self._stats["unbans_committed"] += 1

        logger.info("unban_committed", ip=address)
        return UnbanOutcome.UNBANNED

    def _require_ready(self) -> None:
        if not self._reconciled:
            raise StoreNotReadyError("ban state store must be reconciled before use")
