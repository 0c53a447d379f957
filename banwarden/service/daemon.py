"""BanWarden daemon — wires the firewall, ban store and logon watcher together.

Startup order is fixed: enumerate managed firewall rules, reconcile the ban
store from them, and only then subscribe to logon failures.
"""

import asyncio
import signal
from typing import Callable, Optional

from ..config import BanWardenConfig
from ..engine.ban_store import BanStateStore
from ..engine.firewall import FirewallControl, FirewallSynchronizer
from ..engine.netsh import NetshFirewall
from ..exceptions import EventSourceError
from ..models.ban import BanRecord, UnbanOutcome
from ..modules.logon_watcher import LogonFailureWatcher
from ..utils.logging import get_logger

logger = get_logger("service.daemon")


class BanWardenDaemon:
    """Owns the component graph and its start/stop lifecycle."""

    def __init__(
        self,
        config: BanWardenConfig,
        control: Optional[FirewallControl] = None,
        subscription_factory: Optional[Callable] = None,
    ):
        self.config = config
        self.control = control or NetshFirewall(timeout=config.netsh_timeout)
        self.synchronizer = FirewallSynchronizer(self.control, config.firewall_rule_prefix)
        self.store = BanStateStore(
            self.synchronizer,
            whitelisted_addresses=config.whitelisted_ips,
            log_banned_ips=config.log_banned_ips,
        )
        self.watcher = LogonFailureWatcher(config, self.store, subscription_factory)
        self._started = False

    async def reconcile(self) -> int:
        """Load surviving bans from the firewall into the store (once)."""
        if self.store.ready:
            return len(self.store)
        rules = await self.synchronizer.list_managed_rules()
        return await self.store.reconcile(rules)

    async def start(self) -> None:
        """Reconcile, then subscribe. Subscription failure is fatal and re-raised."""
        logger.info(
            "banwarden_starting",
            rule_prefix=self.config.firewall_rule_prefix,
            whitelisted=self.config.whitelisted_ips,
        )
        loaded = await self.reconcile()
        try:
            await self.watcher.start()
        except EventSourceError as e:
            logger.critical("banwarden_event_source_failed", error=str(e))
            raise
        self._started = True
        logger.info("banwarden_started", banned=loaded)

    async def stop(self) -> None:
        """Stop the watcher; in-flight bans complete. Safe to call more than once."""
        if not self._started:
            return
        self._started = False
        await self.watcher.stop()
        logger.info("banwarden_stopped", **self.status())

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Start, block until ``stop_event`` is set, then stop.

        Without a caller-supplied event, SIGINT/SIGTERM set it.
        """
        if stop_event is None:
            stop_event = asyncio.Event()
            _install_signal_handlers(stop_event)
        await self.start()
        try:
            await stop_event.wait()
        finally:
            await self.stop()

    def status(self) -> dict:
        """Watcher lifecycle state plus ban store counters."""
        return {"watcher": self.watcher.get_status(), "store": self.store.stats()}

    async def list_bans(self) -> list[BanRecord]:
        await self.reconcile()
        return self.store.records()

    async def unban(self, address: str) -> UnbanOutcome:
        await self.reconcile()
        return await self.store.request_unban(address)


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError, ValueError):
            # Windows event loops do not support add_signal_handler
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_event.set))
