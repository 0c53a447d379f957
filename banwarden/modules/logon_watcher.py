"""Logon Failure Watcher — feeds failed logons (Event ID 4625) into the ban pipeline.

Subscribes to the Windows Security channel, normalizes each record into a
LoginFailureEvent, classifies it, and asks the ban state store to ban
suspicious sources. Records are handled as independent tasks; the store's
lock is the only serialization point.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

from ..config import BanWardenConfig
from ..engine.ban_store import BanStateStore
from ..engine.classifier import classify
from ..exceptions import EventSourceError
from ..models.ban import BanOutcome
from ..models.event import Decision, LoginFailureEvent
from ..utils.win32_evtlog import EvtSubscription
from .base_module import BaseModule

EVENT_ID_LOGON_FAILED = 4625
SECURITY_CHANNEL = "Security"
LOGON_FAILED_QUERY = f"*[System[EventID={EVENT_ID_LOGON_FAILED}]]"


def _parse_system_time(value: str) -> datetime:
    """Parse ``TimeCreated/@SystemTime`` (up to 7 fractional digits, trailing Z)."""
    if not value:
        return datetime.now(timezone.utc)
    base, _, frac = value.rstrip("Z").partition(".")
    try:
        parsed = datetime.fromisoformat(base)
    except ValueError:
        return datetime.now(timezone.utc)
    digits = "".join(ch for ch in frac if ch.isdigit())[:6]
    if digits:
        parsed = parsed.replace(microsecond=int(digits.ljust(6, "0")))
    return parsed.replace(tzinfo=timezone.utc)


def to_login_failure(event: dict) -> Optional[LoginFailureEvent]:
    """Convert a parsed Security-log record into a LoginFailureEvent.

    Returns None for any record that is not a failed logon.
    """
    if not event or event.get("event_id") != EVENT_ID_LOGON_FAILED:
        return None
    data = event.get("data") or {}
    return LoginFailureEvent(
        target_username=(data.get("TargetUserName") or "").strip(),
        source_address=(data.get("IpAddress") or "").strip(),
        workstation=(data.get("WorkstationName") or "").strip(),
        timestamp=_parse_system_time(event.get("timestamp", "")),
        target_domain=(data.get("TargetDomainName") or "").strip(),
    )


class LogonFailureWatcher(BaseModule):
    """Watches failed logons and requests bans for suspicious sources."""

    def __init__(
        self,
        config: BanWardenConfig,
        store: BanStateStore,
        subscription_factory: Optional[Callable[..., EvtSubscription]] = None,
    ):
        super().__init__(name="logon_watcher")
        self._config = config
        self._store = store
        self._subscription_factory = subscription_factory or EvtSubscription
        self._subscription: Optional[EvtSubscription] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()

        self._stats: dict = {
            "events_seen": 0,
            "ignored": 0,
            "suspects": 0,
            "bans_issued": 0,
            "errors": 0,
        }

    async def start(self) -> None:
        """Subscribe to the Security log. Raises EventSourceError on failure."""
        self.logger.info("logon_watcher_starting", allowed_usernames=self._config.allowed_usernames)
        subscription = self._subscription_factory(
            SECURITY_CHANNEL, LOGON_FAILED_QUERY, self._on_event_record,
        )
        if not subscription.start():
            self.health_status = "failed"
            raise EventSourceError(
                f"could not subscribe to {SECURITY_CHANNEL} events "
                f"(EventID {EVENT_ID_LOGON_FAILED}); run as Administrator on Windows"
            )

        self._subscription = subscription
        self._poll_task = asyncio.create_task(subscription.poll_loop())
        self.running = True
        self.health_status = "running"
        self.heartbeat()
        self.logger.info("logon_watcher_started", event_id=EVENT_ID_LOGON_FAILED)

    async def stop(self) -> None:
        """Stop the subscription and let in-flight bans finish."""
        if not self.running:
            return
        self.running = False

        if self._subscription is not None:
            self._subscription.stop()
        if self._poll_task and not self._poll_task.done():
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass

        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

        self.health_status = "stopped"
        self.logger.info("logon_watcher_stopped", **self._stats)

    async def health_check(self) -> dict:
        self.heartbeat()
        return {
            "status": self.health_status,
            "details": {
                **self._stats,
                "in_flight": len(self._inflight),
                "banned": len(self._store),
            },
        }

    def _on_event_record(self, event: dict) -> None:
        """Subscription callback: schedule handling without blocking the poll loop."""
        login_failure = to_login_failure(event)
        if login_failure is None:
            return
        task = asyncio.get_running_loop().create_task(self.handle_event(login_failure))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def handle_event(self, event: LoginFailureEvent) -> Optional[BanOutcome]:
        """Classify one failed logon and request a ban when it looks hostile."""
        self._stats["events_seen"] += 1
        try:
            decision = classify(event, self._config)
            if decision is Decision.IGNORE:
                self._stats["ignored"] += 1
                self.logger.debug(
                    "logon_failure_ignored",
                    username=event.target_username, ip=event.source_address,
                )
                return None

            self._stats["suspects"] += 1
            self.logger.info(
                "logon_failure_suspect",
                username=event.target_username,
                ip=event.source_address,
                workstation=event.workstation,
            )
            reason = f"failed logon with disallowed username '{event.target_username}'"
            outcome = await self._store.request_ban(event.source_address, reason)
            if outcome is BanOutcome.BANNED:
                self._stats["bans_issued"] += 1
            return outcome
        except Exception as e:
            self._stats["errors"] += 1
            self.logger.error("logon_failure_handling_failed", ip=event.source_address, error=str(e))
            return None
