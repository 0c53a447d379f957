"""Shared test fixtures."""

import asyncio

import pytest

from banwarden.config import BanWardenConfig
from banwarden.engine.ban_store import BanStateStore
from banwarden.engine.firewall import FirewallSynchronizer
from banwarden.models.ban import FirewallRule


class FakeFirewall:
    """In-memory FirewallControl double that records every call."""

    def __init__(self, rules=None, latency: float = 0.0):
        self.rules: dict[str, FirewallRule] = {r.name: r for r in (rules or [])}
        self.latency = latency
        self.add_calls: list[tuple[str, str]] = []
        self.delete_calls: list[str] = []
        self.fail_add = False
        self.fail_delete = False
        self.raise_on_list = False
        self.raise_on_add = False

    async def _pause(self):
        if self.latency:
            await asyncio.sleep(self.latency)

    async def add_inbound_block_rule(self, name, remote_address):
        await self._pause()
        self.add_calls.append((name, remote_address))
        if self.raise_on_add:
            raise OSError("netsh not found")
        if self.fail_add:
            return False
        self.rules[name] = FirewallRule(name=name, remote_address=remote_address)
        return True

    async def delete_rule(self, name):
        await self._pause()
        self.delete_calls.append(name)
        if self.fail_delete:
            return False
        self.rules.pop(name, None)
        return True

    async def find_rules(self, name):
        rule = self.rules.get(name)
        return [rule] if rule is not None else []

    async def list_inbound_rules(self):
        if self.raise_on_list:
            raise RuntimeError("listing unavailable")
        return list(self.rules.values())


class FakeSubscription:
    """EvtSubscription double; tests push records through ``emit``."""

    instances: list["FakeSubscription"] = []

    def __init__(self, channel, query, callback, start_ok=True):
        self.channel = channel
        self.query = query
        self.callback = callback
        self.start_ok = start_ok
        self.started = False
        self.stopped = False
        FakeSubscription.instances.append(self)

    def start(self):
        self.started = self.start_ok
        return self.start_ok

    async def poll_loop(self):
        while not self.stopped:
            await asyncio.sleep(0.01)

    def stop(self):
        self.stopped = True

    def emit(self, event: dict):
        self.callback(event)


def make_4625(username="Administrator", ip="203.0.113.7", workstation="WIN-ATTACKER", domain=""):
    """A parsed Security-log record for a failed logon."""
    return {
        "event_id": 4625,
        "timestamp": "2024-03-01T10:15:23.1234567Z",
        "computer": "host",
        "channel": "Security",
        "data": {
            "TargetUserName": username,
            "TargetDomainName": domain,
            "WorkstationName": workstation,
            "IpAddress": ip,
        },
    }


@pytest.fixture
def config():
    return BanWardenConfig(
        _env_file=None,
        allowed_usernames=["svc-admin"],
        whitelisted_ips=["127.0.0.1", "::1"],
        firewall_rule_prefix="RB_",
    )


@pytest.fixture
def firewall():
    return FakeFirewall()


@pytest.fixture
def synchronizer(firewall, config):
    return FirewallSynchronizer(firewall, config.firewall_rule_prefix)


@pytest.fixture
def store(synchronizer, config):
    return BanStateStore(synchronizer, whitelisted_addresses=config.whitelisted_ips)
