"""Windows Defender Firewall control via ``netsh advfirewall``.

Each call spawns netsh as a subprocess in the default executor so the event
loop is never blocked. Output parsing understands English and Chinese
localized field labels.
"""

import asyncio
import subprocess

from ..models.ban import ANY_ADDRESS, FirewallRule
from ..utils.input_validators import validate_ip_address, validate_rule_name
from ..utils.logging import get_logger

logger = get_logger("engine.netsh")

RULE_NAME_LABELS = ("Rule Name:", "规则名称:")
REMOTE_IP_LABELS = ("RemoteIP:", "远程 IP:")
ENABLED_LABELS = ("Enabled:", "已启用:")
ENABLED_VALUES = {"yes", "是"}
NO_MATCH_MARKERS = (
    "No rules match the specified criteria",
    "没有与指定标准相匹配的规则",
)
SINGLE_HOST_SUFFIXES = ("/32", "/128", "/255.255.255.255")


def _run_cmd(args: list[str], timeout: int = 10) -> subprocess.CompletedProcess:
    """Run a subprocess with argument list (never shell=True)."""
    return subprocess.run(args, capture_output=True, text=True, timeout=timeout)


def _field_value(line: str, labels: tuple[str, ...]) -> str | None:
    for label in labels:
        if line.startswith(label):
            return line[len(label):].strip()
    return None


def _strip_host_suffix(address: str) -> str:
    for suffix in SINGLE_HOST_SUFFIXES:
        if address.endswith(suffix):
            return address[: -len(suffix)]
    return address


def parse_rule_listing(text: str) -> list[FirewallRule]:
    """Parse ``netsh advfirewall firewall show rule`` output into rules.

    Unknown lines are ignored; empty or unrecognizable text yields ``[]``.
    """
    rules: list[FirewallRule] = []
    if not text:
        return rules

    current: dict | None = None

    def flush() -> None:
        if current and current.get("name"):
            rules.append(FirewallRule(
                name=current["name"],
                remote_address=current.get("remote", ANY_ADDRESS),
                enabled=current.get("enabled", True),
            ))

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        name = _field_value(line, RULE_NAME_LABELS)
        if name is not None:
            flush()
            current = {"name": name}
            continue
        if current is None:
            continue

        remote = _field_value(line, REMOTE_IP_LABELS)
        if remote is not None:
            current["remote"] = _strip_host_suffix(remote) if remote else ANY_ADDRESS
            continue

        enabled = _field_value(line, ENABLED_LABELS)
        if enabled is not None:
            current["enabled"] = enabled.lower() in ENABLED_VALUES

    flush()
    return rules


class NetshFirewall:
    """FirewallControl implementation backed by netsh."""

    def __init__(self, timeout: int = 10):
        self._timeout = timeout

    async def _netsh(self, *args: str) -> subprocess.CompletedProcess | None:
        cmd = ["netsh", "advfirewall", "firewall", *args]
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(
                None, lambda: _run_cmd(cmd, timeout=self._timeout)
            )
        except subprocess.TimeoutExpired:
            logger.error("netsh_timeout", args=list(args), timeout=self._timeout)
        except OSError as e:
            logger.error("netsh_launch_failed", args=list(args), error=str(e))
        return None

    async def add_inbound_block_rule(self, name: str, remote_address: str) -> bool:
        validate_rule_name(name)
        validate_ip_address(remote_address)
        result = await self._netsh(
            "add", "rule",
            f"name={name}",
            "dir=in", "action=block",
            f"remoteip={remote_address}",
            "enable=yes",
        )
        if result is None:
            return False
        success = result.returncode == 0
        logger.debug("netsh_add_rule", rule=name, ip=remote_address, success=success)
        if not success:
            logger.warning("netsh_add_rule_failed", rule=name, output=(result.stdout or "").strip())
        return success

    async def delete_rule(self, name: str) -> bool:
        validate_rule_name(name)
        result = await self._netsh("delete", "rule", f"name={name}")
        if result is None:
            return False
        if result.returncode == 0:
            logger.debug("netsh_delete_rule", rule=name)
            return True
        output = f"{result.stdout or ''}{result.stderr or ''}"
        if any(marker in output for marker in NO_MATCH_MARKERS):
            logger.info("netsh_delete_rule_absent", rule=name)
            return True
        logger.warning("netsh_delete_rule_failed", rule=name, output=output.strip())
        return False

    async def find_rules(self, name: str) -> list[FirewallRule]:
        """Every rule carrying exactly this name (netsh allows duplicates)."""
        validate_rule_name(name)
        result = await self._netsh("show", "rule", f"name={name}")
        if result is None or result.returncode != 0:
            return []
        return [rule for rule in parse_rule_listing(result.stdout or "") if rule.name == name]

    async def list_inbound_rules(self) -> list[FirewallRule]:
        result = await self._netsh("show", "rule", "name=all", "dir=in")
        if result is None:
            return []
        rules = parse_rule_listing(result.stdout or "")
        if not rules:
            logger.warning("netsh_listing_empty", returncode=result.returncode)
        return rules
