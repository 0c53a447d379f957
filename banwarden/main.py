"""BanWarden — bans sources of failed Windows logons through the host firewall.

Command-line entry point:
    banwarden run              - run the daemon until SIGINT/SIGTERM
    banwarden list             - show addresses currently banned by BanWarden
    banwarden unban ADDRESS    - remove a ban
"""

import argparse
import asyncio
import json
import sys

from pydantic import ValidationError

from .config import get_config
from .exceptions import BanWardenError
from .models.ban import UnbanOutcome
from .service.daemon import BanWardenDaemon
from .utils.input_validators import validate_ip_address
from .utils.logging import get_logger, setup_logging

logger = get_logger("main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="banwarden",
        description="Ban sources of failed logons via Windows Defender Firewall.",
    )
    parser.add_argument("--debug", action="store_true", help="console log rendering at DEBUG level")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="run the daemon")
    sub.add_parser("list", help="list banned addresses")
    unban = sub.add_parser("unban", help="remove a ban")
    unban.add_argument("address")
    return parser


async def _list(daemon: BanWardenDaemon) -> int:
    records = await daemon.list_bans()
    print(json.dumps([r.to_dict() for r in records], indent=2))
    return 0


async def _unban(daemon: BanWardenDaemon, address: str) -> int:
    outcome = await daemon.unban(address)
    print(outcome.value)
    return 0 if outcome in (UnbanOutcome.UNBANNED, UnbanOutcome.NOT_BANNED) else 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    command = args.command or "run"

    try:
        config = get_config()
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    setup_logging(
        debug=args.debug or config.debug,
        log_dir=config.log_dir,
        log_max_bytes=config.log_max_bytes,
        log_backup_count=config.log_backup_count,
    )

    if command == "unban":
        try:
            validate_ip_address(args.address)
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 2

    daemon = BanWardenDaemon(config)
    try:
        if command == "list":
            return asyncio.run(_list(daemon))
        if command == "unban":
            return asyncio.run(_unban(daemon, args.address))
        asyncio.run(daemon.run())
    except BanWardenError as e:
        logger.critical("banwarden_fatal", error=str(e))
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
