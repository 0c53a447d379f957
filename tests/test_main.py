"""Tests for the banwarden command-line entry point."""

from unittest.mock import AsyncMock, patch

from banwarden.exceptions import EventSourceError
from banwarden.main import build_parser, main
from banwarden.models.ban import BanRecord, UnbanOutcome


class TestMain:
    def test_parser_commands(self):
        parser = build_parser()
        assert parser.parse_args(["run"]).command == "run"
        args = parser.parse_args(["--debug", "unban", "203.0.113.7"])
        assert args.debug is True
        assert args.address == "203.0.113.7"

    @patch("banwarden.main.setup_logging")
    def test_unban_invalid_address(self, _setup_logging, capsys):
        assert main(["unban", "not-an-ip"]) == 2
        assert "Invalid IP address" in capsys.readouterr().err

    @patch("banwarden.main.setup_logging")
    @patch("banwarden.main.BanWardenDaemon")
    def test_unban(self, mock_daemon_cls, _setup_logging, capsys):
        mock_daemon_cls.return_value.unban = AsyncMock(return_value=UnbanOutcome.UNBANNED)
        assert main(["unban", "203.0.113.7"]) == 0
        mock_daemon_cls.return_value.unban.assert_awaited_once_with("203.0.113.7")
        assert "unbanned" in capsys.readouterr().out

    @patch("banwarden.main.setup_logging")
    @patch("banwarden.main.BanWardenDaemon")
    def test_unban_rejected_exit_code(self, mock_daemon_cls, _setup_logging):
        mock_daemon_cls.return_value.unban = AsyncMock(return_value=UnbanOutcome.REJECTED)
        assert main(["unban", "203.0.113.7"]) == 1

    @patch("banwarden.main.setup_logging")
    @patch("banwarden.main.BanWardenDaemon")
    def test_list(self, mock_daemon_cls, _setup_logging, capsys):
        mock_daemon_cls.return_value.list_bans = AsyncMock(
            return_value=[BanRecord(address="203.0.113.7", reason="r")]
        )
        assert main(["list"]) == 0
        assert '"address": "203.0.113.7"' in capsys.readouterr().out

    @patch("banwarden.main.setup_logging")
    @patch("banwarden.main.BanWardenDaemon")
    def test_run_fatal_startup(self, mock_daemon_cls, _setup_logging):
        mock_daemon_cls.return_value.run = AsyncMock(side_effect=EventSourceError("no feed"))
        assert main(["run"]) == 1
