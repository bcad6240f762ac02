"""Tests for the command line entry point."""

import pytest

from rxgateway.cli import build_parser, main


class TestParser:
    def test_gateway_options(self):
        args = build_parser().parse_args(
            ["gateway", "--base-url", "http://localhost:8080", "--no-compress", "--log-format", "json"]
        )
        assert args.command == "gateway"
        assert args.base_url == "http://localhost:8080"
        assert args.no_compress is True
        assert args.no_resume is False
        assert args.log_format == "json"

    def test_webhook_options(self):
        args = build_parser().parse_args(["webhook", "--port", "8081", "--path", "hooks/events"])
        assert args.command == "webhook"
        assert args.port == 8081
        assert args.path == "hooks/events"
        assert args.host is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_rejects_unknown_log_format(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["gateway", "--log-format", "xml"])


class TestMain:
    def test_gateway_without_token(self, monkeypatch, capsys):
        monkeypatch.delenv("GATEWAY_TOKEN", raising=False)
        assert main(["gateway"]) == 1
        assert "GATEWAY_TOKEN" in capsys.readouterr().err

    def test_webhook_without_token(self, monkeypatch, capsys):
        monkeypatch.delenv("WEBHOOK_VERIFY_TOKEN", raising=False)
        assert main(["webhook"]) == 1
        assert "WEBHOOK_VERIFY_TOKEN" in capsys.readouterr().err
