"""Tests for CLI module."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml
from click.testing import CliRunner

from peerlink import __version__
from peerlink.cli import main
from peerlink.errors import PeerlinkError
from peerlink.peer import Peer
from tests.fakes import FakeEngine


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    """Config file pointing the signaling server at a test port."""
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"signaling": {"host": "127.0.0.1", "port": 9999}}))
    return path


class TestCLIHelp:
    """Test CLI help output."""

    def test_cli_help(self, runner):
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "peerlink" in result.output
        assert "answer" in result.output
        assert "offer" in result.output

    def test_offer_help(self, runner):
        result = runner.invoke(main, ["offer", "--help"])

        assert result.exit_code == 0
        assert "--message" in result.output


class TestVersionCommand:
    """Test version command."""

    def test_version_command(self, runner, config_file):
        result = runner.invoke(main, ["--config", str(config_file), "version"])

        assert result.exit_code == 0
        assert f"peerlink version {__version__}" in result.output


class TestAnswerCommand:
    """Test answer command."""

    def test_answer_uses_config_values(self, runner, config_file):
        with patch("peerlink.signaling.SignalingServer") as mock_server_class:
            mock_server = MagicMock()
            mock_server.start = AsyncMock(side_effect=KeyboardInterrupt)
            mock_server.close = AsyncMock()
            mock_server_class.return_value = mock_server

            runner.invoke(main, ["--config", str(config_file), "answer"])

        kwargs = mock_server_class.call_args.kwargs
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 9999
        mock_server.on_connected.assert_called_once()

    def test_answer_options_override_config(self, runner, config_file):
        with patch("peerlink.signaling.SignalingServer") as mock_server_class:
            mock_server = MagicMock()
            mock_server.start = AsyncMock(side_effect=KeyboardInterrupt)
            mock_server.close = AsyncMock()
            mock_server_class.return_value = mock_server

            runner.invoke(
                main,
                ["--config", str(config_file), "answer", "--host", "0.0.0.0", "--port", "0"],
            )

        kwargs = mock_server_class.call_args.kwargs
        assert kwargs["host"] == "0.0.0.0"
        assert kwargs["port"] == 0


class TestOfferCommand:
    """Test offer command."""

    def test_offer_reports_signaling_error(self, runner, config_file, host_candidates):
        async def failing_handler(encoded):
            raise PeerlinkError("Signaling request failed (500): boom")

        def fake_peer(handler, config=None):
            return Peer(handler, engine=FakeEngine(candidates=host_candidates), config=config)

        with patch("peerlink.signaling.http_handler", return_value=failing_handler), \
             patch("peerlink.peer.Peer", side_effect=fake_peer):
            result = runner.invoke(
                main, ["--config", str(config_file), "offer", "http://127.0.0.1:9999/negotiate"]
            )

        assert result.exit_code == 1
        assert "Error: Signaling request failed (500): boom" in result.output

    def test_offer_reports_missing_candidates(self, runner, config_file):
        async def handler(encoded):
            return ""

        def fake_peer(handler, config=None):
            return Peer(handler, engine=FakeEngine(candidates=[]), config=config)

        with patch("peerlink.signaling.http_handler", return_value=handler), \
             patch("peerlink.peer.Peer", side_effect=fake_peer):
            result = runner.invoke(
                main, ["--config", str(config_file), "offer", "http://127.0.0.1:9999/negotiate"]
            )

        assert result.exit_code == 1
        assert "No ICE candidates found" in result.output
