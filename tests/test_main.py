"""
Tests for the command-line entry point.
"""

import dataclasses
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from dtagent.main import build_server, cli, run
from dtagent.modules.agent import Agent


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host DTAGENT_* variables and .env files out of CLI tests."""
    for name in ("CTRL_ADDR", "INSTANCE_BIN", "INSTANCE_DIR", "PORT", "IP", "LOG_LEVEL",
                 "COMMAND_TIMEOUT", "AGENT_LOG_FILE"):
        monkeypatch.delenv(f"DTAGENT_{name}", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.setattr("dtagent.main.load_dotenv", lambda: None)


class TestCli:
    """Test option parsing."""

    def test_missing_required_options(self):
        result = CliRunner().invoke(cli, [])

        assert result.exit_code == 2
        assert "Missing required configuration keys" in result.output

    def test_options_build_config(self, instance_bin, instance_dir):
        with patch("dtagent.main.run") as mock_run, patch("dtagent.main.configure_logging"):
            result = CliRunner().invoke(cli, [
                "--ctrl-addr", "10.0.0.1:8080",
                "--instance-bin", str(instance_bin),
                "--instance-dir", str(instance_dir),
                "--port", "9100",
                "--log-level", "debug",
            ])

        assert result.exit_code == 0, result.output
        config = mock_run.call_args[0][0]
        assert config.ctrl_addr == "10.0.0.1:8080"
        assert config.port == 9100
        assert config.instance_dir == instance_dir
        assert config.log_level == "DEBUG"

    def test_config_file(self, tmp_path, instance_bin, instance_dir):
        config_file = tmp_path / "agent.yaml"
        config_file.write_text(
            f"ctrl_addr: ctrl:8080\ninstance_bin: {instance_bin}\ninstance_dir: {instance_dir}\n"
        )
        with patch("dtagent.main.run") as mock_run, patch("dtagent.main.configure_logging"):
            result = CliRunner().invoke(cli, ["--config", str(config_file), "--ip", "10.2.2.2"])

        assert result.exit_code == 0, result.output
        config = mock_run.call_args[0][0]
        assert config.addr == "10.2.2.2:9527"

    def test_agent_log_file_and_command_timeout(self, tmp_path, instance_bin, instance_dir):
        log_file = tmp_path / "agent.log"
        with patch("dtagent.main.run") as mock_run, \
                patch("dtagent.main.configure_logging") as mock_logging:
            result = CliRunner().invoke(cli, [
                "--ctrl-addr", "10.0.0.1:8080",
                "--instance-bin", str(instance_bin),
                "--instance-dir", str(instance_dir),
                "--agent-log-file", str(log_file),
                "--command-timeout", "12.5",
            ])

        assert result.exit_code == 0, result.output
        config = mock_run.call_args[0][0]
        assert config.agent_log_file == log_file
        assert config.command_timeout == 12.5
        mock_logging.assert_called_once_with("INFO", log_file)


class TestRun:
    """Test agent bootstrap."""

    def test_construction_failure_exits(self, config, tmp_path):
        config = dataclasses.replace(config, instance_dir=tmp_path / "missing")
        with pytest.raises(SystemExit) as exc_info:
            run(config)
        assert exc_info.value.code == 1

    def test_bad_fault_provider_exits(self, config):
        config = dataclasses.replace(config, fault_provider="dtagent_no_such_module:Provider")
        with pytest.raises(SystemExit) as exc_info:
            run(config)
        assert exc_info.value.code == 1

    def test_registration_failure_still_serves(self, config):
        server = MagicMock()
        with patch.object(Agent, "register", return_value=False), \
                patch("dtagent.main.build_server", return_value=server):
            run(config)

        server.run.assert_called_once_with()

    def test_shutdown_releases_server(self, agent, config):
        server = build_server(agent, config)
        assert not server.should_exit

        agent.shutdown()

        assert server.should_exit
