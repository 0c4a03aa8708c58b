"""
Smoke tests for the CLI
"""

import json

from click.testing import CliRunner

from wake_engine.cli import cli


class TestCli:
    """Test commands that do not touch the audio device"""

    def test_sounds(self):
        result = CliRunner().invoke(cli, ['sounds'])

        assert result.exit_code == 0
        assert "birds_chorus" in result.output
        assert "Bird chorus" in result.output

    def test_algorithms(self):
        result = CliRunner().invoke(cli, ['algorithms'])

        assert result.exit_code == 0
        for name in ("classic", "gentle", "natural", "smart"):
            assert name in result.output

    def test_status(self, monkeypatch, tmp_path):
        alarms_file = tmp_path / "alarms.json"
        alarms_file.write_text(json.dumps({"alarms": []}))
        monkeypatch.setenv("WAKE_USER_ID", "cli-user")
        monkeypatch.setenv("WAKE_ALARMS_FILE", str(alarms_file))

        result = CliRunner().invoke(cli, ['status'])

        assert result.exit_code == 0
        assert "cli-user" in result.output
        assert str(alarms_file) in result.output

    def test_unknown_method_rejected(self):
        result = CliRunner().invoke(cli, ['test', 'turbo'])
        assert result.exit_code != 0
