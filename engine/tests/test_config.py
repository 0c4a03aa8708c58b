"""
Tests for configuration and logging setup
"""

import json
import logging

import pytest
from pydantic import ValidationError

from wake_engine.config import WakeEngineConfig, WakeTimings
from wake_engine.logging_utils import JSONFormatter, WakeEngineFilter, setup_logging


class TestConfig:
    """Test configuration defaults and environment overrides"""

    def test_timing_defaults(self):
        timings = WakeTimings()

        assert timings.tick_period_s == 60
        assert timings.classic_repeat_s == 300
        assert timings.classic_max_s == 3600
        assert timings.gentle_window_min == 15
        assert timings.natural_auto_stop_s == 1800
        assert timings.smart_history_days == 7

    def test_invalid_timing_rejected(self):
        with pytest.raises(ValidationError):
            WakeTimings(tick_period_s=0)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("WAKE_USER_ID", "user-42")
        monkeypatch.setenv("WAKE_TICK_PERIOD_S", "5")
        monkeypatch.setenv("WAKE_REMOTE_SOUND_URL", "https://api.example.com")
        monkeypatch.setenv("WAKE_ALARMS_FILE", "/tmp/alarms.json")

        config = WakeEngineConfig.from_env()

        assert config.user_id == "user-42"
        assert config.timings.tick_period_s == 5
        assert config.audio.remote_base_url == "https://api.example.com"
        assert config.stores.alarms_file == "/tmp/alarms.json"


class TestLogging:
    """Test structured log formatting"""

    def _record(self, name="wake_engine.service", level=logging.INFO, **extra):
        record = logging.LogRecord(name, level, __file__, 1, "Alarm a1: triggered", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_formatter_includes_extra(self):
        record = self._record(alarm_id="a1", trigger_action="triggered")

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "Alarm a1: triggered"
        assert data["alarm_id"] == "a1"
        assert data["trigger_action"] == "triggered"

    def test_filter_drops_scheduler_chatter(self):
        log_filter = WakeEngineFilter()

        assert log_filter.filter(self._record(name="apscheduler.scheduler")) is False
        assert log_filter.filter(self._record(name="apscheduler.scheduler", level=logging.WARNING)) is True

    def test_filter_groups_alarm_context(self):
        record = self._record(alarm_id="a1", algorithm="smart")

        assert WakeEngineFilter().filter(record) is True
        assert record.alarm_context == {"alarm_id": "a1"}
        assert record.algorithm_context == {"algorithm": "smart"}

    def test_setup_logging_writes_json_file(self, tmp_path):
        log_file = tmp_path / "wake.log"
        root_logger = logging.getLogger()
        saved_handlers, saved_level = list(root_logger.handlers), root_logger.level

        try:
            setup_logging(log_level="debug", log_format="json", log_file=str(log_file))
            logging.getLogger("wake_engine.service").info("Alarm a1: triggered", extra={"alarm_id": "a1"})
            logging.getLogger("apscheduler.scheduler").info("Running job")
            for handler in root_logger.handlers:
                handler.flush()
        finally:
            for handler in root_logger.handlers:
                handler.close()
            root_logger.handlers[:] = saved_handlers
            root_logger.setLevel(saved_level)

        lines = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert [line["message"] for line in lines] == ["Alarm a1: triggered"]
        assert lines[0]["alarm_context"] == {"alarm_id": "a1"}
        assert logging.getLogger("urllib3").level == logging.WARNING
