"""
Tests for data models
"""

from datetime import datetime

import pytest

from wake_engine.models import Alarm, SleepRecord, TriggerStatus, WakeMethod


class TestAlarm:
    """Test Alarm parsing and matching"""

    def test_from_dict_camel_case(self):
        """Test creation from a stored camelCase record"""
        alarm = Alarm.from_dict({
            "_id": "a1",
            "time": "7:05",
            "label": "Work",
            "daysOfWeek": [1, 2, 3, 4, 5],
            "isActive": True,
            "sound": "birds",
            "wakeMethod": "natural",
            "vibrate": True,
            "userId": "u1"
        })

        assert alarm.id == "a1"
        assert alarm.time == "07:05"
        assert alarm.hour == 7
        assert alarm.minute == 5
        assert alarm.days_of_week == [1, 2, 3, 4, 5]
        assert alarm.wake_method == "natural"
        assert alarm.vibrate is True
        assert alarm.user_id == "u1"

    def test_from_dict_defaults(self):
        alarm = Alarm.from_dict({"id": "a2", "time": "06:30"})

        assert alarm.sound == "default"
        assert alarm.wake_method == "classic"
        assert alarm.is_active is True
        assert alarm.days_of_week == []

    def test_invalid_time_rejected(self):
        with pytest.raises(ValueError):
            Alarm(id="bad", time="25:99")

    def test_missing_id_rejected(self):
        with pytest.raises(ValueError):
            Alarm.from_dict({"time": "07:00"})

    def test_out_of_range_days_dropped(self):
        alarm = Alarm(id="a", time="07:00", days_of_week=[7, 1, 1, -1, 0])
        assert alarm.days_of_week == [0, 1]

    def test_matches(self):
        """Test time and weekday matching (0 = Sunday)"""
        alarm = Alarm(id="a", time="07:00", days_of_week=[1, 2, 3, 4, 5])

        assert alarm.matches("07:00", 1) is True
        assert alarm.matches("07:00", 6) is False
        assert alarm.matches("07:01", 1) is False

        alarm.is_active = False
        assert alarm.matches("07:00", 1) is False


class TestWakeMethod:
    """Test wake method parsing"""

    @pytest.mark.parametrize("value,expected", [
        ("classic", WakeMethod.CLASSIC),
        ("Gentle", WakeMethod.GENTLE),
        (" natural ", WakeMethod.NATURAL),
        ("smart", WakeMethod.SMART),
        ("unknown_value", WakeMethod.CLASSIC),
        (None, WakeMethod.CLASSIC),
        (WakeMethod.SMART, WakeMethod.SMART),
    ])
    def test_parse(self, value, expected):
        assert WakeMethod.parse(value) is expected


class TestTriggerStatus:
    def test_to_dict(self):
        status = TriggerStatus(alarm_id="a1", algorithm="gentle",
                               trigger_time=datetime(2024, 1, 1, 7, 0), progress=40)

        assert status.to_dict() == {
            "alarmId": "a1",
            "isTriggered": True,
            "triggerTime": "2024-01-01T07:00:00",
            "algorithm": "gentle",
            "progress": 40,
            "error": None
        }


class TestSleepRecord:
    def test_from_dict(self):
        record = SleepRecord.from_dict({"date": "2024-01-01", "actualHours": "6.5", "quality": 4})

        assert record.actual_hours == 6.5
        assert record.quality == 4
