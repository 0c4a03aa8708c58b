"""
Tests for the JSON-backed stores
"""

import asyncio
import json
from datetime import datetime

from wake_engine.stores import JsonAlarmStore, JsonSleepHistoryStore

NOW = datetime(2024, 1, 8, 7, 0)


def _write(path, data):
    path.write_text(json.dumps(data))
    return str(path)


class TestJsonAlarmStore:
    """Test alarm loading"""

    def test_loads_active_alarms_for_user(self, tmp_path):
        path = _write(tmp_path / "alarms.json", {"alarms": [
            {"_id": "a1", "time": "07:00", "daysOfWeek": [1], "isActive": True, "userId": "u1"},
            {"_id": "a2", "time": "08:00", "daysOfWeek": [1], "isActive": False, "userId": "u1"},
            {"_id": "a3", "time": "09:00", "daysOfWeek": [1], "userId": "someone_else"},
            {"_id": "a4", "time": "10:00", "daysOfWeek": [1]},
        ]})

        alarms = asyncio.run(JsonAlarmStore(path).list_active_alarms("u1"))

        assert [a.id for a in alarms] == ["a1", "a4"]

    def test_bare_list_and_invalid_records(self, tmp_path):
        path = _write(tmp_path / "alarms.json", [
            {"id": "ok", "time": "06:45"},
            {"id": "bad", "time": "not a time"},
            {"time": "07:00"},
        ])

        alarms = asyncio.run(JsonAlarmStore(path).list_active_alarms("u1"))

        assert [a.id for a in alarms] == ["ok"]

    def test_missing_file(self, tmp_path):
        store = JsonAlarmStore(str(tmp_path / "missing.json"))
        assert asyncio.run(store.list_active_alarms("u1")) == []


class TestJsonSleepHistoryStore:
    """Test sleep history and wake recording"""

    def test_recent_records_only(self, tmp_path):
        path = _write(tmp_path / "sleep.json", {"records": [
            {"date": "2024-01-07", "actualHours": 7.5, "userId": "u1"},
            {"date": "2024-01-01", "actualHours": 6.0, "userId": "u1"},
            {"date": "2023-12-20", "actualHours": 9.0, "userId": "u1"},
            {"date": "2024-01-06", "actualHours": 8.0, "userId": "u2"},
            {"date": "garbage", "actualHours": 5.0},
        ]})
        store = JsonSleepHistoryStore(path, clock=lambda: NOW)

        records = asyncio.run(store.list_recent_sleep_records("u1", 7))

        assert [r.actual_hours for r in records] == [7.5, 6.0]

    def test_record_wake_time_appends(self, tmp_path):
        path = str(tmp_path / "nested" / "sleep.json")
        store = JsonSleepHistoryStore(path, clock=lambda: NOW)

        async def scenario():
            await store.record_wake_time("u1", datetime(2024, 1, 8, 6, 30))
            await store.record_wake_time("u1", datetime(2024, 1, 9, 6, 45))

        asyncio.run(scenario())

        with open(path) as f:
            data = json.load(f)
        assert [e["wakeTime"] for e in data["wakeEvents"]] == ["2024-01-08T06:30:00", "2024-01-09T06:45:00"]
        assert data["wakeEvents"][0]["userId"] == "u1"
