"""
Collaborator interfaces and JSON file-backed implementations
"""

import asyncio
import json
import logging
import os
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Protocol

from .models import Alarm, SleepRecord

logger = logging.getLogger(__name__)


class AlarmStore(Protocol):
    async def list_active_alarms(self, user_id: str) -> List[Alarm]: ...


class SleepHistoryStore(Protocol):
    async def list_recent_sleep_records(self, user_id: str, days: int) -> List[SleepRecord]: ...


class WakeTimeRecorder(Protocol):
    async def record_wake_time(self, user_id: str, wake_time: datetime) -> None: ...


def _read_json(path: str, default: Any) -> Any:
    if not os.path.exists(path):
        return default
    with open(path, 'r') as f:
        return json.load(f)


def _belongs_to(record: Dict[str, Any], user_id: str) -> bool:
    owner = record.get("userId") or record.get("user_id")
    return owner is None or owner == user_id


class JsonAlarmStore:
    """Reads alarms from a JSON file: {"alarms": [...]} or a bare list"""

    def __init__(self, path: str):
        self.path = path

    def _load(self, user_id: str) -> List[Alarm]:
        data = _read_json(self.path, {"alarms": []})
        records = data.get("alarms", []) if isinstance(data, dict) else data

        alarms = []
        for record in records:
            if not _belongs_to(record, user_id):
                continue
            try:
                alarm = Alarm.from_dict(record)
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping invalid alarm record in {self.path}: {e}")
                continue
            if alarm.is_active:
                alarms.append(alarm)
        return alarms

    async def list_active_alarms(self, user_id: str) -> List[Alarm]:
        return await asyncio.to_thread(self._load, user_id)


class JsonSleepHistoryStore:
    """Sleep history and wake records in one JSON file: {"records": [...], "wakeEvents": [...]}"""

    def __init__(self, path: str, clock: Callable[[], datetime] = datetime.now):
        self.path = path
        self.clock = clock
        self._write_lock = threading.Lock()

    def _load(self, user_id: str, days: int) -> List[SleepRecord]:
        data = _read_json(self.path, {})
        cutoff = (self.clock() - timedelta(days=days)).date()

        records = []
        for record in data.get("records", []):
            if not _belongs_to(record, user_id):
                continue
            try:
                night = datetime.strptime(str(record.get("date", ""))[:10], "%Y-%m-%d").date()
            except ValueError:
                logger.debug(f"Skipping sleep record with unparseable date: {record.get('date')}")
                continue
            if night >= cutoff:
                records.append(SleepRecord.from_dict(record))
        return records

    async def list_recent_sleep_records(self, user_id: str, days: int) -> List[SleepRecord]:
        return await asyncio.to_thread(self._load, user_id, days)

    def _append_wake(self, user_id: str, wake_time: datetime) -> None:
        with self._write_lock:
            data = _read_json(self.path, {})
            data.setdefault("wakeEvents", []).append({
                "userId": user_id,
                "wakeTime": wake_time.isoformat(),
                "recordedAt": self.clock().isoformat()
            })
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, 'w') as f:
                json.dump(data, f, indent=2)

    async def record_wake_time(self, user_id: str, wake_time: datetime) -> None:
        await asyncio.to_thread(self._append_wake, user_id, wake_time)
