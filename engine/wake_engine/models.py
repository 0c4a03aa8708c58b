"""
Data models and enums for the wake engine
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List


class WakeEngineError(Exception):
    """Base error for the wake engine"""


class WakeMethod(Enum):
    """Wake algorithm selector stored on each alarm"""
    CLASSIC = "classic"
    GENTLE = "gentle"
    NATURAL = "natural"
    SMART = "smart"

    @classmethod
    def parse(cls, value: Optional[str]) -> "WakeMethod":
        """Map a stored wake method string to a WakeMethod, defaulting to CLASSIC"""
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.CLASSIC


class SleepStage(Enum):
    """Coarse sleep stage used by the smart wake heuristic"""
    DEEP = "deep"
    LIGHT = "light"
    REM = "rem"
    AWAKE = "awake"


@dataclass
class Alarm:
    """Alarm record as read from the alarm store"""
    id: str
    time: str
    label: str = ""
    days_of_week: List[int] = field(default_factory=list)
    is_active: bool = True
    sound: str = "default"
    wake_method: str = WakeMethod.CLASSIC.value
    vibrate: bool = False
    user_id: Optional[str] = None

    def __post_init__(self):
        """Normalize time to HH:MM and drop out-of-range weekdays"""
        try:
            self.time = datetime.strptime(self.time.strip(), "%H:%M").strftime("%H:%M")
        except (AttributeError, ValueError):
            raise ValueError(f"Alarm {self.id} has invalid time {self.time!r}, expected HH:MM")
        self.days_of_week = sorted({int(day) for day in self.days_of_week if 0 <= int(day) <= 6})

    @property
    def hour(self) -> int:
        return int(self.time.split(":")[0])

    @property
    def minute(self) -> int:
        return int(self.time.split(":")[1])

    def matches(self, time_str: str, weekday: int) -> bool:
        """Check whether this alarm should fire at time_str (HH:MM) on weekday (0 = Sunday)"""
        return self.is_active and self.time == time_str and weekday in self.days_of_week

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> "Alarm":
        """Create Alarm from a stored record (camelCase or snake_case keys)"""
        alarm_id = record.get("_id") or record.get("id")
        if not alarm_id:
            raise ValueError("Alarm record has no id")
        return cls(
            id=str(alarm_id),
            time=record.get("time", ""),
            label=record.get("label", ""),
            days_of_week=list(record.get("daysOfWeek", record.get("days_of_week", []))),
            is_active=bool(record.get("isActive", record.get("is_active", True))),
            sound=record.get("sound") or "default",
            wake_method=record.get("wakeMethod") or record.get("wake_method") or WakeMethod.CLASSIC.value,
            vibrate=bool(record.get("vibrate", False)),
            user_id=record.get("userId") or record.get("user_id")
        )


@dataclass
class TriggerStatus:
    """In-memory state of a triggered alarm"""
    alarm_id: str
    algorithm: str
    is_triggered: bool = True
    trigger_time: Optional[datetime] = None
    progress: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging and display"""
        return {
            "alarmId": self.alarm_id,
            "isTriggered": self.is_triggered,
            "triggerTime": self.trigger_time.isoformat() if self.trigger_time else None,
            "algorithm": self.algorithm,
            "progress": self.progress,
            "error": self.error
        }


@dataclass
class SleepRecord:
    """One night of sleep history"""
    date: str
    actual_hours: float
    quality: int = 3

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> "SleepRecord":
        return cls(
            date=str(record.get("date", "")),
            actual_hours=float(record.get("actualHours", record.get("actual_hours", 8))),
            quality=int(record.get("quality", 3))
        )


@dataclass
class SleepCycle:
    """A synthesized sleep cycle; duration is in minutes"""
    stage: SleepStage
    start_time: datetime
    duration: int = 90


@dataclass(frozen=True)
class AlgorithmInfo:
    name: str
    description: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "description": self.description}
