"""
Shared fakes for wake engine tests
"""

import asyncio
import threading
from datetime import datetime
from typing import Any, Callable, List, Optional

import pytest

from wake_engine.algorithms import CancelToken, WakeContext
from wake_engine.config import WakeTimings

# Monday 2024-01-01 07:00
MONDAY_7AM = datetime(2024, 1, 1, 7, 0)


class InstantToken(CancelToken):
    """CancelToken whose waits return immediately and are recorded"""

    def __init__(self):
        super().__init__()
        self.sleeps: List[float] = []

    async def sleep(self, seconds: float) -> bool:
        if self.cancelled:
            return False
        self.sleeps.append(seconds)
        await asyncio.sleep(0)
        return not self.cancelled


class RecordingPlayer:
    """Stands in for AudioPlayer and records every call"""

    def __init__(self, started: bool = True):
        self.started = started
        self.plays: List[tuple] = []
        self.stop_all_calls = 0
        self.volume = 100

    async def play(self, sound_id: str, volume: float) -> bool:
        self.plays.append((sound_id, volume))
        await asyncio.sleep(0)
        return self.started

    def stop_all(self) -> None:
        self.stop_all_calls += 1

    def set_volume(self, volume: float) -> None:
        self.volume = volume

    def get_volume(self) -> int:
        return self.volume


class FakeHandle:
    """PlaybackHandle that reports start synchronously, or an error when fail is set"""

    def __init__(self, fail: bool = False, silent: bool = False):
        self.src: Optional[str] = None
        self.volume = 1.0
        self.paused = True
        self.fail = fail
        self.silent = silent
        self.calls: List[str] = []
        self.play_thread: Optional[int] = None
        self._on_play: Optional[Callable[[], None]] = None
        self._on_error: Optional[Callable[[Any], None]] = None

    def on_play(self, callback):
        self._on_play = callback

    def on_error(self, callback):
        self._on_error = callback

    def seek(self, position_s):
        self.calls.append(f"seek:{position_s}")

    def play(self):
        self.calls.append("play")
        self.play_thread = threading.get_ident()
        if self.silent:
            return
        if self.fail:
            self._on_error("device busy")
            return
        self.paused = False
        self._on_play()

    def stop(self):
        self.calls.append("stop")
        self.paused = True


class FakeEngine:
    def __init__(self, fail: bool = False, silent: bool = False):
        self.fail = fail
        self.silent = silent
        self.handles: List[FakeHandle] = []

    def create_handle(self) -> FakeHandle:
        handle = FakeHandle(fail=self.fail, silent=self.silent)
        self.handles.append(handle)
        return handle


class Recorder:
    """Collects progress and completion callbacks"""

    def __init__(self):
        self.progress: List[int] = []
        self.completed = 0

    def on_progress(self, value: int) -> None:
        self.progress.append(value)

    def on_complete(self) -> None:
        self.completed += 1


@pytest.fixture
def timings():
    return WakeTimings()


@pytest.fixture
def player():
    return RecordingPlayer()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def make_context(recorder):
    def _make(target_time: datetime, sound_id: str = "default", now: datetime = MONDAY_7AM,
              token: Optional[CancelToken] = None, user_id: str = "user-1") -> WakeContext:
        return WakeContext(
            target_time=target_time,
            sound_id=sound_id,
            user_id=user_id,
            cancel_token=token or InstantToken(),
            on_progress=recorder.on_progress,
            on_complete=recorder.on_complete,
            clock=lambda: now
        )
    return _make
