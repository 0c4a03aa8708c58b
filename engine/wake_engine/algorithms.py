"""
Wake algorithms: time-extended playback routines run when an alarm fires

Each algorithm implements ``execute(context)``. Every wait goes through the
context's CancelToken so a stopped run returns at its next suspension point
without emitting further progress.
"""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Protocol

from .config import WakeTimings
from .logging_utils import get_logger, log_algorithm_start, log_algorithm_end
from .models import AlgorithmInfo, SleepRecord, WakeMethod
from .player import AudioPlayer
from .sleep_cycles import analyze_sleep_pattern, find_optimal_wake_time
from .stores import SleepHistoryStore, WakeTimeRecorder

logger = get_logger(__name__)


class CancelToken:
    """Cooperative cancellation flag with a cancellable sleep"""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def sleep(self, seconds: float) -> bool:
        """
        Wait for up to ``seconds``.

        Returns:
            False if the token was cancelled before or during the wait
        """
        if self.cancelled:
            return False
        if seconds <= 0:
            await asyncio.sleep(0)
            return not self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
        return not self.cancelled


@dataclass
class WakeContext:
    """Everything an algorithm needs for one alarm firing"""
    target_time: datetime
    sound_id: str
    user_id: str
    cancel_token: CancelToken = field(default_factory=CancelToken)
    on_progress: Optional[Callable[[int], None]] = None
    on_complete: Optional[Callable[[], None]] = None
    clock: Callable[[], datetime] = datetime.now

    @property
    def cancelled(self) -> bool:
        return self.cancel_token.cancelled

    def report(self, progress: float) -> None:
        if self.on_progress and not self.cancelled:
            self.on_progress(int(progress))

    def complete(self) -> None:
        if self.on_complete and not self.cancelled:
            self.on_complete()


class WakeAlgorithm(Protocol):
    name: str
    description: str

    async def execute(self, context: WakeContext) -> None: ...


async def _play(player: AudioPlayer, context: WakeContext, sound_id: str, volume: float) -> bool:
    if context.cancelled:
        return False
    return await player.play(sound_id, volume)


class ClassicWakeAlgorithm:
    name = WakeMethod.CLASSIC.value
    description = "Traditional alarm: full volume, repeated every 5 minutes for up to an hour"

    def __init__(self, player: AudioPlayer, timings: WakeTimings):
        self.player = player
        self.timings = timings

    async def execute(self, context: WakeContext) -> None:
        log_algorithm_start(logger, self.name, context.sound_id, context.target_time)

        wait_s = (context.target_time - context.clock()).total_seconds()
        if wait_s > 0:
            logger.info(f"Waiting {int(wait_s)}s until target time")
            if not await context.cancel_token.sleep(wait_s):
                log_algorithm_end(logger, self.name, completed=False)
                return

        max_s = self.timings.classic_max_s
        elapsed = 0.0
        while elapsed < max_s:
            logger.debug(f"Ringing, {elapsed / 60:.0f} minutes elapsed")
            context.report(min(100.0, elapsed / max_s * 100))
            await _play(self.player, context, context.sound_id, 100)

            if not await context.cancel_token.sleep(self.timings.classic_repeat_s):
                log_algorithm_end(logger, self.name, completed=False)
                return
            elapsed += self.timings.classic_repeat_s

        logger.info(f"Auto-stopping after {max_s / 60:.0f} minutes")
        self.player.stop_all()
        context.report(100)
        context.complete()
        log_algorithm_end(logger, self.name)


class GentleWakeAlgorithm:
    name = WakeMethod.GENTLE.value
    description = "Progressive volume ramp, suited to waking from light sleep"

    def __init__(self, player: AudioPlayer, timings: WakeTimings):
        self.player = player
        self.timings = timings

    def in_light_sleep_window(self, context: WakeContext) -> bool:
        """Treat the minutes around the target time as light sleep"""
        diff_min = abs((context.target_time - context.clock()).total_seconds()) / 60
        return diff_min <= self.timings.gentle_window_min

    async def execute(self, context: WakeContext) -> None:
        if not self.in_light_sleep_window(context):
            logger.info("Outside the light-sleep window, falling back to classic wake")
            await ClassicWakeAlgorithm(self.player, self.timings).execute(context)
            return

        log_algorithm_start(logger, self.name, context.sound_id, context.target_time)
        volume = self.timings.gentle_start_volume
        elapsed = 0.0
        while elapsed < self.timings.gentle_total_s and volume < 100:
            logger.debug(f"Gentle ramp volume {volume}%")
            context.report(volume)
            await _play(self.player, context, context.sound_id, volume)

            if not await context.cancel_token.sleep(self.timings.gentle_step_s):
                log_algorithm_end(logger, self.name, completed=False)
                return
            elapsed += self.timings.gentle_step_s
            volume += self.timings.gentle_step_volume

        logger.info("Gentle ramp reached full volume")
        self.player.set_volume(100)
        context.report(100)
        context.complete()
        log_algorithm_end(logger, self.name)


@dataclass(frozen=True)
class NaturalStep:
    sound: str
    volume: int
    duration_s: float
    description: str


NATURAL_SEQUENCES: Dict[str, List[NaturalStep]] = {
    "birds": [
        NaturalStep("birds_gentle", 20, 10, "Distant birdsong"),
        NaturalStep("birds_morning", 40, 15, "Morning birdsong"),
        NaturalStep("birds_chorus", 60, 20, "Bird chorus"),
        NaturalStep("birds_full", 80, 15, "Full birdsong"),
    ],
    "waves": [
        NaturalStep("waves_distant", 20, 10, "Distant waves"),
        NaturalStep("waves_gentle", 40, 15, "Gentle waves"),
        NaturalStep("waves_medium", 60, 20, "Medium waves"),
        NaturalStep("waves_full", 80, 15, "Full waves"),
    ],
    "default": [
        NaturalStep("nature_morning", 30, 60, "Morning nature ambience"),
    ],
}


def seasonal_offset_minutes(month: int, offset: int = 30) -> int:
    """Northern-hemisphere offset: earlier in summer (May-Aug), later in winter (Nov-Feb)"""
    if month >= 11 or month <= 2:
        return offset
    if 5 <= month <= 8:
        return -offset
    return 0


def natural_sequence(sound_id: str) -> List[NaturalStep]:
    """Sequence for the sound's family, e.g. birds_morning -> birds"""
    family = sound_id.split("_", 1)[0]
    return NATURAL_SEQUENCES.get(family, NATURAL_SEQUENCES["default"])


class NaturalWakeAlgorithm:
    name = WakeMethod.NATURAL.value
    description = "Layered nature soundscape that builds up over a minute"

    def __init__(self, player: AudioPlayer, timings: WakeTimings):
        self.player = player
        self.timings = timings

    async def execute(self, context: WakeContext) -> None:
        log_algorithm_start(logger, self.name, context.sound_id, context.target_time)

        offset = seasonal_offset_minutes(context.target_time.month, self.timings.natural_seasonal_offset_min)
        adjusted = context.target_time + timedelta(minutes=offset)
        logger.info(f"Season-adjusted wake time {adjusted:%H:%M} (offset {offset:+d} min, not applied)")

        steps = natural_sequence(context.sound_id)
        auto_stop_s = self.timings.natural_auto_stop_s
        elapsed = 0.0
        for index, step in enumerate(steps):
            if elapsed >= auto_stop_s:
                break
            logger.info(f"Natural step {index + 1}/{len(steps)}: {step.description}")
            context.report(index * 100 // len(steps))
            await _play(self.player, context, step.sound, step.volume)

            duration = min(step.duration_s, auto_stop_s - elapsed)
            if not await context.cancel_token.sleep(duration):
                log_algorithm_end(logger, self.name, completed=False)
                return
            elapsed += duration

        context.report(100)

        remaining = auto_stop_s - elapsed
        if remaining > 0 and not await context.cancel_token.sleep(remaining):
            log_algorithm_end(logger, self.name, completed=False)
            return

        logger.info(f"Auto-stopping after {auto_stop_s / 60:.0f} minutes")
        self.player.stop_all()
        context.complete()
        log_algorithm_end(logger, self.name)


class SmartWakeAlgorithm:
    name = WakeMethod.SMART.value
    description = "Wakes at the best point of the sleep cycle near the alarm time"

    def __init__(self, player: AudioPlayer, timings: WakeTimings,
                 sleep_history: Optional[SleepHistoryStore] = None,
                 wake_recorder: Optional[WakeTimeRecorder] = None):
        self.player = player
        self.timings = timings
        self.sleep_history = sleep_history
        self.wake_recorder = wake_recorder

    async def _load_history(self, user_id: str) -> List[SleepRecord]:
        if self.sleep_history is None:
            return []
        try:
            return list(await self.sleep_history.list_recent_sleep_records(user_id, self.timings.smart_history_days))
        except Exception as e:
            logger.warning(f"Could not load sleep history for {user_id}, using default cycles: {e}")
            return []

    async def resolve_wake_time(self, context: WakeContext) -> datetime:
        records = await self._load_history(context.user_id)
        cycles = analyze_sleep_pattern(
            records,
            context.target_time,
            bedtime=self.timings.smart_default_bedtime,
            window_min=self.timings.smart_search_window_min,
            cycle_min=self.timings.smart_cycle_min
        )
        return find_optimal_wake_time(context.target_time, cycles, self.timings.smart_search_window_min)

    async def _record_wake(self, user_id: str, wake_time: datetime) -> None:
        logger.info(f"User {user_id} woken at {wake_time:%H:%M:%S}")
        if self.wake_recorder is None:
            return
        try:
            await self.wake_recorder.record_wake_time(user_id, wake_time)
        except Exception as e:
            logger.warning(f"Failed to record wake time for {user_id}: {e}")

    async def execute(self, context: WakeContext) -> None:
        log_algorithm_start(logger, self.name, context.sound_id, context.target_time)

        optimal = await self.resolve_wake_time(context)
        logger.info(f"Optimal wake time {optimal:%H:%M:%S} for target {context.target_time:%H:%M:%S}")

        wait_s = (optimal - context.clock()).total_seconds()
        if wait_s > 0:
            logger.info(f"Waiting {int(wait_s)}s until optimal wake time")
            if not await context.cancel_token.sleep(wait_s):
                log_algorithm_end(logger, self.name, completed=False)
                return

        classic = ClassicWakeAlgorithm(self.player, self.timings)
        await classic.execute(replace(context, target_time=optimal, on_complete=None))
        if context.cancelled:
            log_algorithm_end(logger, self.name, completed=False)
            return

        await self._record_wake(context.user_id, optimal)
        context.complete()
        log_algorithm_end(logger, self.name)


_ALGORITHMS = {
    WakeMethod.CLASSIC: ClassicWakeAlgorithm,
    WakeMethod.GENTLE: GentleWakeAlgorithm,
    WakeMethod.NATURAL: NaturalWakeAlgorithm,
    WakeMethod.SMART: SmartWakeAlgorithm,
}


def create_algorithm(method: str, player: AudioPlayer, timings: WakeTimings,
                     sleep_history: Optional[SleepHistoryStore] = None,
                     wake_recorder: Optional[WakeTimeRecorder] = None) -> WakeAlgorithm:
    """Build the algorithm for a wake method string; unknown methods get classic"""
    wake_method = WakeMethod.parse(method)
    if wake_method is WakeMethod.SMART:
        return SmartWakeAlgorithm(player, timings, sleep_history, wake_recorder)
    return _ALGORITHMS[wake_method](player, timings)


def get_algorithm_info(method: str) -> AlgorithmInfo:
    algorithm_cls = _ALGORITHMS[WakeMethod.parse(method)]
    return AlgorithmInfo(name=algorithm_cls.name, description=algorithm_cls.description)


def get_algorithm_description(method: str) -> str:
    return get_algorithm_info(method).description


def get_algorithm_name(method: str) -> str:
    return get_algorithm_info(method).name
