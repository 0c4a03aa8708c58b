"""
Alarm trigger service: periodic alarm matching and wake-run bookkeeping

Construct one service at process start and pass it to whoever needs it.
Wake runs for matched alarms queue on a single lock in front of the
WakeAlgorithmManager, so alarms that fire in the same minute play one after
another instead of cutting each other off.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Protocol, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .algorithms import get_algorithm_description
from .config import WakeTimings
from .logging_utils import get_logger, log_trigger_event, log_error
from .manager import WakeAlgorithmManager
from .models import Alarm, TriggerStatus, WakeMethod
from .player import AudioPlayer
from .stores import AlarmStore

logger = get_logger(__name__)

TEST_USER_ID = "test_user"


class Vibrator(Protocol):
    def vibrate(self, alarm: Alarm) -> None: ...


ProgressSink = Callable[[Dict[str, Any]], None]


class AlarmTriggerService:
    """Matches stored alarms against the clock once per tick and drives wake algorithms"""

    JOB_ID = "alarm_check"

    def __init__(self, alarm_store: AlarmStore, manager: WakeAlgorithmManager, player: AudioPlayer,
                 user_id: str, timings: Optional[WakeTimings] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 progress_sink: Optional[ProgressSink] = None,
                 vibrator: Optional[Vibrator] = None):
        self.alarm_store = alarm_store
        self.manager = manager
        self.player = player
        self.user_id = user_id
        self.timings = timings or WakeTimings()
        self.clock = clock
        self.progress_sink = progress_sink
        self.vibrator = vibrator

        self._triggers: Dict[str, TriggerStatus] = {}
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._wake_lock = asyncio.Lock()
        self._running_alarm_id: Optional[str] = None
        self._tasks: Set[asyncio.Task] = set()

    # Lifecycle

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        """Arm the recurring tick and run one check immediately. Needs a running event loop."""
        self.stop()
        logger.info(f"Starting alarm trigger service (tick every {self.timings.tick_period_s:.0f}s)")

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.check_alarms,
            trigger=IntervalTrigger(seconds=self.timings.tick_period_s),
            id=self.JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self._scheduler.start()
        self._spawn(self.check_alarms())

    def stop(self) -> None:
        """Disarm the tick. Running wake algorithms are not affected."""
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Alarm trigger service stopped")

    async def join(self) -> None:
        """Wait for all in-flight wake runs to finish"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # Tick

    async def check_alarms(self) -> List[str]:
        """
        One tick: trigger every active alarm matching the current minute and weekday.

        Alarms already in the trigger map are skipped. Errors are logged and
        never propagate, so a bad tick does not stop later ones.

        Returns:
            Ids of the alarms triggered by this tick
        """
        triggered = []
        try:
            now = self.clock()
            current_time_str = now.strftime("%H:%M")
            current_day = (now.weekday() + 1) % 7  # 0 = Sunday
            logger.debug(f"Checking alarms at {current_time_str} (day {current_day})")

            alarms = await self.alarm_store.list_active_alarms(self.user_id)
            for alarm in alarms:
                if not alarm.is_active or alarm.id in self._triggers:
                    continue
                if alarm.matches(current_time_str, current_day):
                    logger.info(f"Alarm matched: {alarm.label or alarm.id} ({alarm.time})")
                    status = self._register(alarm)
                    self._spawn(self._run_wake(alarm, status))
                    triggered.append(alarm.id)
        except Exception as e:
            logger.error(f"Alarm check failed: {e}", exc_info=True)
        return triggered

    # Triggering

    def _register(self, alarm: Alarm) -> TriggerStatus:
        status = TriggerStatus(
            alarm_id=alarm.id,
            algorithm=WakeMethod.parse(alarm.wake_method).value,
            trigger_time=self.clock(),
            progress=0
        )
        self._triggers[alarm.id] = status
        log_trigger_event(logger, alarm.id, "triggered", algorithm=status.algorithm)
        return status

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _target_time(self, alarm: Alarm, status: TriggerStatus) -> datetime:
        """Alarm time on the day the alarm fired, not the day its run left the queue"""
        anchor = status.trigger_time or self.clock()
        return anchor.replace(hour=alarm.hour, minute=alarm.minute, second=0, microsecond=0)

    def _vibrate(self, alarm: Alarm) -> None:
        if not alarm.vibrate or self.vibrator is None:
            return
        try:
            self.vibrator.vibrate(alarm)
        except Exception as e:
            logger.warning(f"Vibration failed for alarm {alarm.id}: {e}")

    def _publish(self, status: TriggerStatus) -> None:
        if self.progress_sink is None:
            return
        payload = {"alarmId": status.alarm_id, "progress": status.progress, "algorithm": status.algorithm}
        asyncio.get_running_loop().call_soon(self._deliver, payload)

    def _deliver(self, payload: Dict[str, Any]) -> None:
        try:
            self.progress_sink(payload)
        except Exception as e:
            logger.warning(f"Progress sink failed: {e}")

    def _on_progress(self, status: TriggerStatus, progress: int) -> None:
        status.progress = progress
        logger.debug(f"Alarm {status.alarm_id} progress {progress}%")
        self._publish(status)

    async def _run_wake(self, alarm: Alarm, status: TriggerStatus) -> None:
        async with self._wake_lock:
            if self._triggers.get(alarm.id) is not status:
                log_trigger_event(logger, alarm.id, "skipped (stopped while queued)")
                return

            self._running_alarm_id = alarm.id
            try:
                self._vibrate(alarm)
                completed = await self.manager.execute(
                    alarm.wake_method,
                    self._target_time(alarm, status),
                    alarm.sound,
                    alarm.user_id or self.user_id,
                    on_progress=lambda progress: self._on_progress(status, progress)
                )
                if completed:
                    status.progress = 100
                    self._publish(status)
                    log_trigger_event(logger, alarm.id, "completed")
                else:
                    log_trigger_event(logger, alarm.id, "cancelled")
            except Exception as e:
                status.error = str(e) or type(e).__name__
                log_error(logger, alarm.id, e, {"algorithm": status.algorithm})
            finally:
                self._running_alarm_id = None

    async def trigger_alarm(self, alarm: Alarm) -> TriggerStatus:
        """Trigger an alarm now and wait for its wake run to finish"""
        status = self._register(alarm)
        await self._run_wake(alarm, status)
        return status

    async def trigger_alarm_by_id(self, alarm_id: str) -> bool:
        """Manually trigger one of the user's active alarms, bypassing time matching"""
        try:
            alarms = await self.alarm_store.list_active_alarms(self.user_id)
        except Exception as e:
            logger.error(f"Manual trigger failed for {alarm_id}: {e}")
            return False

        alarm = next((a for a in alarms if a.id == alarm_id), None)
        if alarm is None:
            logger.error(f"Alarm not found: {alarm_id}")
            return False

        status = self._register(alarm)
        self._spawn(self._run_wake(alarm, status))
        return True

    async def _run_test(self, method: str, target_time: datetime, sound_id: str) -> None:
        try:
            await self.manager.execute(method, target_time, sound_id, TEST_USER_ID)
        except Exception as e:
            log_error(logger, "test", e, {"algorithm": method, "sound_id": sound_id})

    def test_algorithm(self, method: str, sound_id: str = "default", minutes_from_now: float = 1) -> bool:
        """
        Run a wake algorithm targeting minutes_from_now, independent of the tick.

        Preempts whatever the manager is running. Must be called from the event loop.
        """
        try:
            target_time = self.clock() + timedelta(minutes=minutes_from_now)
            logger.info(f"Testing {method} algorithm with {sound_id} at {target_time:%H:%M:%S}")
            self._spawn(self._run_test(method, target_time, sound_id))
            return True
        except Exception as e:
            logger.error(f"Could not start algorithm test: {e}")
            return False

    # Stopping

    def stop_alarm(self, alarm_id: str) -> bool:
        """
        Stop and forget a triggered alarm.

        Returns:
            True if the alarm was in the trigger map
        """
        if alarm_id not in self._triggers:
            return False

        if self._running_alarm_id in (None, alarm_id):
            self.manager.stop()
            self.player.stop_all()
        del self._triggers[alarm_id]
        log_trigger_event(logger, alarm_id, "stopped")
        return True

    def clear_all_triggers(self) -> None:
        """Stop the active algorithm, silence audio and forget every trigger"""
        self._triggers.clear()
        self.manager.stop()
        self.player.stop_all()
        logger.info("Cleared all alarm triggers")

    # Inspection

    def get_active_triggers(self) -> List[TriggerStatus]:
        return list(self._triggers.values())

    def get_alarm_trigger_status(self, alarm_id: str) -> Optional[TriggerStatus]:
        return self._triggers.get(alarm_id)

    def get_algorithm_description(self, method: str) -> str:
        return get_algorithm_description(method)
