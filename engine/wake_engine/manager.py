"""
Single-slot manager for the active wake algorithm
"""

from datetime import datetime
from typing import Callable, Optional

from .algorithms import CancelToken, WakeAlgorithm, WakeContext, create_algorithm
from .config import WakeTimings
from .logging_utils import get_logger
from .models import AlgorithmInfo
from .player import AudioPlayer
from .stores import SleepHistoryStore, WakeTimeRecorder

logger = get_logger(__name__)


class WakeAlgorithmManager:
    """Runs at most one wake algorithm at a time; starting a new one cancels the old one"""

    def __init__(self, player: AudioPlayer, timings: Optional[WakeTimings] = None,
                 sleep_history: Optional[SleepHistoryStore] = None,
                 wake_recorder: Optional[WakeTimeRecorder] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 token_factory: Callable[[], CancelToken] = CancelToken):
        self.player = player
        self.timings = timings or WakeTimings()
        self.sleep_history = sleep_history
        self.wake_recorder = wake_recorder
        self.clock = clock
        self._token_factory = token_factory
        self._current: Optional[WakeAlgorithm] = None
        self._token: Optional[CancelToken] = None

    @property
    def is_active(self) -> bool:
        return self._current is not None

    async def execute(self, method: str, target_time: datetime, sound_id: str, user_id: str,
                      on_progress: Optional[Callable[[int], None]] = None) -> bool:
        """
        Cancel any running algorithm and run the one selected by method.

        Args:
            method: Wake method name; unknown values run classic
            target_time: Alarm target time
            sound_id: Sound identifier
            user_id: User the alarm belongs to
            on_progress: Optional progress callback (0-100)

        Returns:
            True if the run completed, False if it was cancelled or preempted
        """
        self.stop()

        token = self._token_factory()
        algorithm = create_algorithm(method, self.player, self.timings,
                                     self.sleep_history, self.wake_recorder)
        self._current = algorithm
        self._token = token
        logger.info(f"Executing {algorithm.name} algorithm (requested: {method})")

        context = WakeContext(
            target_time=target_time,
            sound_id=sound_id,
            user_id=user_id,
            cancel_token=token,
            on_progress=on_progress,
            on_complete=lambda: logger.info(f"{algorithm.name} wake completed"),
            clock=self.clock
        )
        try:
            await algorithm.execute(context)
        finally:
            if self._token is token:
                self._current = None
                self._token = None
        return not token.cancelled

    def stop(self) -> None:
        """Cancel the active algorithm; no-op when nothing is running"""
        if self._current is None:
            return
        logger.info(f"Stopping {self._current.name} algorithm")
        self._token.cancel()
        self._current = None
        self._token = None

    def get_current_info(self) -> Optional[AlgorithmInfo]:
        if self._current is None:
            return None
        return AlgorithmInfo(name=self._current.name, description=self._current.description)
