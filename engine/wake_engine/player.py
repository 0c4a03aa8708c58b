"""
Audio player that keeps one playback handle per sound identifier
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Protocol

from .logging_utils import get_logger, log_playback_event
from .sounds import SoundResolver

logger = get_logger(__name__)


class PlaybackHandle(Protocol):
    """Platform playback primitive for one sound source"""
    src: Optional[str]
    volume: float  # 0.0 - 1.0
    paused: bool

    def seek(self, position_s: float) -> None: ...

    def play(self) -> None:
        """May block while the source loads; AudioPlayer calls it from a worker thread"""

    def stop(self) -> None: ...

    def on_play(self, callback: Callable[[], None]) -> None: ...

    def on_error(self, callback: Callable[[Any], None]) -> None: ...


class PlaybackEngine(Protocol):
    def create_handle(self) -> PlaybackHandle: ...


def clamp_volume(volume: float) -> int:
    return int(max(0, min(100, round(volume))))


class AudioPlayer:
    """Plays, restarts and stops sounds through a PlaybackEngine"""

    def __init__(self, engine: PlaybackEngine, resolver: SoundResolver,
                 play_start_timeout_s: float = 1.0):
        self.engine = engine
        self.resolver = resolver
        self.play_start_timeout_s = play_start_timeout_s
        self._handles: Dict[str, PlaybackHandle] = {}
        self._volume = 100

    async def _get_handle(self, sound_id: str) -> PlaybackHandle:
        source = await self.resolver.resolve(sound_id)
        handle = self._handles.get(sound_id)
        if handle is None:
            handle = self.engine.create_handle()
            handle.src = source
            self._handles[sound_id] = handle
        elif handle.src != source:
            logger.info(f"Updating source for {sound_id}")
            handle.src = source
        return handle

    async def play(self, sound_id: str, volume: float) -> bool:
        """
        Play a sound from position zero at the given volume.

        A sound that is already playing is stopped and restarted.

        Args:
            sound_id: Sound identifier
            volume: Volume percent, clamped to 0-100

        Returns:
            True if the engine reported that playback started
        """
        percent = clamp_volume(volume)
        loop = asyncio.get_running_loop()
        started = loop.create_future()

        def _settle(result: bool) -> None:
            if not started.done():
                started.set_result(result)

        def _on_play() -> None:
            loop.call_soon_threadsafe(_settle, True)

        def _on_error(err: Any) -> None:
            logger.error(f"Playback error for {sound_id}: {err}")
            loop.call_soon_threadsafe(_settle, False)

        try:
            handle = await self._get_handle(sound_id)
            self._volume = percent
            handle.volume = percent / 100

            if handle.paused is False:
                try:
                    handle.stop()
                except Exception as e:
                    logger.warning(f"Error stopping {sound_id} before restart, continuing: {e}")

            handle.on_play(_on_play)
            handle.on_error(_on_error)
            handle.seek(0)
            await asyncio.to_thread(handle.play)
            log_playback_event(logger, sound_id, "play", volume=percent)
        except Exception as e:
            logger.error(f"Failed to play {sound_id}: {e}")
            return False

        try:
            return await asyncio.wait_for(started, timeout=self.play_start_timeout_s)
        except asyncio.TimeoutError:
            logger.warning(f"No playback start reported for {sound_id} within {self.play_start_timeout_s}s")
            return False

    def stop_all(self) -> None:
        """Stop every held handle. Safe to call when nothing is playing."""
        for sound_id, handle in self._handles.items():
            try:
                handle.stop()
                log_playback_event(logger, sound_id, "stop")
            except Exception as e:
                logger.error(f"Failed to stop {sound_id}: {e}")

    def set_volume(self, volume: float) -> None:
        """Apply a volume percent to all held handles"""
        self._volume = clamp_volume(volume)
        for handle in self._handles.values():
            handle.volume = self._volume / 100

    def get_volume(self) -> int:
        return self._volume

    def active_sounds(self) -> List[str]:
        """Sound ids whose handles are currently playing"""
        return [sound_id for sound_id, handle in self._handles.items() if handle.paused is False]
