"""
pygame.mixer backed playback engine
"""

import hashlib
import logging
import os
import threading
from typing import Any, Callable, Optional

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pygame  # noqa: E402
import requests  # noqa: E402

logger = logging.getLogger(__name__)

_MIXER_LOCK = threading.Lock()


def _ensure_mixer() -> None:
    with _MIXER_LOCK:
        if not pygame.mixer.get_init():
            pygame.mixer.init()


class PygameHandle:
    """Playback handle over a pygame Sound, loaded lazily from src"""

    def __init__(self, cache_dir: str, download_timeout_s: float = 10.0):
        self.cache_dir = cache_dir
        self.download_timeout_s = download_timeout_s
        self._src: Optional[str] = None
        self._sound: Optional[pygame.mixer.Sound] = None
        self._channel: Optional[pygame.mixer.Channel] = None
        self._volume = 1.0
        self._on_play: Optional[Callable[[], None]] = None
        self._on_error: Optional[Callable[[Any], None]] = None

    @property
    def src(self) -> Optional[str]:
        return self._src

    @src.setter
    def src(self, value: Optional[str]) -> None:
        if value != self._src:
            self.stop()
            self._src = value
            self._sound = None

    @property
    def volume(self) -> float:
        return self._volume

    @volume.setter
    def volume(self, value: float) -> None:
        self._volume = max(0.0, min(1.0, value))
        if self._sound is not None:
            self._sound.set_volume(self._volume)

    @property
    def paused(self) -> bool:
        return not (self._channel is not None and self._channel.get_busy())

    def on_play(self, callback: Callable[[], None]) -> None:
        self._on_play = callback

    def on_error(self, callback: Callable[[Any], None]) -> None:
        self._on_error = callback

    def seek(self, position_s: float) -> None:
        # pygame Sounds always start from zero
        if position_s:
            logger.debug(f"Ignoring seek to {position_s}s for {self._src}")

    def _local_file(self) -> str:
        if not self._src.startswith(("http://", "https://")):
            return self._src
        os.makedirs(self.cache_dir, exist_ok=True)
        digest = hashlib.sha1(self._src.split("?", 1)[0].encode("utf-8")).hexdigest()
        extension = os.path.splitext(self._src.split("?", 1)[0])[1] or ".mp3"
        path = os.path.join(self.cache_dir, digest + extension)
        if not os.path.exists(path):
            response = requests.get(self._src, timeout=self.download_timeout_s)
            response.raise_for_status()
            with open(path, "wb") as f:
                f.write(response.content)
        return path

    def play(self) -> None:
        try:
            _ensure_mixer()
            if self._sound is None:
                self._sound = pygame.mixer.Sound(self._local_file())
            self._sound.set_volume(self._volume)
            self._channel = self._sound.play()
            if self._channel is None:
                raise RuntimeError("No free mixer channel")
        except (pygame.error, requests.RequestException, OSError, RuntimeError) as e:
            if self._on_error:
                self._on_error(e)
            return
        if self._on_play:
            self._on_play()

    def stop(self) -> None:
        if self._sound is not None:
            self._sound.stop()
        self._channel = None


class PygamePlaybackEngine:
    """Creates pygame handles; remote sources are cached under cache_dir"""

    def __init__(self, cache_dir: str):
        self.cache_dir = cache_dir

    def create_handle(self) -> PygameHandle:
        return PygameHandle(self.cache_dir)
