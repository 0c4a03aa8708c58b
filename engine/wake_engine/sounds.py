"""
Sound catalogue and resolution of sound identifiers to playable sources
"""

import asyncio
import logging
import os
import re
import threading
from typing import Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from tenacity import Retrying, stop_after_attempt, wait_incrementing, retry_if_exception_type
from urllib3.util.retry import Retry

from .config import AudioSettings
from .models import WakeEngineError

logger = logging.getLogger(__name__)

DEFAULT_SOUND = "default"
CUSTOM_PREFIX = "custom_"

SYSTEM_SOUNDS: Dict[str, str] = {
    "default": "alarm-default.mp3",
    "birds": "birds.mp3",
    "waves": "waves.mp3",
    "piano": "piano.mp3",
    "chimes": "chimes.mp3",
    "birds_gentle": "birds-gentle.mp3",
    "birds_morning": "birds-morning.mp3",
    "birds_chorus": "birds-chorus.mp3",
    "birds_full": "birds-full.mp3",
    "waves_distant": "waves-distant.mp3",
    "waves_gentle": "waves-gentle.mp3",
    "waves_medium": "waves-medium.mp3",
    "waves_full": "waves-full.mp3",
    "nature_morning": "nature-morning.mp3",
}

SOUND_DISPLAY_NAMES: Dict[str, str] = {
    "default": "Default alarm",
    "birds": "Birdsong",
    "waves": "Ocean waves",
    "piano": "Piano",
    "chimes": "Wind chimes",
    "birds_gentle": "Distant birds",
    "birds_morning": "Morning birds",
    "birds_chorus": "Bird chorus",
    "birds_full": "Full birdsong",
    "waves_distant": "Distant waves",
    "waves_gentle": "Gentle waves",
    "waves_medium": "Medium waves",
    "waves_full": "Full waves",
    "nature_morning": "Morning nature",
}

_AUDIO_EXTENSION = re.compile(r"\.(mp3|wav|aac|ogg|m4a)$", re.IGNORECASE)


class SoundResolutionError(WakeEngineError):
    """Raised when a sound id cannot be mapped to a playable source"""


def is_supported(sound_id: str) -> bool:
    """Check if a sound id is an enumerated sound or a user upload"""
    return sound_id in SYSTEM_SOUNDS or sound_id.startswith(CUSTOM_PREFIX)


def supported_sounds() -> List[str]:
    return list(SYSTEM_SOUNDS)


def display_name(sound_id: str) -> str:
    return SOUND_DISPLAY_NAMES.get(sound_id, sound_id)


def _http_session() -> requests.Session:
    session = requests.Session()
    retry_cfg = Retry(
        total=2,
        backoff_factor=0.2,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "POST"),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(pool_connections=4, pool_maxsize=8, max_retries=retry_cfg)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({"User-Agent": "WakeEngine-Sounds/1.0"})
    return session


class TempUrlClient:
    """Looks up temporary download URLs for remotely stored sound files"""

    def __init__(self, base_url: str, timeout_s: float = 3.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._session = session
        self._session_lock = threading.Lock()

    def _get_session(self) -> requests.Session:
        if self._session is None:
            with self._session_lock:
                if self._session is None:
                    self._session = _http_session()
        return self._session

    def get_temp_url(self, file_id: str) -> str:
        """
        Request a temporary URL for a stored file.

        Args:
            file_id: Remote file identifier

        Returns:
            An http(s) URL

        Raises:
            SoundResolutionError: If the service returned no usable URL
            requests.RequestException: On transport failures
        """
        response = self._get_session().post(
            f"{self.base_url}/temp-url",
            json={"fileList": [file_id]},
            timeout=self.timeout_s
        )
        response.raise_for_status()
        file_list = response.json().get("fileList") or []
        temp_url = (file_list[0].get("tempFileURL") or "").strip() if file_list else ""

        if not temp_url:
            raise SoundResolutionError(f"Empty temporary URL for {file_id}")
        if temp_url.startswith("cloud://"):
            raise SoundResolutionError(f"Lookup returned an unresolved file id: {temp_url}")
        if not temp_url.startswith(("http://", "https://")):
            raise SoundResolutionError(f"Unsupported URL scheme: {temp_url}")
        if not _AUDIO_EXTENSION.search(temp_url.split("?", 1)[0]):
            logger.warning(f"Temporary URL may not be an audio file: {temp_url}")

        return temp_url


class SoundResolver:
    """Maps sound identifiers to local asset paths or remote URLs, with fallback to the default sound"""

    def __init__(self, settings: AudioSettings, remote: Optional[TempUrlClient] = None):
        self.settings = settings
        self.remote = remote
        self._cache: Dict[str, str] = {}

    @classmethod
    def from_settings(cls, settings: AudioSettings) -> "SoundResolver":
        remote = None
        if settings.remote_base_url:
            remote = TempUrlClient(settings.remote_base_url, timeout_s=settings.remote_timeout_s)
        return cls(settings, remote)

    def local_path(self, sound_id: str) -> Optional[str]:
        """Path of an enumerated local asset, or None if sound_id is not enumerated"""
        file_name = SYSTEM_SOUNDS.get(sound_id)
        if file_name is None:
            return None
        return os.path.join(self.settings.assets_dir, file_name)

    def default_path(self) -> str:
        return self.local_path(DEFAULT_SOUND)

    def remote_file_id(self, sound_id: str) -> Optional[str]:
        """Remote file id for user uploads; enumerated sounds are served locally"""
        if not sound_id.startswith(CUSTOM_PREFIX):
            return None
        file_name = sound_id[len(CUSTOM_PREFIX):]
        if not file_name:
            return None
        return f"{self.settings.remote_file_prefix.rstrip('/')}/user_uploads/{file_name}"

    def _lookup_remote(self, file_id: str) -> str:
        retrying = Retrying(
            stop=stop_after_attempt(self.settings.remote_max_attempts),
            wait=wait_incrementing(start=self.settings.remote_retry_wait_s,
                                   increment=self.settings.remote_retry_wait_s),
            retry=retry_if_exception_type((requests.RequestException, SoundResolutionError, ValueError)),
            reraise=True
        )
        for attempt in retrying:
            with attempt:
                logger.debug(f"Remote lookup attempt {attempt.retry_state.attempt_number} for {file_id}")
                return self.remote.get_temp_url(file_id)

    async def resolve(self, sound_id: str) -> str:
        """
        Resolve a sound id to a playable source. Never raises.

        Args:
            sound_id: Enumerated key or custom_<file> upload key

        Returns:
            Local asset path or remote URL
        """
        cached = self._cache.get(sound_id)
        if cached:
            return cached

        source = self.local_path(sound_id)
        if source is None:
            source = await self._resolve_remote(sound_id)

        self._cache[sound_id] = source
        return source

    async def _resolve_remote(self, sound_id: str) -> str:
        file_id = self.remote_file_id(sound_id)
        if file_id is None or self.remote is None:
            logger.warning(f"Sound {sound_id} is not available locally or remotely, using default")
            return self.default_path()

        try:
            url = await asyncio.to_thread(self._lookup_remote, file_id)
            logger.info(f"Resolved remote sound {sound_id} -> {url[:50]}")
            return url
        except Exception as e:
            logger.warning(f"Remote lookup failed for {sound_id} after "
                           f"{self.settings.remote_max_attempts} attempts, using default: {e}")
            return self.default_path()
