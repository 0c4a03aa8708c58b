"""
Configuration models for the wake engine
"""

from pydantic import BaseModel, Field
from typing import Optional
import os
import logging
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

# Use BASE_DIR for all file paths
BASE_DIR = os.getenv("BASE_DIR", "/data/wake-engine")
DATA_DIR = os.path.join(BASE_DIR, "data")


class WakeTimings(BaseModel):
    """Timing configuration for the scheduler and wake algorithms"""
    tick_period_s: float = Field(default=60.0, gt=0, le=3600, description="Alarm check period")
    classic_repeat_s: float = Field(default=300.0, gt=0, le=3600, description="Classic re-trigger interval")
    classic_max_s: float = Field(default=3600.0, gt=0, le=4 * 3600, description="Classic hard ceiling")
    gentle_window_min: float = Field(default=15.0, ge=0, le=120, description="Light-sleep window around target time")
    gentle_start_volume: int = Field(default=10, ge=0, le=100, description="Gentle ramp start volume")
    gentle_step_volume: int = Field(default=5, ge=1, le=100, description="Gentle ramp volume increment")
    gentle_step_s: float = Field(default=2.0, gt=0, le=60, description="Gentle ramp step interval")
    gentle_total_s: float = Field(default=45.0, gt=0, le=600, description="Gentle ramp maximum duration")
    natural_auto_stop_s: float = Field(default=1800.0, gt=0, le=4 * 3600, description="Natural auto-stop after start")
    natural_seasonal_offset_min: int = Field(default=30, ge=0, le=120, description="Natural seasonal offset (logged only)")
    smart_history_days: int = Field(default=7, ge=1, le=60, description="Sleep history window for smart wake")
    smart_search_window_min: float = Field(default=30.0, ge=0, le=180, description="Smart wake search window around target")
    smart_cycle_min: int = Field(default=90, ge=30, le=180, description="Sleep cycle length")
    smart_default_bedtime: str = Field(default="23:00", description="Default sleep start when no history exists")

    @classmethod
    def from_env(cls) -> "WakeTimings":
        """Create timings from environment variables, falling back to defaults"""
        overrides = {}
        env_map = {
            "tick_period_s": "WAKE_TICK_PERIOD_S",
            "classic_repeat_s": "WAKE_CLASSIC_REPEAT_S",
            "classic_max_s": "WAKE_CLASSIC_MAX_S",
            "gentle_step_s": "WAKE_GENTLE_STEP_S",
            "natural_auto_stop_s": "WAKE_NATURAL_AUTO_STOP_S",
        }
        for field_name, env_name in env_map.items():
            value = os.getenv(env_name)
            if value:
                overrides[field_name] = float(value)
        return cls(**overrides)


class AudioSettings(BaseModel):
    """Sound resolution and playback configuration"""
    assets_dir: str = Field(default="musics", description="Directory holding the enumerated local sound assets")
    remote_base_url: Optional[str] = Field(None, description="Temporary-URL lookup endpoint for remote sounds")
    remote_file_prefix: str = Field(default="cloud://wake-engine/musics", description="File id prefix for remote sounds")
    remote_timeout_s: float = Field(default=3.0, ge=0.5, le=30.0, description="Remote lookup request timeout")
    remote_max_attempts: int = Field(default=2, ge=1, le=5, description="Remote lookup attempts before falling back")
    remote_retry_wait_s: float = Field(default=0.5, ge=0, le=10.0, description="Wait increment between remote attempts")
    play_start_timeout_s: float = Field(default=1.0, ge=0.01, le=10.0, description="Wait for the engine to report playback start")
    cache_dir: str = Field(default_factory=lambda: os.path.join(DATA_DIR, "sound-cache"), description="Download cache for remote sounds")

    @classmethod
    def from_env(cls) -> "AudioSettings":
        return cls(
            assets_dir=os.getenv("WAKE_ASSETS_DIR", "musics"),
            remote_base_url=os.getenv("WAKE_REMOTE_SOUND_URL") or None,
            remote_file_prefix=os.getenv("WAKE_REMOTE_FILE_PREFIX", "cloud://wake-engine/musics")
        )


class StoreSettings(BaseModel):
    """File locations for the JSON-backed collaborator stores"""
    alarms_file: str = Field(default_factory=lambda: os.path.join(DATA_DIR, "alarms.json"), description="Alarm records")
    sleep_records_file: str = Field(default_factory=lambda: os.path.join(DATA_DIR, "sleep_records.json"), description="Sleep history and wake records")

    @classmethod
    def from_env(cls) -> "StoreSettings":
        return cls(
            alarms_file=os.getenv("WAKE_ALARMS_FILE", os.path.join(DATA_DIR, "alarms.json")),
            sleep_records_file=os.getenv("WAKE_SLEEP_RECORDS_FILE", os.path.join(DATA_DIR, "sleep_records.json"))
        )


class WakeEngineConfig(BaseModel):
    """Main configuration for the wake engine"""
    user_id: str = Field(default_factory=lambda: os.getenv("WAKE_USER_ID", "local_user"), description="User whose alarms are polled")
    timings: WakeTimings = Field(default_factory=WakeTimings, description="Timing configuration")
    audio: AudioSettings = Field(default_factory=AudioSettings, description="Audio configuration")
    stores: StoreSettings = Field(default_factory=StoreSettings, description="Store configuration")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json|text)")

    @classmethod
    def from_env(cls) -> "WakeEngineConfig":
        """Create configuration from environment variables"""
        return cls(
            user_id=os.getenv("WAKE_USER_ID", "local_user"),
            timings=WakeTimings.from_env(),
            audio=AudioSettings.from_env(),
            stores=StoreSettings.from_env(),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json")
        )
