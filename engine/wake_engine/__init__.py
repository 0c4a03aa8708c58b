"""
Wake Engine

Poll stored alarms and run time-extended wake algorithms when they fire.
"""

__version__ = "1.0.0"
__author__ = "Wake Engine"

from .algorithms import CancelToken, WakeContext, create_algorithm, get_algorithm_description, get_algorithm_name
from .config import WakeEngineConfig, WakeTimings, AudioSettings
from .manager import WakeAlgorithmManager
from .models import Alarm, TriggerStatus, WakeMethod, WakeEngineError
from .player import AudioPlayer
from .service import AlarmTriggerService
from .sounds import SoundResolver, SoundResolutionError

__all__ = [
    "AlarmTriggerService",
    "WakeAlgorithmManager",
    "AudioPlayer",
    "SoundResolver",
    "SoundResolutionError",
    "CancelToken",
    "WakeContext",
    "create_algorithm",
    "get_algorithm_description",
    "get_algorithm_name",
    "WakeEngineConfig",
    "WakeTimings",
    "AudioSettings",
    "Alarm",
    "TriggerStatus",
    "WakeMethod",
    "WakeEngineError"
]
