"""
Logging utilities for structured logging
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional


_RESERVED_ATTRS = frozenset((
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName', 'taskName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'message', 'asctime'
))


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields from record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, ensure_ascii=False, default=str)


class WakeEngineFilter(logging.Filter):
    """Filter that groups alarm and algorithm context on the record"""

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter log records"""
        # Drop APScheduler's per-tick chatter below WARNING
        if record.name.startswith("apscheduler") and record.levelno < logging.WARNING:
            return False

        if hasattr(record, 'alarm_id'):
            record.alarm_context = {
                "alarm_id": record.alarm_id
            }

        if hasattr(record, 'algorithm'):
            record.algorithm_context = {
                "algorithm": record.algorithm
            }

        return True


TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ('apscheduler', 'requests', 'urllib3')


def _attach(root_logger: logging.Logger, handler: logging.Handler, formatter: logging.Formatter) -> None:
    handler.setFormatter(formatter)
    handler.addFilter(WakeEngineFilter())
    root_logger.addHandler(handler)


def setup_logging(log_level: str = "INFO", log_format: str = "json",
                  log_file: Optional[str] = None) -> None:
    """
    Configure the root logger for the wake engine.

    Args:
        log_level: Logging level name
        log_format: "json" for structured records, anything else for plain text
        log_file: Optional file that receives the same records as stdout
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    if log_format.lower() == "json":
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    _attach(root_logger, logging.StreamHandler(sys.stdout), formatter)
    if log_file:
        _attach(root_logger, logging.FileHandler(log_file), formatter)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_algorithm_start(logger: logging.Logger, algorithm: str, sound_id: str,
                        target_time: datetime, **kwargs) -> None:
    """
    Log the start of a wake algorithm run.

    Args:
        logger: Logger instance
        algorithm: Algorithm name
        sound_id: Sound identifier being played
        target_time: Alarm target time
        **kwargs: Additional context
    """
    logger.info(
        f"Starting {algorithm} wake for {target_time.strftime('%H:%M:%S')} with sound {sound_id}",
        extra={
            "algorithm": algorithm,
            "sound_id": sound_id,
            "phase_action": "start",
            **kwargs
        }
    )


def log_algorithm_end(logger: logging.Logger, algorithm: str,
                      completed: bool = True, **kwargs) -> None:
    """
    Log the end of a wake algorithm run.

    Args:
        logger: Logger instance
        algorithm: Algorithm name
        completed: False when the run was cancelled
        **kwargs: Additional context
    """
    logger.info(
        f"Finished {algorithm} wake (completed: {completed})",
        extra={
            "algorithm": algorithm,
            "phase_action": "end",
            "completed": completed,
            **kwargs
        }
    )


def log_trigger_event(logger: logging.Logger, alarm_id: str, event_type: str,
                      **kwargs) -> None:
    """
    Log alarm trigger lifecycle events.

    Args:
        logger: Logger instance
        alarm_id: Alarm identifier
        event_type: Type of trigger event (triggered, completed, stopped, ...)
        **kwargs: Additional context
    """
    logger.info(
        f"Alarm {alarm_id}: {event_type}",
        extra={
            "alarm_id": alarm_id,
            "event_type": "trigger",
            "trigger_action": event_type,
            **kwargs
        }
    )


def log_playback_event(logger: logging.Logger, sound_id: str, event_type: str,
                       **kwargs) -> None:
    """
    Log playback events.

    Args:
        logger: Logger instance
        sound_id: Sound identifier
        event_type: Type of playback event
        **kwargs: Additional context
    """
    logger.debug(
        f"Playback event for {sound_id}: {event_type}",
        extra={
            "sound_id": sound_id,
            "event_type": "playback",
            "playback_action": event_type,
            **kwargs
        }
    )


def log_error(logger: logging.Logger, alarm_id: str, error: BaseException,
              context: Optional[Dict[str, Any]] = None) -> None:
    """
    Log errors with context.

    Args:
        logger: Logger instance
        alarm_id: Alarm identifier
        error: Exception that occurred
        context: Additional context
    """
    logger.error(
        f"Error occurred: {str(error)}",
        extra={
            "alarm_id": alarm_id,
            "event_type": "error",
            "error_type": type(error).__name__,
            "error_message": str(error),
            "context": context or {}
        },
        exc_info=error
    )
