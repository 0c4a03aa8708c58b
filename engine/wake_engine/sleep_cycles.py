"""
Sleep-cycle synthesis and wake-time search for the smart wake algorithm
"""

import logging
from datetime import datetime, time, timedelta
from statistics import mean
from typing import List, Optional, Sequence

from .models import SleepCycle, SleepRecord, SleepStage

logger = logging.getLogger(__name__)

# Stage assigned to the n-th cycle of a night, repeating
STAGE_PATTERN = (SleepStage.LIGHT, SleepStage.DEEP, SleepStage.REM, SleepStage.LIGHT)


def stage_for_cycle(index: int) -> SleepStage:
    return STAGE_PATTERN[index % len(STAGE_PATTERN)]


def sleep_start_before(target_time: datetime, bedtime: str) -> datetime:
    """Latest occurrence of bedtime (HH:MM) at or before target_time"""
    bed = datetime.strptime(bedtime, "%H:%M").time()
    candidate = datetime.combine(target_time.date(), time(bed.hour, bed.minute), tzinfo=target_time.tzinfo)
    if candidate > target_time:
        candidate -= timedelta(days=1)
    return candidate


def build_cycles(sleep_start: datetime, until: datetime, cycle_min: int = 90) -> List[SleepCycle]:
    """Back-to-back cycles from sleep_start whose start is not later than until"""
    cycles = []
    index = 0
    start = sleep_start
    while start <= until:
        cycles.append(SleepCycle(stage=stage_for_cycle(index), start_time=start, duration=cycle_min))
        index += 1
        start = sleep_start + timedelta(minutes=index * cycle_min)
    return cycles


def default_cycles(target_time: datetime, bedtime: str = "23:00", window_min: float = 30,
                   cycle_min: int = 90) -> List[SleepCycle]:
    """Template night starting at bedtime, used when there is no sleep history"""
    start = sleep_start_before(target_time, bedtime)
    return build_cycles(start, target_time + timedelta(minutes=window_min), cycle_min)


def cycles_from_history(records: Sequence[SleepRecord], target_time: datetime, window_min: float = 30,
                        cycle_min: int = 90) -> List[SleepCycle]:
    """Cycles for a night of average historical length ending at target_time"""
    avg_hours = mean(record.actual_hours for record in records)
    start = target_time - timedelta(hours=avg_hours)
    logger.debug(f"Average sleep {avg_hours:.2f}h over {len(records)} nights, assumed start {start:%H:%M}")
    return build_cycles(start, target_time + timedelta(minutes=window_min), cycle_min)


def analyze_sleep_pattern(records: Sequence[SleepRecord], target_time: datetime, bedtime: str = "23:00",
                          window_min: float = 30, cycle_min: int = 90) -> List[SleepCycle]:
    if not records:
        return default_cycles(target_time, bedtime, window_min, cycle_min)
    return cycles_from_history(records, target_time, window_min, cycle_min)


def _closest_start(cycles: Sequence[SleepCycle], stage: SleepStage, target_time: datetime,
                   window: timedelta) -> Optional[datetime]:
    candidates = [
        cycle.start_time for cycle in cycles
        if cycle.stage == stage and target_time - window <= cycle.start_time <= target_time + window
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda start: abs(start - target_time))


def find_optimal_wake_time(target_time: datetime, cycles: Sequence[SleepCycle],
                           window_min: float = 30) -> datetime:
    """
    Pick the wake time nearest target_time within +/- window_min.

    Light-stage cycle starts are preferred, then REM starts; if neither falls
    inside the window the target time is returned unchanged.
    """
    if not cycles:
        return target_time

    window = timedelta(minutes=window_min)
    for stage in (SleepStage.LIGHT, SleepStage.REM):
        best = _closest_start(cycles, stage, target_time, window)
        if best is not None:
            return best
    return target_time
