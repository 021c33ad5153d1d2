# ABOUTME: Groups normalized readings per entity and computes distribution stats
# ABOUTME: Population std dev, floor-indexed quartiles, reporting frequency, health

import statistics
from datetime import datetime, timedelta
from typing import Dict, List, Sequence

from housewatch.config import DetectionConfig
from housewatch.schemas import EntityStats, NormalizedReading

DAILY_REPORTING_MIN_READINGS = 4
SECONDS_PER_DAY = 24 * 60 * 60


def group_by_entity(
    readings: Sequence[NormalizedReading],
) -> Dict[str, List[NormalizedReading]]:
    """Partition readings by entity_id, keeping first-appearance order"""
    groups: Dict[str, List[NormalizedReading]] = {}
    for reading in readings:
        groups.setdefault(reading.entity_id, []).append(reading)
    return groups


def check_daily_reporting(
    readings: Sequence[NormalizedReading], reference_time: datetime
) -> bool:
    """At least 4 readings in the 24 hours before reference_time"""
    window_start = reference_time - timedelta(days=1)
    recent = [r for r in readings if r.timestamp > window_start]
    return len(recent) >= DAILY_REPORTING_MIN_READINGS


def calculate_entity_stats(
    entity_id: str,
    readings: Sequence[NormalizedReading],
    config: DetectionConfig,
    reference_time: datetime,
) -> EntityStats:
    values = sorted(r.value for r in readings)
    n = len(values)
    if n == 0:
        raise ValueError(f"No valid readings for entity {entity_id}")

    mean = statistics.mean(values)
    median = statistics.median(values)
    std_dev = statistics.pstdev(values, mu=mean)

    # Index-based quartiles, no interpolation
    q1 = values[int(n * 0.25)]
    q3 = values[int(n * 0.75)]

    first_seen = min(r.timestamp for r in readings)
    last_seen = max(r.timestamp for r in readings)
    days = (last_seen - first_seen).total_seconds() / SECONDS_PER_DAY
    reporting_frequency = n / max(days, 1)

    if config.require_daily_reporting:
        is_healthy = check_daily_reporting(readings, reference_time)
    else:
        is_healthy = n >= config.min_data_points

    return EntityStats(
        entity_id=entity_id,
        mean=mean,
        median=median,
        std_dev=std_dev,
        q1=q1,
        q3=q3,
        iqr=q3 - q1,
        data_points=n,
        last_reporting=last_seen,
        reporting_frequency=reporting_frequency,
        is_healthy=is_healthy,
    )
