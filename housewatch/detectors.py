# ABOUTME: The four anomaly detection strategies: z-score, IQR, data gaps, stuck values
# ABOUTME: Each takes one entity's readings plus its stats and returns Anomaly objects

import re
from typing import Callable, Dict, List, Sequence

from housewatch.config import DetectionConfig
from housewatch.schemas import (
    Anomaly,
    AnomalyType,
    DetectionMethod,
    EntityStats,
    NormalizedReading,
    Severity,
)

GAP_TOLERANCE = 3
STUCK_MIN_RUN = 10
STUCK_MIN_READINGS = 5
STUCK_FULL_CONFIDENCE_RUN = 20
SECONDS_PER_HOUR = 60 * 60

ID_PREFIXES = {
    DetectionMethod.Z_SCORE: "zscore",
    DetectionMethod.IQR: "iqr",
    DetectionMethod.MISSING_DATA: "missing",
    DetectionMethod.PATTERN: "stuck",
}

_NAME_PREFIX = re.compile(r"^(sensor|binary_sensor|switch|light)\.")

Detector = Callable[
    [Sequence[NormalizedReading], EntityStats, DetectionConfig], List[Anomaly]
]


def anomaly_id(method: DetectionMethod, reading: NormalizedReading) -> str:
    """Stable id: identical input always yields the same id"""
    return f"{ID_PREFIXES[method]}_{reading.entity_id}_{reading.timestamp.isoformat()}"


def z_score_severity(z_score: float) -> Severity:
    if z_score > 4:
        return Severity.CRITICAL
    if z_score > 3.5:
        return Severity.HIGH
    if z_score > 3:
        return Severity.MEDIUM
    return Severity.LOW


def iqr_severity(ratio: float) -> Severity:
    if ratio > 3:
        return Severity.CRITICAL
    if ratio > 2.5:
        return Severity.HIGH
    if ratio > 2:
        return Severity.MEDIUM
    return Severity.LOW


def duration_severity(hours: float) -> Severity:
    """Severity for gaps and stuck runs; boundaries are exclusive"""
    if hours > 24:
        return Severity.HIGH
    if hours > 6:
        return Severity.MEDIUM
    return Severity.LOW


def friendly_name(entity_id: str) -> str:
    return _NAME_PREFIX.sub("", entity_id).replace("_", " ")


def describe_deviation(
    anomaly_type: AnomalyType, entity_id: str, value: float, expected: float
) -> str:
    name = friendly_name(entity_id)
    if expected != 0:
        change = f"{(value - expected) / expected * 100:+.1f}%"
    else:
        change = "N/A"
    verb = "spiked" if anomaly_type == AnomalyType.SPIKE else "dropped"
    return f"{name} {verb} to {value:.2f} (expected ~{expected:.2f}, {change} change)"


def detect_z_score(
    readings: Sequence[NormalizedReading], stats: EntityStats, config: DetectionConfig
) -> List[Anomaly]:
    # A constant signal has no z-score outliers
    if stats.std_dev == 0:
        return []

    anomalies = []
    for reading in readings:
        deviation = abs(reading.value - stats.mean)
        z_score = deviation / stats.std_dev
        if z_score <= config.z_score_threshold:
            continue

        anomaly_type = AnomalyType.SPIKE if reading.value > stats.mean else AnomalyType.DROP
        anomalies.append(
            Anomaly(
                id=anomaly_id(DetectionMethod.Z_SCORE, reading),
                timestamp=reading.timestamp,
                entity_id=reading.entity_id,
                value=reading.value,
                expected_value=stats.mean,
                deviation=deviation,
                severity=z_score_severity(z_score),
                type=anomaly_type,
                description=describe_deviation(
                    anomaly_type, reading.entity_id, reading.value, stats.mean
                ),
                confidence=min(z_score / config.z_score_threshold, 1.0),
                method=DetectionMethod.Z_SCORE,
            )
        )
    return anomalies


def detect_iqr(
    readings: Sequence[NormalizedReading], stats: EntityStats, config: DetectionConfig
) -> List[Anomaly]:
    if stats.iqr == 0:
        return []

    fence = config.iqr_multiplier * stats.iqr
    lower = stats.q1 - fence
    upper = stats.q3 + fence

    anomalies = []
    for reading in readings:
        if reading.value > upper:
            anomaly_type = AnomalyType.SPIKE
            deviation = reading.value - upper
        elif reading.value < lower:
            anomaly_type = AnomalyType.DROP
            deviation = lower - reading.value
        else:
            continue

        anomalies.append(
            Anomaly(
                id=anomaly_id(DetectionMethod.IQR, reading),
                timestamp=reading.timestamp,
                entity_id=reading.entity_id,
                value=reading.value,
                expected_value=stats.median,
                deviation=deviation,
                severity=iqr_severity(deviation / stats.iqr),
                type=anomaly_type,
                description=describe_deviation(
                    anomaly_type, reading.entity_id, reading.value, stats.median
                ),
                confidence=min(deviation / fence, 1.0),
                method=DetectionMethod.IQR,
            )
        )
    return anomalies


def detect_missing_data(
    readings: Sequence[NormalizedReading], stats: EntityStats, config: DetectionConfig
) -> List[Anomaly]:
    """Flag gaps longer than three times the entity's average reporting interval.

    Gap anomalies model reading presence rather than a measurement: value is
    0 (absent) and expected_value is 1 (present). Deviation is the gap length
    in hours and the anomaly is anchored at the reading before the gap.
    """
    if len(readings) < 2:
        return []

    ordered = sorted(readings, key=lambda r: r.timestamp)
    intervals = [
        (later.timestamp - earlier.timestamp).total_seconds()
        for earlier, later in zip(ordered, ordered[1:])
    ]
    expected_interval = sum(intervals) / len(intervals) * GAP_TOLERANCE

    anomalies = []
    for earlier, interval in zip(ordered, intervals):
        if interval <= expected_interval:
            continue

        gap_hours = interval / SECONDS_PER_HOUR
        anomalies.append(
            Anomaly(
                id=anomaly_id(DetectionMethod.MISSING_DATA, earlier),
                timestamp=earlier.timestamp,
                entity_id=earlier.entity_id,
                value=0,
                expected_value=1,
                deviation=gap_hours,
                severity=duration_severity(gap_hours),
                type=AnomalyType.MISSING,
                description=(
                    f"{friendly_name(earlier.entity_id)} stopped reporting: "
                    f"{gap_hours:.1f} hours without readings"
                ),
                confidence=min(interval / expected_interval - 1, 1.0),
                method=DetectionMethod.MISSING_DATA,
            )
        )
    return anomalies


def detect_stuck_values(
    readings: Sequence[NormalizedReading], stats: EntityStats, config: DetectionConfig
) -> List[Anomaly]:
    """Flag runs of 10+ exactly equal consecutive values"""
    if len(readings) < STUCK_MIN_READINGS:
        return []

    ordered = sorted(readings, key=lambda r: r.timestamp)
    anomalies = []
    run_start = 0
    for i in range(1, len(ordered) + 1):
        if i < len(ordered) and ordered[i].value == ordered[run_start].value:
            continue
        run = ordered[run_start:i]
        if len(run) >= STUCK_MIN_RUN:
            anomalies.append(_stuck_anomaly(run))
        run_start = i
    return anomalies


def _stuck_anomaly(run: Sequence[NormalizedReading]) -> Anomaly:
    first, last = run[0], run[-1]
    hours = (last.timestamp - first.timestamp).total_seconds() / SECONDS_PER_HOUR
    return Anomaly(
        id=anomaly_id(DetectionMethod.PATTERN, first),
        timestamp=first.timestamp,
        entity_id=first.entity_id,
        value=first.value,
        expected_value=first.value,
        deviation=len(run),
        severity=duration_severity(hours),
        type=AnomalyType.STUCK,
        description=(
            f"{friendly_name(first.entity_id)} appears stuck at {first.value:g} "
            f"for {hours:.1f} hours ({len(run)} readings)"
        ),
        confidence=min(len(run) / STUCK_FULL_CONFIDENCE_RUN, 1.0),
        method=DetectionMethod.PATTERN,
    )


DETECTORS: Dict[DetectionMethod, Detector] = {
    DetectionMethod.Z_SCORE: detect_z_score,
    DetectionMethod.IQR: detect_iqr,
    DetectionMethod.MISSING_DATA: detect_missing_data,
    DetectionMethod.PATTERN: detect_stuck_values,
}


def run_detectors(
    readings: Sequence[NormalizedReading], stats: EntityStats, config: DetectionConfig
) -> List[Anomaly]:
    """Run every strategy, in DetectionMethod order"""
    anomalies: List[Anomaly] = []
    for method in DetectionMethod:
        anomalies.extend(DETECTORS[method](readings, stats, config))
    return anomalies
