import pytest
from datetime import datetime, timedelta, timezone

from housewatch.config import DetectionConfig
from housewatch.schemas import (
    Anomaly,
    AnomalyType,
    DetectionMethod,
    NormalizedReading,
    Reading,
    Severity,
)

BASE_TIME = datetime(2025, 10, 14, 10, 0, tzinfo=timezone.utc)


def series(entity_id, values, start=BASE_TIME, step=timedelta(minutes=10)):
    """Readings for one entity at a fixed cadence"""
    return [
        Reading(timestamp=start + i * step, entity_id=entity_id, value=v, state=str(v))
        for i, v in enumerate(values)
    ]


def normalized(entity_id, values, start=BASE_TIME, step=timedelta(minutes=10)):
    return [
        NormalizedReading.create(start + i * step, entity_id, float(v))
        for i, v in enumerate(values)
    ]


@pytest.fixture
def base_time():
    return BASE_TIME


@pytest.fixture
def config():
    """Default detection config"""
    return DetectionConfig()


@pytest.fixture
def spike_readings():
    """40 readings alternating 19/21 around 20.0, then a 35.0 spike"""
    values = [19.0 if i % 2 == 0 else 21.0 for i in range(40)] + [35.0]
    return series("sensor.living_room_temperature", values)


@pytest.fixture
def stuck_readings():
    """12 identical readings 10 minutes apart, then a change"""
    return series("sensor.x", [22.0] * 12 + [23.5])


def make_anomaly(
    minutes=0,
    entity_id="sensor.a",
    anomaly_type=AnomalyType.SPIKE,
    severity=Severity.LOW,
    method=DetectionMethod.Z_SCORE,
):
    timestamp = BASE_TIME + timedelta(minutes=minutes)
    return Anomaly(
        id=f"{method.value}_{entity_id}_{timestamp.isoformat()}",
        timestamp=timestamp,
        entity_id=entity_id,
        value=1.0,
        expected_value=0.0,
        deviation=1.0,
        severity=severity,
        type=anomaly_type,
        description="",
        confidence=0.5,
        method=method,
    )
