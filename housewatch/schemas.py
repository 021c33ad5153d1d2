# ABOUTME: Pydantic models for sensor readings, entity statistics and anomalies
# ABOUTME: Supports raw readings plus InfluxDB row and Home Assistant state formats

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class AnomalyType(str, Enum):
    SPIKE = "spike"
    DROP = "drop"
    MISSING = "missing"
    STUCK = "stuck"


class DetectionMethod(str, Enum):
    """Closed set of detector strategies, in the order they run"""

    Z_SCORE = "z-score"
    IQR = "iqr"
    MISSING_DATA = "missing-data"
    PATTERN = "pattern"


class WireModel(BaseModel):
    """Base for output models: camelCase on the wire, snake_case in Python"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Reading(BaseModel):
    """One raw observation of one sensor"""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    entity_id: str
    value: Any = None
    state: Optional[str] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_zulu(cls, v):
        if isinstance(v, str) and v.endswith("Z"):
            return v[:-1] + "+00:00"
        return v

    @field_validator("entity_id")
    @classmethod
    def _require_entity_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("entity_id must not be empty")
        return v

    @field_validator("state", mode="before")
    @classmethod
    def _stringify_state(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @classmethod
    def from_influx_row(cls, row: Mapping[str, Any]) -> "Reading":
        """Convert a Flux query row (_time/_value/entity_id columns)"""
        return cls(
            timestamp=row.get("_time", row.get("timestamp")),
            entity_id=row.get("entity_id", ""),
            value=row.get("_value", row.get("value")),
            state=row.get("state"),
        )

    @classmethod
    def from_home_assistant(cls, state: Mapping[str, Any]) -> "Reading":
        """Convert a Home Assistant state or history entry"""
        timestamp = state.get("last_changed") or state.get("last_updated")
        raw_state = state.get("state")
        # HA reports every state as a string; the numeric value lives there too
        return cls(
            timestamp=timestamp,
            entity_id=state.get("entity_id", ""),
            value=raw_state,
            state=raw_state,
        )


@dataclass(frozen=True)
class NormalizedReading:
    """Reading after validation: aware timestamp and a finite float value"""

    timestamp: datetime
    entity_id: str
    value: float

    @classmethod
    def create(cls, timestamp: datetime, entity_id: str, value: float):
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(timestamp=timestamp, entity_id=entity_id, value=value)


class EntityStats(WireModel):
    entity_id: str = Field(alias="entity_id")
    mean: float
    median: float
    std_dev: float
    q1: float
    q3: float
    iqr: float
    data_points: int
    last_reporting: datetime
    reporting_frequency: float
    is_healthy: bool


class Anomaly(WireModel):
    id: str
    timestamp: datetime
    entity_id: str = Field(alias="entity_id")
    value: float
    expected_value: float
    deviation: float = Field(ge=0)
    severity: Severity
    type: AnomalyType
    description: str
    confidence: float = Field(ge=0, le=1)
    method: DetectionMethod


class Summary(WireModel):
    total_entities: int = 0
    healthy_entities: int = 0
    total_anomalies: int = 0
    critical_anomalies: int = 0
    high_severity_anomalies: int = 0
    detection_methods: Dict[str, int] = Field(default_factory=dict)


class DetectionResult(WireModel):
    run_id: str
    anomalies: List[Anomaly] = Field(default_factory=list)
    entity_stats: List[EntityStats] = Field(default_factory=list)
    summary: Summary = Field(default_factory=Summary)
