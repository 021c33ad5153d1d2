# ABOUTME: Detection thresholds as an immutable, validated configuration value
# ABOUTME: Loads overrides from HOUSEWATCH_* environment variables

import os
from typing import Any, FrozenSet, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_EXCLUDE_STATES = frozenset(
    {
        "unknown",
        "unavailable",
        "disabled",
        "none",
        "null",
        "error",
        "timeout",
        "disconnected",
        "offline",
        "fault",
    }
)

DEFAULT_EXCLUDE_DOMAINS = frozenset(
    {
        "automation",
        "script",
        "scene",
        "group",
        "zone",
        "device_tracker",
        "person",
        "input_boolean",
        "input_select",
        "input_text",
        "input_number",
        "input_datetime",
        "timer",
        "counter",
        "weather",
    }
)

ENV_PREFIX = "HOUSEWATCH_"


class DetectionConfig(BaseModel):
    """Thresholds for one detection run. Frozen: a run never sees it change."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    z_score_threshold: float = Field(default=2.5, gt=0)
    iqr_multiplier: float = Field(default=1.5, gt=0)
    min_data_points: int = Field(default=5, ge=1)
    exclude_states: FrozenSet[str] = DEFAULT_EXCLUDE_STATES
    exclude_domains: FrozenSet[str] = DEFAULT_EXCLUDE_DOMAINS
    require_daily_reporting: bool = False

    @field_validator("exclude_states", "exclude_domains", mode="before")
    @classmethod
    def _split_and_lower(cls, v):
        if isinstance(v, str):
            v = v.split(",")
        if not isinstance(v, (list, tuple, set, frozenset)):
            raise ValueError("expected a list of strings")
        return frozenset(str(item).strip().lower() for item in v if str(item).strip())

    def merged(self, partial: Mapping[str, Any]) -> "DetectionConfig":
        """Return a new validated config with `partial` applied on top"""
        current = self.model_dump()
        for key, value in partial.items():
            current[_field_name(key)] = value
        return DetectionConfig.model_validate(current)

    def to_wire(self):
        data = self.model_dump(mode="json", by_alias=True)
        data["excludeStates"] = sorted(self.exclude_states)
        data["excludeDomains"] = sorted(self.exclude_domains)
        return data

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = None) -> "DetectionConfig":
        """Build a config from HOUSEWATCH_* variables, defaults for the rest"""
        environ = os.environ if environ is None else environ
        overrides = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is not None and raw.strip() != "":
                overrides[name] = raw
        return cls.model_validate(overrides)


def _field_name(key: str) -> str:
    """Map a camelCase key to its field name; unknown keys pass through"""
    for name, field in DetectionConfig.model_fields.items():
        if key == field.alias:
            return name
    return key
