# ABOUTME: Validates raw readings and coerces them into finite numeric values
# ABOUTME: Drops excluded states/domains and anything without a usable number

import math
from numbers import Real
from typing import Any, Callable, Iterable, List, Mapping, Optional

import structlog
from pydantic import ValidationError

from housewatch.config import DetectionConfig
from housewatch.schemas import NormalizedReading, Reading

STATE_LEXICON = {
    "on": 1.0,
    "open": 1.0,
    "home": 1.0,
    "true": 1.0,
    "off": 0.0,
    "closed": 0.0,
    "away": 0.0,
    "false": 0.0,
}

READING_ADAPTERS: Mapping[Optional[str], Callable[[Mapping[str, Any]], Reading]] = {
    None: Reading.model_validate,
    "influx": Reading.from_influx_row,
    "home_assistant": Reading.from_home_assistant,
}


def entity_domain(entity_id: str) -> str:
    return entity_id.split(".", 1)[0]


def _parse_float(raw: Any) -> Optional[float]:
    if not isinstance(raw, str):
        return None
    try:
        parsed = float(raw)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def resolve_numeric_value(value: Any, state: Optional[str]) -> Optional[float]:
    """Find a number in a reading: value, then value text, state text, state word"""
    if isinstance(value, Real) and not isinstance(value, bool):
        try:
            number = float(value)
        except OverflowError:
            number = math.inf
        if math.isfinite(number):
            return number
    parsed = _parse_float(value)
    if parsed is not None:
        return parsed
    parsed = _parse_float(state)
    if parsed is not None:
        return parsed
    if isinstance(state, str):
        return STATE_LEXICON.get(state.strip().lower())
    return None


class Normalizer:
    def __init__(self, config: DetectionConfig, source: Optional[str] = None):
        self.logger = structlog.getLogger(__name__)
        self.config = config
        if source not in READING_ADAPTERS:
            raise ValueError(f"Unknown reading source: {source}")
        self.adapt = READING_ADAPTERS[source]

    def normalize(self, readings: Iterable[Any]) -> List[NormalizedReading]:
        """Return the usable readings, in input order"""
        kept: List[NormalizedReading] = []
        dropped = 0
        for item in readings or []:
            normalized = self._normalize_one(item)
            if normalized is None:
                dropped += 1
            else:
                kept.append(normalized)

        self.logger.debug("normalizer.filtered", kept=len(kept), dropped=dropped)
        return kept

    def _normalize_one(self, item: Any) -> Optional[NormalizedReading]:
        reading = self._coerce(item)
        if reading is None:
            return None

        if reading.state and reading.state.lower() in self.config.exclude_states:
            return None

        if entity_domain(reading.entity_id) in self.config.exclude_domains:
            return None

        value = resolve_numeric_value(reading.value, reading.state)
        if value is None:
            return None

        return NormalizedReading.create(reading.timestamp, reading.entity_id, value)

    def _coerce(self, item: Any) -> Optional[Reading]:
        if isinstance(item, Reading):
            return item
        if not isinstance(item, Mapping):
            return None
        try:
            return self.adapt(item)
        except ValidationError:
            return None
