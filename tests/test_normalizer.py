# ABOUTME: Tests for reading normalization and numeric value resolution
# ABOUTME: Validates excluded states/domains, lexicon mapping and silent drops

import math
import pytest

from housewatch.config import DetectionConfig
from housewatch.normalizer import Normalizer, entity_domain, resolve_numeric_value
from housewatch.schemas import Reading

TS = "2025-10-14T10:30:00Z"


@pytest.mark.parametrize(
    "value,state,expected",
    [
        (21.5, "21.5", 21.5),
        (3, None, 3.0),
        ("12.25", None, 12.25),
        (None, "7", 7.0),
        ("n/a", "8.5", 8.5),
        (None, "on", 1.0),
        (None, "Open", 1.0),
        (None, "home", 1.0),
        (None, "TRUE", 1.0),
        (None, "off", 0.0),
        (None, "closed", 0.0),
        (None, "away", 0.0),
        (None, "false", 0.0),
        (float("nan"), "4", 4.0),
        ("inf", "2", 2.0),
    ],
)
def test_resolve_numeric_value(value, state, expected):
    """Test value/state resolution order and the boolean lexicon"""
    assert resolve_numeric_value(value, state) == expected


@pytest.mark.parametrize(
    "value,state",
    [(None, "heat"), ("abc", "cloudy"), (float("nan"), None), (True, None), (None, None)],
)
def test_resolve_numeric_value_gives_up(value, state):
    """Test readings without a usable number resolve to None"""
    assert resolve_numeric_value(value, state) is None


def test_entity_domain():
    assert entity_domain("sensor.kitchen_temp") == "sensor"
    assert entity_domain("no_domain") == "no_domain"


def test_normalizer_drops_excluded_states(config):
    """Test excluded states are dropped case-insensitively"""
    normalizer = Normalizer(config)
    readings = [
        Reading(timestamp=TS, entity_id="sensor.a", value=1.0, state="Unavailable"),
        Reading(timestamp=TS, entity_id="sensor.a", value=2.0, state="2.0"),
    ]
    result = normalizer.normalize(readings)
    assert [r.value for r in result] == [2.0]


def test_normalizer_drops_excluded_domain_regardless_of_value(config):
    """Test automation.* readings are dropped even with numeric values"""
    normalizer = Normalizer(config)
    readings = [
        Reading(timestamp=TS, entity_id="automation.morning", value=5.0, state="5"),
        Reading(timestamp=TS, entity_id="automation.morning", value=None, state="on"),
    ]
    assert normalizer.normalize(readings) == []


def test_normalizer_preserves_order_and_drops_unparseable(config):
    """Test kept readings stay in input order"""
    normalizer = Normalizer(config)
    readings = [
        {"timestamp": TS, "entity_id": "sensor.b", "value": "3"},
        {"timestamp": TS, "entity_id": "sensor.a", "value": None, "state": "heat"},
        {"timestamp": TS, "entity_id": "sensor.a", "value": 1},
    ]
    result = normalizer.normalize(readings)
    assert [(r.entity_id, r.value) for r in result] == [("sensor.b", 3.0), ("sensor.a", 1.0)]
    assert all(math.isfinite(r.value) for r in result)


def test_normalizer_drops_malformed_items(config):
    """Test invalid mappings and non-mapping items are dropped, not raised"""
    normalizer = Normalizer(config)
    readings = [
        {"timestamp": "not a time", "entity_id": "sensor.a", "value": 1},
        {"entity_id": "sensor.a", "value": 1},
        "garbage",
        None,
    ]
    assert normalizer.normalize(readings) == []


def test_normalizer_handles_none_batch(config):
    assert Normalizer(config).normalize(None) == []


def test_normalizer_home_assistant_source(config):
    """Test Home Assistant states are adapted before normalization"""
    normalizer = Normalizer(config, source="home_assistant")
    states = [
        {"entity_id": "binary_sensor.door", "state": "open", "last_changed": TS},
        {"entity_id": "sensor.temp", "state": "unknown", "last_changed": TS},
        {"entity_id": "sensor.temp", "state": "19.5", "last_updated": TS},
    ]
    result = normalizer.normalize(states)
    assert [(r.entity_id, r.value) for r in result] == [
        ("binary_sensor.door", 1.0),
        ("sensor.temp", 19.5),
    ]


def test_normalizer_influx_source(config):
    """Test Flux rows are adapted before normalization"""
    normalizer = Normalizer(config, source="influx")
    rows = [{"_time": TS, "_value": 412.0, "entity_id": "sensor.co2"}]
    result = normalizer.normalize(rows)
    assert result[0].value == 412.0


def test_normalizer_rejects_unknown_source(config):
    with pytest.raises(ValueError):
        Normalizer(config, source="csv")


def test_normalizer_custom_exclusions():
    """Test exclusion sets come from the injected config"""
    config = DetectionConfig(exclude_states={"idle"}, exclude_domains={"sensor"})
    normalizer = Normalizer(config)
    readings = [
        Reading(timestamp=TS, entity_id="sensor.a", value=1.0),
        Reading(timestamp=TS, entity_id="climate.a", value=None, state="IDLE"),
        Reading(timestamp=TS, entity_id="automation.a", value=4.0),
    ]
    result = normalizer.normalize(readings)
    assert [r.entity_id for r in result] == ["automation.a"]
