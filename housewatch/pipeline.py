# ABOUTME: Batch anomaly detection: normalize, per-entity stats and detectors, rank
# ABOUTME: Entities are analyzed in parallel on a thread pool and merged before ranking

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence

import structlog
from ulid import ULID

from housewatch.config import DetectionConfig
from housewatch.detectors import run_detectors
from housewatch.entity_stats import calculate_entity_stats, group_by_entity
from housewatch.normalizer import Normalizer
from housewatch.ranking import deduplicate_and_rank
from housewatch.schemas import (
    Anomaly,
    DetectionResult,
    EntityStats,
    NormalizedReading,
)
from housewatch.summary import summarize

logger = structlog.get_logger(__name__)

DEFAULT_MAX_WORKERS = 4


@dataclass
class EntityAnalysis:
    """Outcome for one entity; anomalies is empty when detection was skipped"""

    stats: EntityStats
    anomalies: List[Anomaly] = field(default_factory=list)


def analyze_entity(
    entity_id: str,
    readings: Sequence[NormalizedReading],
    config: DetectionConfig,
    reference_time: datetime,
) -> Optional[EntityAnalysis]:
    """Stats plus all detectors for one entity. Never raises."""
    try:
        if len(readings) < config.min_data_points:
            logger.debug(
                "entity.skipped",
                entity_id=entity_id,
                reason="insufficient_data",
                data_points=len(readings),
            )
            return None

        stats = calculate_entity_stats(entity_id, readings, config, reference_time)

        if config.require_daily_reporting and not stats.is_healthy:
            logger.debug(
                "entity.skipped", entity_id=entity_id, reason="not_reporting_daily"
            )
            return EntityAnalysis(stats=stats)

        logger.debug(
            "entity.analyzing",
            entity_id=entity_id,
            data_points=stats.data_points,
            mean=round(stats.mean, 2),
            std_dev=round(stats.std_dev, 2),
        )
        return EntityAnalysis(stats=stats, anomalies=run_detectors(readings, stats, config))
    except Exception as e:
        logger.error("entity.analysis_failed", entity_id=entity_id, error=str(e))
        return None


def _new_run_id() -> str:
    return f"run-{ULID()}"


def detect(
    readings: Optional[Iterable[Any]],
    config: Optional[DetectionConfig] = None,
    source: Optional[str] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> DetectionResult:
    """Run the full detection pipeline over one batch of readings.

    `readings` may hold Reading objects or plain mappings; `source` selects
    how mappings are interpreted ("influx", "home_assistant" or raw readings).
    Bad readings and failing entities are dropped, so this always returns a
    result; an unusable batch gives empty lists and a zero summary.
    """
    config = config or DetectionConfig()
    run_id = _new_run_id()

    normalized = Normalizer(config, source=source).normalize(readings)
    if not normalized:
        logger.warning("detection.no_valid_data", run_id=run_id)
        return DetectionResult(run_id=run_id)

    groups = group_by_entity(normalized)
    reference_time = max(r.timestamp for r in normalized)
    logger.info(
        "detection.started",
        run_id=run_id,
        readings=len(normalized),
        entities=len(groups),
    )

    entity_ids = list(groups)
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        # map() yields in submission order, so the merge below is deterministic
        results = list(
            executor.map(
                lambda entity_id: analyze_entity(
                    entity_id, groups[entity_id], config, reference_time
                ),
                entity_ids,
            )
        )

    entity_stats = []
    pooled = []
    for analysis in results:
        if analysis is None:
            continue
        entity_stats.append(analysis.stats)
        pooled.extend(analysis.anomalies)

    anomalies = deduplicate_and_rank(pooled)
    summary = summarize(entity_stats, anomalies)

    logger.info(
        "detection.completed",
        run_id=run_id,
        anomalies=summary.total_anomalies,
        entities=summary.total_entities,
    )
    return DetectionResult(
        run_id=run_id,
        anomalies=anomalies,
        entity_stats=entity_stats,
        summary=summary,
    )
