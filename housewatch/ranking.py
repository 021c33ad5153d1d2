# ABOUTME: Collapses near-duplicate anomalies and orders them for display
# ABOUTME: One anomaly per (entity, type, clock hour); severity then recency order

from typing import Iterable, List, Set, Tuple

from housewatch.schemas import Anomaly

SECONDS_PER_HOUR = 60 * 60


def hour_bucket(anomaly: Anomaly) -> int:
    return int(anomaly.timestamp.timestamp() // SECONDS_PER_HOUR)


def deduplicate(anomalies: Iterable[Anomaly]) -> List[Anomaly]:
    """Keep the first anomaly seen per (entity_id, type, hour)"""
    seen: Set[Tuple[str, str, int]] = set()
    unique = []
    for anomaly in anomalies:
        key = (anomaly.entity_id, anomaly.type.value, hour_bucket(anomaly))
        if key in seen:
            continue
        seen.add(key)
        unique.append(anomaly)
    return unique


def rank(anomalies: Iterable[Anomaly]) -> List[Anomaly]:
    """Most severe first, then most recent; id breaks any remaining tie"""
    by_id = sorted(anomalies, key=lambda a: a.id)
    return sorted(
        by_id,
        key=lambda a: (a.severity.rank, a.timestamp.timestamp()),
        reverse=True,
    )


def deduplicate_and_rank(anomalies: Iterable[Anomaly]) -> List[Anomaly]:
    return rank(deduplicate(anomalies))
