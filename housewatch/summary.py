# ABOUTME: Aggregates entity stats and ranked anomalies into report counts
# ABOUTME: Pure derivation, used by dashboards for headline numbers

from collections import Counter
from typing import Sequence

from housewatch.schemas import Anomaly, EntityStats, Severity, Summary


def summarize(entity_stats: Sequence[EntityStats], anomalies: Sequence[Anomaly]) -> Summary:
    severities = Counter(a.severity for a in anomalies)
    return Summary(
        total_entities=len(entity_stats),
        healthy_entities=sum(1 for s in entity_stats if s.is_healthy),
        total_anomalies=len(anomalies),
        critical_anomalies=severities[Severity.CRITICAL],
        high_severity_anomalies=severities[Severity.HIGH],
        detection_methods=dict(Counter(a.method.value for a in anomalies)),
    )
