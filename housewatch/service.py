# ABOUTME: Stateful wrapper holding the effective detection config for callers
# ABOUTME: Config updates are validated up front; each run uses a config snapshot

from threading import Lock
from typing import Any, Iterable, Mapping, Optional

import structlog

from housewatch.config import DetectionConfig
from housewatch.pipeline import DEFAULT_MAX_WORKERS, detect
from housewatch.schemas import DetectionResult


class AnomalyDetectionService:
    def __init__(
        self,
        config: Optional[DetectionConfig] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        self.logger = structlog.getLogger(__name__)
        self._config = config or DetectionConfig()
        self._lock = Lock()
        self.max_workers = max_workers

    def get_config(self) -> DetectionConfig:
        with self._lock:
            return self._config

    def update_config(self, partial: Mapping[str, Any]) -> None:
        """Merge `partial` into the effective config.

        Raises pydantic.ValidationError (a ValueError) on invalid values and
        keeps the previous config. Past results are not recomputed.
        """
        with self._lock:
            self._config = self._config.merged(partial)
            updated = self._config
        self.logger.info("config.updated", config=updated.to_wire())

    def detect(
        self, readings: Optional[Iterable[Any]], source: Optional[str] = None
    ) -> DetectionResult:
        return detect(
            readings,
            config=self.get_config(),
            source=source,
            max_workers=self.max_workers,
        )
