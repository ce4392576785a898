import json
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import threading


@dataclass
class StageMetrics:
    """Timing for one stage of an import run."""
    name: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_ms: int = 0


@dataclass
class ImportMetrics:
    """Aggregated metrics for one import run."""
    import_id: str
    source_reference: str
    tracks_total: int = 0
    tracks_found: int = 0
    outcome_counts: Dict[str, int] = field(default_factory=dict)
    search_calls: int = 0
    total_duration_ms: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    stages: List[StageMetrics] = field(default_factory=list)

    @property
    def found_rate(self) -> float:
        """Share of source tracks that ended up in the playlist."""
        if self.tracks_total == 0:
            return 0.0
        return self.tracks_found / self.tracks_total

    @property
    def failure_count(self) -> int:
        failures = ('not_found', 'search_error', 'persistence_error', 'deadline_exceeded')
        return sum(self.outcome_counts.get(name, 0) for name in failures)


class MetricsCollector:
    """Collects metrics for one import run. Safe to use from worker threads."""

    def __init__(self, import_id: str, source_reference: str = ""):
        self.import_id = import_id
        self.metrics = ImportMetrics(import_id=import_id, source_reference=source_reference)
        self._lock = threading.Lock()
        self._started_at: Optional[float] = None

    def start_import(self) -> None:
        with self._lock:
            self.metrics.start_time = datetime.now()
            self._started_at = time.monotonic()

    def end_import(self, tracks_found: int, tracks_total: int) -> None:
        with self._lock:
            self.metrics.end_time = datetime.now()
            self.metrics.tracks_found = tracks_found
            self.metrics.tracks_total = tracks_total
            if self._started_at is not None:
                self.metrics.total_duration_ms = int((time.monotonic() - self._started_at) * 1000)

    def record_outcome(self, status: str) -> None:
        with self._lock:
            counts = self.metrics.outcome_counts
            counts[status] = counts.get(status, 0) + 1

    def record_search_call(self) -> None:
        with self._lock:
            self.metrics.search_calls += 1

    @contextmanager
    def stage(self, name: str):
        """Context manager timing one pipeline stage."""
        stage = StageMetrics(name=name, start_time=datetime.now())
        started = time.monotonic()
        try:
            yield stage
        finally:
            stage.end_time = datetime.now()
            stage.duration_ms = int((time.monotonic() - started) * 1000)
            with self._lock:
                self.metrics.stages.append(stage)

    def get_metrics(self) -> ImportMetrics:
        with self._lock:
            return self.metrics

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary for JSON serialization."""
        with self._lock:
            data = asdict(self.metrics)
            data['found_rate'] = self.metrics.found_rate
            data['failure_count'] = self.metrics.failure_count

        for key in ('start_time', 'end_time'):
            if data[key]:
                data[key] = data[key].isoformat()
        for stage in data['stages']:
            for key in ('start_time', 'end_time'):
                if stage[key]:
                    stage[key] = stage[key].isoformat()
        return data

    def save_to_file(self, file_path: str) -> None:
        with open(file_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
