import json
import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class SearchMetrics:
    """Metrics for a single aggregated search."""
    query: str
    results_by_source: Dict[str, int] = field(default_factory=dict)
    failed_sources: List[str] = field(default_factory=list)
    candidate_count: int = 0
    merged_count: int = 0
    duration_ms: int = 0
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None

    @property
    def dedup_ratio(self) -> float:
        """Share of candidates folded into another song."""
        if self.candidate_count == 0:
            return 0.0
        return 1.0 - self.merged_count / self.candidate_count


@dataclass
class ExportMetrics:
    """Metrics for a single playlist export."""
    playlist_name: str
    target: str
    total_songs: int = 0
    direct_count: int = 0
    cache_hit_count: int = 0
    matched_count: int = 0
    unmatched_count: int = 0
    batch_count: int = 0
    failed_batch_count: int = 0
    added_count: int = 0
    duration_ms: int = 0
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None

    @property
    def match_rate(self) -> float:
        """Share of songs that ended up with a target id."""
        if self.total_songs == 0:
            return 0.0
        return (self.total_songs - self.unmatched_count) / self.total_songs


def _elapsed_ms(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() * 1000)


class MetricsCollector:
    """Collects search and export metrics; safe to share across threads."""

    def __init__(self):
        """Initialize metrics collector."""
        self.searches: List[SearchMetrics] = []
        self.exports: List[ExportMetrics] = []
        self._lock = threading.Lock()

    @contextmanager
    def search_context(self, query: str):
        """Context manager timing one search."""
        metrics = SearchMetrics(query=query)
        try:
            yield metrics
        finally:
            with self._lock:
                metrics.end_time = datetime.now()
                metrics.duration_ms = _elapsed_ms(metrics.start_time, metrics.end_time)
                self.searches.append(metrics)

    @contextmanager
    def export_context(self, playlist_name: str, target: str, total_songs: int):
        """Context manager timing one export."""
        metrics = ExportMetrics(playlist_name=playlist_name, target=target, total_songs=total_songs)
        try:
            yield metrics
        finally:
            with self._lock:
                metrics.end_time = datetime.now()
                metrics.duration_ms = _elapsed_ms(metrics.start_time, metrics.end_time)
                self.exports.append(metrics)

    def record_source_result(self, metrics: SearchMetrics, source: str, count: int) -> None:
        with self._lock:
            metrics.results_by_source[source] = count
            metrics.candidate_count += count

    def record_source_failure(self, metrics: SearchMetrics, source: str) -> None:
        with self._lock:
            metrics.failed_sources.append(source)
            metrics.results_by_source[source] = 0

    def get_summary(self) -> Dict[str, Any]:
        """Aggregate figures across everything recorded so far."""
        with self._lock:
            total_searches = len(self.searches)
            total_failures = sum(len(s.failed_sources) for s in self.searches)
            total_songs = sum(e.total_songs for e in self.exports)
            total_unmatched = sum(e.unmatched_count for e in self.exports)
            return {
                "total_searches": total_searches,
                "source_failures": total_failures,
                "average_search_ms": (
                    sum(s.duration_ms for s in self.searches) / total_searches if total_searches else 0.0
                ),
                "total_exports": len(self.exports),
                "exported_songs": total_songs,
                "unmatched_songs": total_unmatched,
                "export_match_rate": (total_songs - total_unmatched) / total_songs if total_songs else 0.0,
                "failed_batches": sum(e.failed_batch_count for e in self.exports),
            }

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary for JSON serialization."""
        with self._lock:
            searches = [asdict(s) for s in self.searches]
            exports = [asdict(e) for e in self.exports]
        for item in searches + exports:
            for key in ("start_time", "end_time"):
                if item.get(key):
                    item[key] = item[key].isoformat()
        return {
            "summary": self.get_summary(),
            "searches": searches,
            "exports": exports,
        }

    def save_to_file(self, file_path: str) -> None:
        """Save metrics to JSON file."""
        with open(file_path, "w") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
