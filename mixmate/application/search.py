import logging
import math
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, List, Optional, Sequence, Tuple

from mixmate.application.merging import merge_all
from mixmate.application.ranking import rank
from mixmate.crosscutting.logging import (
    log_search_complete, log_search_start, log_source_failure,
)
from mixmate.crosscutting.metrics import MetricsCollector
from mixmate.domain.entities import CandidateSong, SearchResult
from mixmate.domain.errors import SourceUnavailable
from mixmate.domain.normalization import normalize_records
from mixmate.domain.ports import SearchAdapter


logger = logging.getLogger(__name__)

STATUS_OK = "ok"


class SearchAggregator:
    """Searches every configured platform at once and returns unified songs.

    A failing or slow platform only loses its own contribution; the search
    proceeds with whatever the other platforms returned.
    """

    def __init__(self,
                 adapters: Sequence[SearchAdapter],
                 timeout_sec: float = 10.0,
                 metrics: Optional[MetricsCollector] = None):
        """Initialize the aggregator.

        Args:
            adapters: Platform search adapters, in source order
            timeout_sec: Time budget shared by all platform calls
            metrics: Optional collector for per-search figures
        """
        self.adapters = list(adapters)
        self.timeout_sec = timeout_sec
        self.metrics = metrics

    @property
    def sources(self) -> List[str]:
        return [adapter.source for adapter in self.adapters]

    def _search_one(self, adapter: SearchAdapter, query: str, limit: int) -> List[CandidateSong]:
        raws = adapter.search(query, limit)
        return normalize_records(raws, adapter.source, normalizer=adapter.normalize)

    def gather_candidates(self, query: str, per_source_limit: int
                          ) -> Tuple[List[CandidateSong], Dict[str, str], List[SourceUnavailable]]:
        """Run all adapters concurrently and collect their candidates.

        Returns:
            Candidates in adapter order, status per source, and the failures
        """
        statuses: Dict[str, str] = {}
        failures: List[SourceUnavailable] = []
        results: Dict[int, List[CandidateSong]] = {}

        executor = ThreadPoolExecutor(max_workers=len(self.adapters), thread_name_prefix="mixmate-search")
        try:
            futures = {
                executor.submit(self._search_one, adapter, query, per_source_limit): index
                for index, adapter in enumerate(self.adapters)
            }
            done, not_done = wait(futures, timeout=self.timeout_sec)

            for future, index in futures.items():
                source = self.adapters[index].source
                if future in not_done:
                    future.cancel()
                    error = SourceUnavailable(source, TimeoutError(f"no response within {self.timeout_sec}s"))
                else:
                    exc = future.exception()
                    if exc is None:
                        results[index] = future.result()
                        statuses[source] = STATUS_OK
                        continue
                    error = SourceUnavailable(source, exc)

                failures.append(error)
                statuses[source] = str(error)
                log_source_failure(logger, source, error.cause)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        candidates: List[CandidateSong] = []
        for index in sorted(results):
            candidates.extend(results[index])
        return candidates, statuses, failures

    def search_songs(self, query: str, limit: int = 20) -> SearchResult:
        """Search all platforms and return deduplicated, ranked songs.

        Args:
            query: Free-text query
            limit: Maximum number of songs in the response

        Returns:
            SearchResult with ``total`` counting every merged song
        """
        query = (query or "").strip()
        if not query or limit <= 0 or not self.adapters:
            if not self.adapters:
                logger.warning("Search requested but no search sources are configured")
            return SearchResult(songs=[], total=0, has_more=False)

        per_source_limit = math.ceil(limit / len(self.adapters))
        log_search_start(logger, query, limit, self.sources, per_source_limit=per_source_limit)

        if self.metrics:
            with self.metrics.search_context(query) as search_metrics:
                result = self._search(query, limit, per_source_limit, search_metrics)
        else:
            result = self._search(query, limit, per_source_limit)

        failed = [s for s, status in result.sources.items() if status != STATUS_OK]
        log_search_complete(logger, query, result.total, failed, returned=len(result.songs))
        return result

    def _search(self, query: str, limit: int, per_source_limit: int,
                search_metrics=None) -> SearchResult:
        candidates, statuses, _ = self.gather_candidates(query, per_source_limit)
        merged = merge_all(candidates)

        if search_metrics is not None:
            for source, status in statuses.items():
                if status == STATUS_OK:
                    count = sum(1 for c in candidates if c.source == source)
                    self.metrics.record_source_result(search_metrics, source, count)
                else:
                    self.metrics.record_source_failure(search_metrics, source)
            search_metrics.merged_count = len(merged)

        ranked = rank(merged, query)
        return SearchResult(
            songs=ranked[:limit],
            total=len(ranked),
            has_more=len(ranked) > limit,
            sources=statuses,
        )
