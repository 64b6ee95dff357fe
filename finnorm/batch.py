"""Batch ratio calculation with a TTL cache and chunked parallelism.

Each company runs the per-company pipeline (parse, normalize, ratios).
Results are cached under the company id plus a hash of its latest
quarter. In parallel mode the batch is split into contiguous chunks;
each chunk runs sequentially on a worker thread and the chunk outcomes
are merged in input order once all chunks finish.
"""

from __future__ import annotations

import hashlib
import json
import logging
import math
import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Callable, Protocol, Sequence

import pandas as pd

from finnorm.config import (
    DEFAULT_ASSUMPTIONS,
    BatchConfig,
    CacheConfig,
    EstimationAssumptions,
)
from finnorm.data.models import FINANCE, NON_FINANCE, RawCompanyPayload
from finnorm.parsers.normalizer import metadata_summary
from finnorm.ratios.sets import RatioSets
from finnorm.runner import CompanyAnalysis, analyze_payload

logger = logging.getLogger(__name__)

STRICT = "strict"
CONTINUE = "continue"
ERROR_HANDLING_MODES = (STRICT, CONTINUE)

HEADLINE_METRICS = ("roe", "net_profit_margin")
CHANGE_TOLERANCE = 0.01

DEFAULT_BATCH_CONFIG = BatchConfig()


# --- Cache ---


class CachePort(Protocol):
    """Key-value cache used by the batch engine."""

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None when absent or expired."""

    def set(self, key: str, value: Any) -> None:
        """Store a value, replacing any existing entry for the key."""


class CalculationCache:
    """Bounded in-memory cache with per-entry TTL.

    When full, the oldest inserted entry is evicted. Entries older than
    the TTL read as absent and are dropped. Every operation holds one
    lock, so concurrent chunks see whole-entry reads and writes.

    Args:
        max_size: Maximum number of entries.
        ttl_seconds: Entry lifetime in seconds.
        clock: Monotonic time source.

    Raises:
        ValueError: If max_size or ttl_seconds is not positive.
    """

    def __init__(
        self,
        max_size: int = 1000,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: CacheConfig) -> CalculationCache:
        return cls(max_size=config.max_size, ttl_seconds=config.ttl_seconds)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def size(self) -> int:
        return len(self)

    def memory_usage(self, bytes_per_entry: int = DEFAULT_BATCH_CONFIG.bytes_per_cache_entry) -> int:
        """Estimated memory held by the cache, in bytes."""
        return len(self) * bytes_per_entry

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at > self.ttl_seconds:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
            self._entries[key] = (self._clock(), value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def cache_key(payload: RawCompanyPayload) -> str:
    """Company id plus a short hash of the latest quarter."""
    quarters = payload.quarterly_data
    latest = dict(quarters[0]) if quarters else {}
    digest = hashlib.sha256(
        json.dumps(latest, sort_keys=True, default=str).encode("utf-8")
    ).hexdigest()
    return f"{payload.company_id}-{digest[:16]}"


# --- Results ---


@dataclass(frozen=True)
class CompanyResult:
    """Batch outcome for one company.

    Failed companies carry zeroed ratios and their error messages.
    """

    company_id: str
    company_type: str
    success: bool
    ratios: RatioSets = field(default_factory=RatioSets)
    calculation_time: float = 0.0
    errors: tuple[str, ...] = ()
    analysis: CompanyAnalysis | None = None


@dataclass
class BatchMetrics:
    """Performance accounting for one batch. Times are in seconds."""

    total_time: float = 0.0
    average_time_per_company: float = 0.0
    throughput: float = 0.0
    cache_hit_rate: float = 0.0
    error_rate: float = 0.0
    error_count: int = 0
    success_rate: float = 0.0
    non_finance_count: int = 0
    finance_count: int = 0
    parallel_efficiency: float = 0.0
    optimal_worker_count: int = 1
    worker_utilization: float = 0.0
    memory_recovery_events: int = 0


@dataclass
class BatchResult:
    success: bool
    results: list[CompanyResult]
    metrics: BatchMetrics

    def to_frame(self) -> pd.DataFrame:
        """One row per company: status, provenance, TTM and the flat ratio set."""
        rows = []
        for result in self.results:
            row: dict[str, Any] = {
                "company_id": result.company_id,
                "company_type": result.company_type,
                "success": result.success,
                "calculation_time": result.calculation_time,
                "errors": ";".join(result.errors),
            }
            analysis = result.analysis
            if analysis is not None and analysis.normalized is not None:
                row.update(metadata_summary(analysis.normalized))
                row["data_quality_score"] = analysis.normalized.data_quality_score
            if analysis is not None and analysis.validation is not None:
                row["quality_score"] = analysis.validation.quality_score
            if analysis is not None and analysis.ttm is not None:
                row["ttm_primary_income"] = analysis.ttm.ttm_primary_income
                row["ttm_net_profit"] = analysis.ttm.ttm_net_profit
            row.update(result.ratios.flat(result.company_type))
            rows.append(row)
        return pd.DataFrame(rows)


@dataclass(frozen=True)
class IncrementalUpdateResult:
    success: bool
    updated_count: int
    cache_utilization: float
    changed_metrics: tuple[str, ...]
    unchanged_metrics: tuple[str, ...]


@dataclass
class BatchOptions:
    """Options for one batch run.

    Attributes:
        parallel: Split into chunks processed on worker threads.
        cache: Cache shared across runs; None disables caching.
        error_handling: "strict" aborts on the first failed company,
            "continue" records the failure and moves on.
        memory_limit_mb: Clear the cache once its estimated size exceeds
            this many megabytes.
        worker_count: Worker threads in parallel mode; defaults to
            min(ceil(n / 50), 4).
        assumptions: Estimation constants for the sector ratios.
        validate: Also run the validator for each company.
    """

    parallel: bool = False
    cache: CachePort | None = None
    error_handling: str = CONTINUE
    memory_limit_mb: float | None = None
    worker_count: int | None = None
    assumptions: EstimationAssumptions = DEFAULT_ASSUMPTIONS
    validate: bool = False

    def __post_init__(self) -> None:
        if self.error_handling not in ERROR_HANDLING_MODES:
            raise ValueError(
                f"error_handling must be one of {ERROR_HANDLING_MODES}, "
                f"got {self.error_handling!r}"
            )
        if self.worker_count is not None and self.worker_count <= 0:
            raise ValueError(f"worker_count must be positive, got {self.worker_count}")


def optimal_worker_count(n_companies: int, config: BatchConfig = DEFAULT_BATCH_CONFIG) -> int:
    """min(ceil(n / companies_per_worker), max_workers), at least 1."""
    return max(1, min(math.ceil(n_companies / config.companies_per_worker), config.max_workers))


# --- Chunk processing ---


@dataclass
class _ChunkOutcome:
    results: list[CompanyResult] = field(default_factory=list)
    cache_hits: int = 0
    error_count: int = 0
    memory_recovery_events: int = 0
    aborted: bool = False


def _compute(payload: RawCompanyPayload, options: BatchOptions) -> CompanyResult:
    start = time.perf_counter()
    try:
        analysis = analyze_payload(
            payload, assumptions=options.assumptions, validate=options.validate
        )
    except Exception as exc:
        logger.exception("%s: unexpected error during calculation", payload.company_id)
        return CompanyResult(
            company_id=payload.company_id,
            company_type=payload.company_type,
            success=False,
            errors=(f"internal_error: {exc}",),
        )
    elapsed = time.perf_counter() - start
    if not analysis.success:
        return CompanyResult(
            company_id=payload.company_id,
            company_type=payload.company_type,
            success=False,
            calculation_time=elapsed,
            errors=analysis.errors,
            analysis=analysis,
        )
    return CompanyResult(
        company_id=payload.company_id,
        company_type=payload.company_type,
        success=True,
        ratios=analysis.ratios,
        calculation_time=elapsed,
        analysis=analysis,
    )


def _recover_memory(cache: CachePort, options: BatchOptions, config: BatchConfig) -> bool:
    if options.memory_limit_mb is None or not isinstance(cache, CalculationCache):
        return False
    limit = options.memory_limit_mb * 1024 * 1024
    if cache.memory_usage(config.bytes_per_cache_entry) <= limit:
        return False
    logger.info("Cache above %.1f MB, clearing %d entries", options.memory_limit_mb, len(cache))
    cache.clear()
    return True


def _run_chunk(
    companies: Sequence[RawCompanyPayload], options: BatchOptions, config: BatchConfig
) -> _ChunkOutcome:
    outcome = _ChunkOutcome()
    cache = options.cache
    for payload in companies:
        key = cache_key(payload) if cache is not None else None
        if cache is not None:
            cached = cache.get(key)
            if cached is not None:
                logger.debug("%s: cache hit", payload.company_id)
                outcome.cache_hits += 1
                outcome.results.append(cached)
                continue

        result = _compute(payload, options)
        if not result.success:
            outcome.error_count += 1
            if options.error_handling == STRICT:
                logger.warning(
                    "%s failed, aborting batch (strict): %s",
                    payload.company_id, ", ".join(result.errors),
                )
                outcome.aborted = True
                return outcome
            outcome.results.append(result)
            continue

        if cache is not None:
            cache.set(key, result)
            if _recover_memory(cache, options, config):
                outcome.memory_recovery_events += 1
        outcome.results.append(result)
    return outcome


def _chunks(
    companies: Sequence[RawCompanyPayload], n_workers: int
) -> list[Sequence[RawCompanyPayload]]:
    size = math.ceil(len(companies) / n_workers)
    return [companies[i:i + size] for i in range(0, len(companies), size)]


def _aborted_result(total_time: float, workers: int) -> BatchResult:
    return BatchResult(
        success=False,
        results=[],
        metrics=BatchMetrics(
            total_time=total_time,
            error_rate=1.0,
            error_count=1,
            success_rate=0.0,
            optimal_worker_count=workers,
        ),
    )


def calculate_batch(
    companies: Sequence[RawCompanyPayload],
    options: BatchOptions | None = None,
    config: BatchConfig = DEFAULT_BATCH_CONFIG,
) -> BatchResult:
    """Calculate ratios for every company in input order.

    Args:
        companies: Sector-tagged payloads.
        options: Batch options (defaults: sequential, no cache, continue).
        config: Worker sizing and cache memory estimate.

    Returns:
        BatchResult. Under strict error handling a single failed company
        yields success=False, no results and zeroed metrics.
    """
    options = options or BatchOptions()
    companies = list(companies)
    n = len(companies)
    start = time.perf_counter()

    if options.parallel and n > 0:
        workers = options.worker_count or optimal_worker_count(n, config)
        chunks = _chunks(companies, workers)
        outcomes: list[_ChunkOutcome | None] = [None] * len(chunks)
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_index = {
                executor.submit(_run_chunk, chunk, options, config): i
                for i, chunk in enumerate(chunks)
            }
            for future in as_completed(future_to_index):
                outcomes[future_to_index[future]] = future.result()
        completed = [o for o in outcomes if o is not None]
        successful_chunks = sum(1 for o in completed if not o.aborted)
        parallel_efficiency = successful_chunks / len(chunks)
        worker_utilization = min(len(chunks) / workers, 1.0)
    else:
        workers = 1
        completed = [_run_chunk(companies, options, config)]
        parallel_efficiency = 1.0
        worker_utilization = 1.0

    total_time = time.perf_counter() - start
    if any(o.aborted for o in completed):
        return _aborted_result(total_time, workers)

    results = [r for o in completed for r in o.results]
    cache_hits = sum(o.cache_hits for o in completed)
    error_count = sum(o.error_count for o in completed)
    successes = [r for r in results if r.success]

    metrics = BatchMetrics(
        total_time=total_time,
        average_time_per_company=total_time / n if n else 0.0,
        throughput=n / total_time if n and total_time > 0 else 0.0,
        cache_hit_rate=cache_hits / n if n else 0.0,
        error_rate=error_count / n if n else 0.0,
        error_count=error_count,
        success_rate=len(successes) / n if n else 1.0,
        non_finance_count=sum(1 for r in successes if r.company_type == NON_FINANCE),
        finance_count=sum(1 for r in successes if r.company_type == FINANCE),
        parallel_efficiency=parallel_efficiency,
        optimal_worker_count=workers,
        worker_utilization=worker_utilization,
        memory_recovery_events=sum(o.memory_recovery_events for o in completed),
    )
    logger.info(
        "Batch: %d companies in %.2fs (%.1f/s), %d errors, cache hit rate %.0f%%",
        n, total_time, metrics.throughput, error_count, metrics.cache_hit_rate * 100,
    )
    return BatchResult(success=True, results=results, metrics=metrics)


class BatchEngine:
    """Batch calculator bound to one cache.

    Args:
        cache: Cache shared by every run of this engine; a new
            CalculationCache from CacheConfig defaults when omitted.
        config: Worker sizing and cache memory estimate.
    """

    def __init__(
        self,
        cache: CalculationCache | None = None,
        config: BatchConfig = DEFAULT_BATCH_CONFIG,
    ) -> None:
        self.cache = cache if cache is not None else CalculationCache.from_config(CacheConfig())
        self.config = config

    def calculate_batch(
        self,
        companies: Sequence[RawCompanyPayload],
        options: BatchOptions | None = None,
    ) -> BatchResult:
        """Run a batch, using the engine cache unless options name another."""
        options = options or BatchOptions()
        if options.cache is None:
            options = replace(options, cache=self.cache)
        return calculate_batch(companies, options, self.config)

    def update_incremental(
        self, companies: Sequence[RawCompanyPayload]
    ) -> IncrementalUpdateResult:
        """Recalculate companies and report which headline ratios moved.

        Companies with a cached result are recalculated and compared with
        it on the headline ratios; the others are calculated fresh and
        reported as "all" changed. The cache is refreshed either way.

        Returns:
            IncrementalUpdateResult.
        """
        options = BatchOptions()
        changed: list[str] = []
        unchanged: list[str] = []
        cache_hits = 0
        updated = 0

        for payload in companies:
            key = cache_key(payload)
            cached = self.cache.get(key)
            fresh = _compute(payload, options)
            if fresh.success:
                self.cache.set(key, fresh)
            if cached is None:
                updated += 1
                changed.append("all")
                continue

            cache_hits += 1
            if not fresh.success:
                continue
            old = asdict(cached.ratios.universal)
            new = asdict(fresh.ratios.universal)
            for metric in HEADLINE_METRICS:
                target = changed if abs(old[metric] - new[metric]) > CHANGE_TOLERANCE else unchanged
                target.append(metric)
            updated += 1

        n = len(companies)
        return IncrementalUpdateResult(
            success=True,
            updated_count=updated,
            cache_utilization=cache_hits / n if n else 0.0,
            changed_metrics=tuple(dict.fromkeys(changed)),
            unchanged_metrics=tuple(dict.fromkeys(unchanged)),
        )

