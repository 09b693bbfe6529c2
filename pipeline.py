"""Turns the three uploaded files into a ``ProcessedResult``.

Parsing fans out to a thread pool (the files are independent) and joins
before any builder runs, so a broken file never produces a partial result.
"""

from concurrent import futures
from enum import Enum
from typing import Optional
import itertools
import logging
import threading

from config import (
    CORRELATIONS_SCHEMA, DEFAULT_SETTINGS, GWAS_SCHEMA, METABOLITE_INFO_SCHEMA,
    DashboardSettings,
)
from data_layer import get_file_source, parse_csv
from models import ProcessedResult
from utils import (
    build_gwas_series, build_metabolite_registry, build_network_data, get_subclass_colors,
)

logger = logging.getLogger(__name__)


class PipelineError(RuntimeError):
    """Aggregate failure of a processing run; ``failures`` holds the causes."""

    def __init__(self, failures: list, message: str = "Failed to process CSV files"):
        self.failures = list(failures)
        super().__init__(message)

    def describe(self) -> str:
        return "\n".join(str(f) for f in self.failures) or str(self)


class PipelineState(str, Enum):
    IDLE = "idle"
    PARSING = "parsing"
    BUILDING = "building"
    READY = "ready"
    FAILED = "failed"


def parse_all(metabolite_info_file, correlations_file, gwas_file,
              settings: DashboardSettings = DEFAULT_SETTINGS):
    """Parse the three files concurrently and return their DataFrames in order.

    Waits for every parse to finish (or the timeout to expire) and raises
    one ``PipelineError`` carrying every failure.
    """
    jobs = [
        (get_file_source(metabolite_info_file), METABOLITE_INFO_SCHEMA),
        (get_file_source(correlations_file), CORRELATIONS_SCHEMA),
        (get_file_source(gwas_file), GWAS_SCHEMA),
    ]

    # Timed-out parses are abandoned, not awaited.
    ex = futures.ThreadPoolExecutor(max_workers=settings.parse_workers)
    try:
        tasks = [ex.submit(parse_csv, source, schema) for source, schema in jobs]
        _, not_done = futures.wait(tasks, timeout=settings.parse_timeout)
    finally:
        ex.shutdown(wait=False, cancel_futures=True)

    failures = []
    for task, (source, _) in zip(tasks, jobs):
        if task in not_done:
            failures.append(TimeoutError(
                f"Parsing '{source.name}' did not finish within {settings.parse_timeout}s"
            ))
        elif task.exception() is not None:
            failures.append(task.exception())

    if failures:
        for failure in failures:
            logger.error("Error processing files: %s", failure)
        raise PipelineError(failures)

    return tuple(task.result() for task in tasks)


def build_result(info_df, correlations_df, gwas_df) -> ProcessedResult:
    """Run the builders on parsed tables. Never raises for row-level problems."""
    registry = build_metabolite_registry(info_df)
    graph = build_network_data(correlations_df, registry)
    series = build_gwas_series(gwas_df, registry)

    logger.info(
        "Processed %d metabolites, %d network nodes, %d edges, %d GWAS points",
        len(registry), len(graph.nodes), len(graph.edges), len(series),
    )
    return ProcessedResult(
        registry=registry,
        graph=graph,
        series=series,
        subclass_colors=get_subclass_colors(series, graph),
    )


def process_files(metabolite_info_file, correlations_file, gwas_file,
                  settings: DashboardSettings = DEFAULT_SETTINGS) -> ProcessedResult:
    """Parse and join the metabolite-info, correlation and GWAS files."""
    info_df, correlations_df, gwas_df = parse_all(
        metabolite_info_file, correlations_file, gwas_file, settings=settings,
    )
    return build_result(info_df, correlations_df, gwas_df)


class DashboardSession:
    """Tracks one user's processing runs.

    Each run gets a token from ``begin_run``; only the newest token may
    publish a result or a failure, so a slow older run cannot overwrite a
    newer one.
    """

    def __init__(self):
        self.state = PipelineState.IDLE
        self.result: Optional[ProcessedResult] = None
        self.error: Optional[PipelineError] = None
        self._tokens = itertools.count(1)
        self._current_token = 0
        self._lock = threading.Lock()

    @property
    def current_token(self) -> int:
        return self._current_token

    def begin_run(self) -> int:
        with self._lock:
            self._current_token = next(self._tokens)
            self.state = PipelineState.PARSING
            self.error = None
            return self._current_token

    def mark_building(self, token: int) -> bool:
        with self._lock:
            if token != self._current_token or self.state != PipelineState.PARSING:
                return False
            self.state = PipelineState.BUILDING
            return True

    def complete(self, token: int, result: ProcessedResult) -> bool:
        with self._lock:
            if token != self._current_token:
                logger.info("Discarding result of stale run %d (current run is %d)", token, self._current_token)
                return False
            self.result = result
            self.state = PipelineState.READY
            return True

    def fail(self, token: int, error: PipelineError) -> bool:
        """Record a failed run. The previously shown result is left in place."""
        with self._lock:
            if token != self._current_token:
                logger.info("Ignoring failure of stale run %d (current run is %d)", token, self._current_token)
                return False
            self.error = error
            self.state = PipelineState.FAILED
            return True

    def reset(self):
        with self._lock:
            self._current_token = next(self._tokens)
            self.state = PipelineState.IDLE
            self.result = None
            self.error = None

    def run(self, metabolite_info_file, correlations_file, gwas_file,
            settings: DashboardSettings = DEFAULT_SETTINGS) -> Optional[ProcessedResult]:
        """Process the files under a fresh token.

        Returns the result, or None when the run was superseded. Raises
        ``PipelineError`` after recording the failure of the current run.
        """
        token = self.begin_run()
        try:
            frames = parse_all(metabolite_info_file, correlations_file, gwas_file, settings=settings)
        except PipelineError as e:
            if not self.fail(token, e):
                return None
            raise

        if not self.mark_building(token):
            return None
        result = build_result(*frames)
        if not self.complete(token, result):
            return None
        return result
