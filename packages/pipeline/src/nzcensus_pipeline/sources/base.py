"""
sources/base.py — Abstract base class for the pipeline's data sources.

Each concrete source must implement:
  extract()      — fetch raw data into memory (polars or geopandas frame)
  transform()    — clean/normalize the raw frame into the stage's schema
  get_metadata() — return dict with source info, logged on source_run_start

The run() method orchestrates extract → transform → return and handles
timing/logging automatically. Pipelines call run() rather than the
individual methods.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

import structlog

log = structlog.get_logger(__name__)

RawT = TypeVar("RawT")
OutT = TypeVar("OutT")


def _shape(frame: Any) -> tuple[int, int]:
    """(rows, columns) for either a polars or a (geo)pandas frame."""
    return len(frame), len(frame.columns)


class BaseSource(ABC, Generic[RawT, OutT]):
    """Abstract base for the nzcensus data source adapters."""

    # Override in subclass; used for logging
    name: str = "unknown"

    def __init__(self) -> None:
        self._log = log.bind(source_name=self.name)

    # ------------------------------------------------------------------
    # Abstract interface: subclasses implement extract, transform, get_metadata
    # ------------------------------------------------------------------

    @abstractmethod
    async def extract(self, **kwargs: Any) -> RawT:
        """
        Fetch raw data from the remote source.

        Implementations should:
        - Download into run-scoped temporary storage
        - Load the data fully into memory
        - Remove the temporary files before returning

        Returns:
            Raw frame with the original columns preserved.
        """
        ...

    @abstractmethod
    def transform(self, raw: RawT) -> OutT:
        """
        Clean and normalize a raw frame into the stage's output schema.

        Args:
            raw: Frame returned by extract().

        Returns:
            Normalized frame ready for the join stage.
        """
        ...

    @abstractmethod
    async def get_metadata(self) -> dict[str, Any]:
        """Return source-level metadata (source_name, url, description)."""
        ...

    # ------------------------------------------------------------------
    # Orchestration: pipelines call this
    # ------------------------------------------------------------------

    async def run(self, **kwargs: Any) -> OutT:
        """
        Extract + transform in sequence with timing and structured logging.

        Args:
            **kwargs: Forwarded to extract().

        Returns:
            Transformed frame.

        Raises:
            Any exception from extract() or transform() after logging it.
        """
        run_log = self._log.bind(**{k: str(v) for k, v in kwargs.items()})
        # source_name is already bound on the logger
        metadata = {k: v for k, v in (await self.get_metadata()).items() if k != "source_name"}
        run_log.info("source_run_start", **metadata)

        t0 = time.monotonic()
        try:
            raw = await self.extract(**kwargs)
            raw_rows, raw_cols = _shape(raw)
            run_log.info(
                "extract_complete",
                raw_rows=raw_rows,
                raw_cols=raw_cols,
                duration_ms=int((time.monotonic() - t0) * 1000),
            )

            t1 = time.monotonic()
            result = self.transform(raw)
            rows, cols = _shape(result)
            run_log.info(
                "transform_complete",
                result_rows=rows,
                result_cols=cols,
                duration_ms=int((time.monotonic() - t1) * 1000),
            )

            run_log.info(
                "source_run_complete",
                total_duration_ms=int((time.monotonic() - t0) * 1000),
                output_rows=rows,
            )
            return result

        except Exception as exc:
            run_log.error(
                "source_run_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                duration_ms=int((time.monotonic() - t0) * 1000),
            )
            raise
