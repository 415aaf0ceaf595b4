"""
errors.py — Failure categories for the nzcensus pipeline.

Every stage raises a subclass of PipelineError so the CLI can stop the run
with a one-line message instead of a traceback.

Usage:
    from nzcensus_shared.errors import StructuralAssumptionError

    if height % block_size:
        raise StructuralAssumptionError(f"{height} rows is not a multiple of {block_size}")
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping


class PipelineError(Exception):
    """Base class for all nzcensus pipeline failures."""


class AcquisitionError(PipelineError):
    """Download or archive extraction failed."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        self.url = url
        if url:
            message = f"{message} (url={url})"
        super().__init__(message)


class StructuralAssumptionError(PipelineError):
    """Input data does not have the positional shape the cleaning relies on."""


class JoinMismatchError(PipelineError):
    """Region names differ between the census table and the boundary dataset."""

    def __init__(
        self,
        census_only: Iterable[str],
        geometry_only: Iterable[str],
        suggestions: Mapping[str, str] | None = None,
    ) -> None:
        self.census_only = sorted(census_only)
        self.geometry_only = sorted(geometry_only)
        self.suggestions = dict(suggestions or {})

        parts = []
        if self.census_only:
            parts.append(f"census regions without geometry: {self.census_only}")
        if self.geometry_only:
            parts.append(f"geometry regions without census counts: {self.geometry_only}")
        if self.suggestions:
            hints = ", ".join(f"{k!r} -> {v!r}" for k, v in self.suggestions.items())
            parts.append(f"possible aliases: {hints}")
        super().__init__("Region names do not match; " + "; ".join(parts))

    @property
    def missing_count(self) -> int:
        return len(self.census_only) + len(self.geometry_only)


class TotalsMismatchError(PipelineError):
    """Per-region age-group sums disagree with the sheet's Total rows."""

    def __init__(self, discrepancies: Mapping[str, Mapping[str, float]]) -> None:
        self.discrepancies = {region: dict(d) for region, d in discrepancies.items()}
        super().__init__(
            f"Age-group sums differ from reported totals for {len(self.discrepancies)} "
            f"region(s): {sorted(self.discrepancies)}"
        )
