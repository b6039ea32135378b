"""
Caller-owned analysis run: one immutable snapshot of inputs in, fresh results out.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Sequence

from .aggregation import aggregate, station_summaries
from .classifier import classify
from .config import AnalysisConfig
from .models import ClassificationResult, DemandRecord, Station, StationProfile, StationSummary, Summary
from .profiles import build_profiles
from .records import parse_records, split_valid

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    summary: Summary
    station_summaries: List[StationSummary]
    profiles: List[StationProfile]
    classification: ClassificationResult
    skipped_records: int = 0


@dataclass
class AnalysisSession:
    records: Sequence[DemandRecord]
    stations: Sequence[Station]
    config: AnalysisConfig = field(default_factory=AnalysisConfig)
    # Rows already dropped while parsing, before any record reached the session
    parse_skipped: int = 0

    @classmethod
    def from_rows(
        cls,
        rows: Iterable[Mapping[str, Any]],
        stations: Sequence[Station],
        config: AnalysisConfig = None,
    ) -> "AnalysisSession":
        """Session over raw store rows; schema rejects count towards skipped_records."""
        records, skipped = parse_records(rows)
        return cls(records, stations, config or AnalysisConfig(), parse_skipped=skipped)

    def run(self) -> AnalysisResult:
        valid, range_skipped = split_valid(self.records)
        skipped = self.parse_skipped + range_skipped
        logger.info(
            f"Analyzing {len(valid)} records for {len(self.stations)} stations "
            f"({self.config.policy.value} policy, {self.config.observed_day_count} days, "
            f"{skipped} records skipped)"
        )

        summary = aggregate(valid)
        profiles = build_profiles(
            valid,
            self.stations,
            self.config.observed_day_count,
            prefer_authoritative=self.config.prefer_authoritative_totals,
        )

        return AnalysisResult(
            summary=summary.model_copy(update={"skipped_records": skipped}),
            station_summaries=station_summaries(valid, self.stations),
            profiles=profiles,
            classification=classify(profiles, self.config),
            skipped_records=skipped,
        )
