"""
Pattern classifier.

Two interchangeable policies assign every station profile to exactly one
behavioral pattern:

- ThresholdClassifier: low-frequency cut at a fraction of the median total,
  then fixed ratio/cv rules evaluated per station.
- QuotaClassifier: successive rank cutoffs (lowest totals, highest night
  share, highest morning+evening ratio, highest afternoon ratio) on window
  means, sized as fractions of the population still unassigned.
"""
import logging
import math
from typing import Dict, List, Protocol, Sequence, Tuple

import numpy as np

from .config import AnalysisConfig, Policy, QuotaFractions
from .models import (
    HOURS_PER_DAY,
    PATTERN_ORDER,
    ClassificationResult,
    ClusterStats,
    DerivedFeatures,
    PatternAssignment,
    PatternType,
    QuotaFeatures,
    StationProfile,
)
from .profiles import quota_features

logger = logging.getLogger(__name__)

# Absorbs float error in population * fraction before flooring
QUOTA_EPSILON = 1e-9


class Classifier(Protocol):
    """
    Protocol for a station pattern classification policy.
    """
    name: str

    def classify(self, profiles: Sequence[StationProfile]) -> List[PatternAssignment]:
        ...


class ThresholdClassifier:
    name = Policy.THRESHOLD.value

    def __init__(self, low_freq_threshold_factor: float = 0.3):
        self.low_freq_threshold_factor = low_freq_threshold_factor

    def classify(self, profiles: Sequence[StationProfile]) -> List[PatternAssignment]:
        if not profiles:
            return []

        totals = np.array([p.total_demand for p in profiles], dtype=float)
        median = float(np.median(totals))
        threshold = median * self.low_freq_threshold_factor
        logger.info(
            f"Threshold classification: mean total={totals.mean():.0f}, "
            f"median={median:.0f}, low-frequency threshold={threshold:.0f}"
        )

        assignments = []
        for profile in profiles:
            if profile.total_demand < threshold:
                pattern = PatternType.LOW_FREQUENCY
                reason = f"total demand {profile.total_demand:.0f} below threshold {threshold:.0f}"
            else:
                pattern, reason = self.shape_rule(profile.features)
            assignments.append(PatternAssignment(
                station_id=profile.station_id, pattern_type=pattern, reason=reason
            ))
        return assignments

    @staticmethod
    def shape_rule(f: DerivedFeatures) -> Tuple[PatternType, str]:
        """First matching rule wins; the fallback never yields NIGHT."""
        if f.morning_ratio > 1.5 and f.evening_ratio > 1.5 and f.cv > 0.4:
            return PatternType.COMMUTE, "strong morning and evening peaks"

        if f.night_ratio > 1.4 and f.night_peak > f.morning_peak and f.night_peak > f.evening_peak:
            return PatternType.NIGHT, "night peak dominates"

        if (f.afternoon_ratio > 1.3 and f.afternoon_peak > f.morning_peak
                and f.afternoon_peak > f.evening_peak):
            return PatternType.LEISURE, "single afternoon peak"

        if f.cv < 0.35:
            return PatternType.BALANCED, "flat demand across the day"

        # Fallback on the largest window peak
        max_peak = max(f.morning_peak, f.afternoon_peak, f.evening_peak, f.night_peak)
        if max_peak == f.morning_peak or max_peak == f.evening_peak:
            return PatternType.COMMUTE, "largest peak in a commute window"
        if max_peak == f.afternoon_peak:
            return PatternType.LEISURE, "largest peak in the afternoon"
        return PatternType.BALANCED, "no dominant daytime peak"


def quota_size(population: int, fraction: float) -> int:
    return min(population, int(math.floor(population * fraction + QUOTA_EPSILON)))


class QuotaClassifier:
    name = Policy.QUOTA.value

    def __init__(self, fractions: QuotaFractions = None):
        self.fractions = fractions or QuotaFractions()

    def classify(self, profiles: Sequence[StationProfile]) -> List[PatternAssignment]:
        # Work on input positions so duplicate ids cannot collide
        indexed = list(enumerate(profiles))
        features: Dict[int, QuotaFeatures] = {
            idx: quota_features(profile.hourly_average) for idx, profile in indexed
        }
        assigned: Dict[int, PatternAssignment] = {}

        def assign(pool, pattern, reason_for):
            for idx, profile in pool:
                assigned[idx] = PatternAssignment(
                    station_id=profile.station_id,
                    pattern_type=pattern,
                    reason=reason_for(features[idx]),
                )

        # 1. Lowest totals
        by_total = sorted(indexed, key=lambda item: item[1].total_demand, reverse=True)
        n_low = quota_size(len(by_total), self.fractions.low_freq)
        cut = len(by_total) - n_low
        assign(by_total[cut:], PatternType.LOW_FREQUENCY, lambda f: "lowest total demand")
        remaining = by_total[:cut]

        # 2. Highest night share
        by_night = sorted(remaining, key=lambda item: features[item[0]].night_ratio, reverse=True)
        night = by_night[:quota_size(len(remaining), self.fractions.night)]
        assign(night, PatternType.NIGHT,
               lambda f: f"night hours carry {f.night_ratio:.1%} of daily demand")
        remaining = [item for item in remaining if item[0] not in assigned]

        # 3. Highest morning + evening ratio
        by_commute = sorted(
            remaining,
            key=lambda item: features[item[0]].morning_ratio + features[item[0]].evening_ratio,
            reverse=True,
        )
        commute = by_commute[:quota_size(len(remaining), self.fractions.commute)]
        assign(commute, PatternType.COMMUTE, lambda f: "pronounced morning and evening peaks")
        remaining = [item for item in remaining if item[0] not in assigned]

        # 4. Highest afternoon ratio
        by_afternoon = sorted(remaining, key=lambda item: features[item[0]].afternoon_ratio, reverse=True)
        leisure = by_afternoon[:quota_size(len(remaining), self.fractions.leisure)]
        assign(leisure, PatternType.LEISURE, lambda f: "pronounced afternoon peak")
        remaining = [item for item in remaining if item[0] not in assigned]

        # 5. Everything left
        assign(remaining, PatternType.BALANCED, lambda f: "relatively balanced demand")

        return [assigned[idx] for idx, _ in indexed]


def make_classifier(config: AnalysisConfig) -> Classifier:
    if config.policy == Policy.QUOTA:
        return QuotaClassifier(config.quota_fractions)
    return ThresholdClassifier(config.low_freq_threshold_factor)


def typical_curve(curves: Sequence[Sequence[float]]) -> List[float]:
    """
    Member-wise average of 24-point curves, scaled so the maximum is 100.
    All-zero (or no) input stays all-zero.
    """
    if not curves:
        return [0.0] * HOURS_PER_DAY

    mean_curve = np.asarray(curves, dtype=float).mean(axis=0)
    peak = mean_curve.max()
    if peak <= 0:
        return [0.0] * HOURS_PER_DAY
    return (mean_curve / peak * 100).tolist()


def cluster_stats(
    assignments: Sequence[PatternAssignment],
    profiles: Sequence[StationProfile],
) -> List[ClusterStats]:
    """One entry per pattern, including empty ones, in canonical order."""
    curves = {p.station_id: p.hourly_average for p in profiles}

    members: Dict[PatternType, List[int]] = {pattern: [] for pattern in PATTERN_ORDER}
    for assignment in assignments:
        members[assignment.pattern_type].append(assignment.station_id)

    return [
        ClusterStats(
            pattern_type=pattern,
            member_count=len(members[pattern]),
            typical_curve=typical_curve([curves[sid] for sid in members[pattern] if sid in curves]),
            member_station_ids=members[pattern],
        )
        for pattern in PATTERN_ORDER
    ]


def classify(profiles: Sequence[StationProfile], config: AnalysisConfig = None) -> ClassificationResult:
    """Classifies with the policy selected in `config` and builds the clusters."""
    config = config or AnalysisConfig()
    classifier = make_classifier(config)

    assignments = classifier.classify(profiles)
    clusters = cluster_stats(assignments, profiles)

    logger.info(
        f"{classifier.name} classification of {len(profiles)} stations: "
        + ", ".join(f"{c.pattern_type.value}={c.member_count}" for c in clusters)
    )
    return ClassificationResult(policy=classifier.name, assignments=assignments, clusters=clusters)
