"""
Profile builder: 24-slot average demand curves and their shape features.
"""
import logging
from typing import List, Optional, Sequence

import numpy as np

from .errors import ConfigurationError
from .models import HOURS_PER_DAY, DemandRecord, DerivedFeatures, QuotaFeatures, Station, StationProfile
from .records import group_by_station, split_valid

logger = logging.getLogger(__name__)

# Hour-of-day windows (inclusive start, exclusive end)
MORNING_HOURS = slice(7, 10)
NOON_HOURS = slice(11, 14)
AFTERNOON_HOURS = slice(14, 17)
EVENING_HOURS = slice(17, 20)
NIGHT_HOURS = slice(20, 24)

# Window means ranked by the quota policy
QUOTA_MORNING_HOURS = slice(7, 9)
QUOTA_EVENING_HOURS = slice(17, 19)
QUOTA_AFTERNOON_HOURS = slice(14, 17)
QUOTA_LATE_HOURS = slice(22, 24)
QUOTA_EARLY_HOURS = slice(0, 6)


def derive_features(hourly_average: Sequence[float]) -> DerivedFeatures:
    """
    Window peaks, peak-to-mean ratios and coefficient of variation of a profile.
    A zero-mean profile has all ratios and cv equal to 0.
    """
    curve = np.asarray(hourly_average, dtype=float)
    mean = float(curve.mean()) if curve.size else 0.0

    peaks = {
        "morning_peak": float(curve[MORNING_HOURS].max()),
        "noon_peak": float(curve[NOON_HOURS].max()),
        "afternoon_peak": float(curve[AFTERNOON_HOURS].max()),
        "evening_peak": float(curve[EVENING_HOURS].max()),
        "night_peak": float(curve[NIGHT_HOURS].max()),
    }

    if mean <= 0:
        return DerivedFeatures(mean=0.0, **peaks)

    return DerivedFeatures(
        morning_ratio=peaks["morning_peak"] / mean,
        evening_ratio=peaks["evening_peak"] / mean,
        afternoon_ratio=peaks["afternoon_peak"] / mean,
        night_ratio=peaks["night_peak"] / mean,
        cv=float(curve.std()) / mean,
        mean=mean,
        **peaks,
    )


def quota_features(hourly_average: Sequence[float]) -> QuotaFeatures:
    """
    Window means of a profile relative to its 24h mean, as ranked by the
    quota policy. The night value adds the 22-23h mean to the 0-5h mean and
    is divided by the daily total, not the mean.
    """
    curve = np.asarray(hourly_average, dtype=float)
    total = float(curve.sum())
    mean = total / HOURS_PER_DAY
    if mean <= 0:
        return QuotaFeatures()

    morning = float(curve[QUOTA_MORNING_HOURS].mean())
    evening = float(curve[QUOTA_EVENING_HOURS].mean())
    afternoon = float(curve[QUOTA_AFTERNOON_HOURS].mean())
    night = float(curve[QUOTA_LATE_HOURS].mean() + curve[QUOTA_EARLY_HOURS].mean())

    return QuotaFeatures(
        morning_ratio=morning / mean,
        evening_ratio=evening / mean,
        afternoon_ratio=afternoon / mean,
        night_ratio=night / total,
        cv=float(curve.std()) / mean,
        morning=morning,
        evening=evening,
        afternoon=afternoon,
        night=night,
    )


def build_profile(
    station_id: int,
    records: Sequence[DemandRecord],
    observed_day_count: int,
    prefer_authoritative: bool = False,
    station: Optional[Station] = None,
) -> StationProfile:
    """
    Builds a station's average day.

    Each hour slot is the summed demand at that hour divided by
    `observed_day_count`, not by the number of records in the slot, so
    sparse hours are diluted over the whole observation window.
    """
    if observed_day_count < 1:
        raise ConfigurationError(f"observed_day_count must be >= 1, got {observed_day_count}")

    valid, _ = split_valid(r for r in records if r.station_id == station_id)

    sums = np.zeros(HOURS_PER_DAY)
    for record in valid:
        sums[record.hour] += record.demand

    hourly_average = sums / observed_day_count
    total_demand = float(hourly_average.sum() * observed_day_count)

    if prefer_authoritative and station is not None and station.total_demand is not None:
        total_demand = float(station.total_demand)

    return StationProfile(
        station_id=station_id,
        name=station.name if station is not None else "",
        hourly_average=hourly_average.tolist(),
        total_demand=total_demand,
        features=derive_features(hourly_average),
    )


def build_profiles(
    records: Sequence[DemandRecord],
    stations: Sequence[Station],
    observed_day_count: int,
    prefer_authoritative: bool = False,
) -> List[StationProfile]:
    """
    One profile per station, in station order. Stations with no records
    get an all-zero profile. Records of unknown stations are ignored.
    """
    grouped = group_by_station(records)

    unknown = set(grouped) - {s.station_id for s in stations}
    if unknown:
        logger.warning(f"{len(unknown)} stations have demand records but no metadata; ignored")

    return [
        build_profile(
            station.station_id,
            grouped.get(station.station_id, []),
            observed_day_count,
            prefer_authoritative=prefer_authoritative,
            station=station,
        )
        for station in stations
    ]
