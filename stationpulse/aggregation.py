"""
Aggregation engine: record-set statistics, hour/day splits and station ranking.
"""
import logging
import math
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import polars as pl

from .models import (
    HOURS_PER_DAY,
    DemandRecord,
    RankedStation,
    Station,
    StationInfo,
    StationSummary,
    Summary,
    TimeSlot,
)
from .records import split_valid

logger = logging.getLogger(__name__)

RANKING_METRICS = {
    "total": "total_demand",
    "avg": "avg_demand",
    "peak": "max_demand",
}

RECORD_SCHEMA = {
    "station_id": pl.Int64,
    "date": pl.Date,
    "hour": pl.Int64,
    "demand": pl.Float64,
    "is_weekend": pl.Boolean,
}


def records_frame(records: Sequence[DemandRecord]) -> pl.DataFrame:
    """Columnar view of the record set, in input order."""
    return pl.DataFrame(
        {
            "station_id": [r.station_id for r in records],
            "date": [r.date for r in records],
            "hour": [r.hour for r in records],
            "demand": [float(r.demand) for r in records],
            # Saturday = 5, Sunday = 6
            "is_weekend": [r.date.weekday() >= 5 for r in records],
        },
        schema=RECORD_SCHEMA,
    )


def hourly_totals(df: pl.DataFrame) -> List[float]:
    """Demand summed per hour of day, 24 slots."""
    totals = [0.0] * HOURS_PER_DAY
    by_hour = df.group_by("hour").agg(pl.col("demand").sum().alias("total"))
    for row in by_hour.iter_rows(named=True):
        totals[row["hour"]] = float(row["total"])
    return totals


def aggregate(records: Sequence[DemandRecord]) -> Summary:
    """
    Summarizes a bounded record set.

    Out-of-range records are skipped and reported in `skipped_records`.
    An empty set yields an all-zero summary.
    """
    valid, skipped = split_valid(records)
    if not valid:
        return Summary(skipped_records=skipped)

    df = records_frame(valid)
    values = df["demand"].to_numpy()

    count = len(values)
    total = float(values.sum())
    average = total / count
    std_dev = float(np.std(values))  # population

    # argmax/argmin return the first occurrence in input order
    peak_idx = int(np.argmax(values))
    valley_idx = int(np.argmin(values))
    peak = valid[peak_idx]
    valley = valid[valley_idx]

    # Weekday vs weekend split; an empty group averages to 0
    day_split = {True: (0.0, 0), False: (0.0, 0)}
    grouped = df.group_by("is_weekend").agg(
        pl.col("demand").sum().alias("total"),
        pl.col("demand").count().alias("count"),
    )
    for row in grouped.iter_rows(named=True):
        day_split[row["is_weekend"]] = (float(row["total"]), int(row["count"]))

    weekend_total, weekend_count = day_split[True]
    weekday_total, weekday_count = day_split[False]

    return Summary(
        record_count=count,
        total_demand=total,
        average_demand=average,
        max_demand=float(values[peak_idx]),
        min_demand=float(values[valley_idx]),
        peak_time=TimeSlot(date=peak.date, hour=peak.hour),
        valley_time=TimeSlot(date=valley.date, hour=valley.hour),
        std_dev=std_dev,
        cv=std_dev / average if average > 0 else 0.0,
        weekday_average=weekday_total / weekday_count if weekday_count else 0.0,
        weekend_average=weekend_total / weekend_count if weekend_count else 0.0,
        weekday_count=weekday_count,
        weekend_count=weekend_count,
        hourly_totals=hourly_totals(df),
        skipped_records=skipped,
    )


def station_summaries(
    records: Sequence[DemandRecord],
    stations: Optional[Sequence[Station]] = None,
) -> List[StationSummary]:
    """
    Per-station totals derived from the record set.
    Peak hour is the hour of day with the highest summed demand (earliest on ties).
    """
    valid, _ = split_valid(records)
    names = {s.station_id: s.name for s in stations or []}
    if not valid:
        return []

    df = records_frame(valid)
    per_station = df.group_by("station_id", maintain_order=True).agg(
        pl.col("demand").sum().alias("total_demand"),
        pl.col("demand").mean().alias("avg_demand"),
        pl.col("demand").max().alias("max_demand"),
        pl.col("demand").count().alias("record_count"),
    )

    peak_hours = (
        df.group_by(["station_id", "hour"])
        .agg(pl.col("demand").sum().alias("total"))
        .sort(["station_id", "total", "hour"], descending=[False, True, False])
        .group_by("station_id", maintain_order=True)
        .agg(pl.col("hour").first().alias("peak_hour"))
    )

    joined = per_station.join(peak_hours, on="station_id", how="left")

    return [
        StationSummary(
            station_id=row["station_id"],
            name=names.get(row["station_id"], ""),
            total_demand=float(row["total_demand"]),
            avg_demand=float(row["avg_demand"]),
            max_demand=float(row["max_demand"]),
            peak_hour=row["peak_hour"],
            record_count=int(row["record_count"]),
        )
        for row in joined.iter_rows(named=True)
    ]


def station_info(station: Station, records: Sequence[DemandRecord]) -> StationInfo:
    """
    Detail view of one station. Demand figures come from its own records,
    not from the precomputed metadata.
    """
    summary = aggregate([r for r in records if r.station_id == station.station_id])
    return StationInfo(
        station_id=station.station_id,
        name=station.name,
        latitude=station.latitude,
        longitude=station.longitude,
        address=station.address,
        total_demand=summary.total_demand,
        avg_demand=round(summary.average_demand, 1),
        max_demand=summary.max_demand,
        record_count=summary.record_count,
    )


def demand_level(total_demand: float) -> int:
    """Absolute demand tier 1 (low) to 4 (very high)."""
    if total_demand < 50000:
        return 1
    if total_demand < 100000:
        return 2
    if total_demand < 150000:
        return 3
    return 4


def _metric_value(item, field: str) -> float:
    value = getattr(item, field, None)
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return 0.0
    return float(value)


def quartile_levels(totals: Sequence[float]) -> List[int]:
    """
    Demand level of each total relative to the population's quartiles.
    """
    if not totals:
        return []
    ordered = sorted(totals)
    n = len(ordered)
    q1 = ordered[math.floor(n * 0.25)]
    q2 = ordered[math.floor(n * 0.5)]
    q3 = ordered[math.floor(n * 0.75)]

    levels = []
    for total in totals:
        if total <= q1:
            levels.append(1)
        elif total <= q2:
            levels.append(2)
        elif total <= q3:
            levels.append(3)
        else:
            levels.append(4)
    return levels


def rank_stations(
    items: Sequence[Union[Station, StationSummary]],
    metric: str = "total",
    limit: Optional[int] = None,
) -> List[RankedStation]:
    """
    Ranks stations by total, average or peak demand, descending.
    The sort is stable, so tied stations keep their input order.
    """
    if metric not in RANKING_METRICS:
        raise ValueError(f"Unknown ranking metric '{metric}', expected one of {sorted(RANKING_METRICS)}")
    field = RANKING_METRICS[metric]

    ordered = sorted(items, key=lambda s: _metric_value(s, field), reverse=True)
    if not ordered:
        return []

    totals = [_metric_value(s, "total_demand") for s in ordered]
    levels = quartile_levels(totals)
    top = _metric_value(ordered[0], field)

    ranked = []
    for position, (item, level) in enumerate(zip(ordered, levels)):
        value = _metric_value(item, field)
        ranked.append(RankedStation(
            rank=position + 1,
            station_id=item.station_id,
            name=item.name,
            value=value,
            percent_of_top=value / top * 100 if top > 0 else 0.0,
            demand_level=level,
        ))

    if limit is not None:
        ranked = ranked[:limit]
    return ranked


def summaries_by_station(summaries: Sequence[StationSummary]) -> Dict[int, StationSummary]:
    return {s.station_id: s for s in summaries}


def merge_station_metrics(
    stations: Sequence[Station],
    summaries: Sequence[StationSummary],
) -> List[StationSummary]:
    """
    One summary per station. Precomputed metadata fields win; fields the
    store left empty are filled from the record-derived summary.
    """
    derived = summaries_by_station(summaries)
    merged = []
    for station in stations:
        base = derived.get(station.station_id) or StationSummary(station_id=station.station_id)
        overrides = {
            field: getattr(station, field)
            for field in ("total_demand", "avg_demand", "max_demand", "peak_hour")
            if getattr(station, field) is not None
        }
        merged.append(base.model_copy(update={"name": station.name, **overrides}))
    return merged
