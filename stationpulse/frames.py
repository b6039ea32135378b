"""
Conversions between domain models and polars frames / plain row dicts.
"""
from typing import Any, Iterable, List, Mapping, Sequence

import polars as pl

from .aggregation import records_frame
from .models import DemandRecord, Station, StationProfile
from .profiles import derive_features

STATION_SCHEMA = {
    "station_id": pl.Int64,
    "name": pl.Utf8,
    "latitude": pl.Float64,
    "longitude": pl.Float64,
    "address": pl.Utf8,
    "total_demand": pl.Float64,
    "avg_demand": pl.Float64,
    "max_demand": pl.Float64,
    "peak_hour": pl.Int64,
    "demand_level": pl.Int64,
}

FEATURE_COLUMNS = ["morning_ratio", "evening_ratio", "afternoon_ratio", "night_ratio", "cv"]


def records_table(records: Sequence[DemandRecord]) -> pl.DataFrame:
    return records_frame(records).drop("is_weekend")


def stations_table(stations: Sequence[Station]) -> pl.DataFrame:
    return pl.DataFrame([s.model_dump() for s in stations], schema=STATION_SCHEMA)


def stations_from_rows(rows: Iterable[Mapping[str, Any]]) -> List[Station]:
    return [Station.model_validate(row) for row in rows]


def profiles_table(profiles: Sequence[StationProfile]) -> pl.DataFrame:
    data = {
        "station_id": [p.station_id for p in profiles],
        "name": [p.name for p in profiles],
        "total_demand": [p.total_demand for p in profiles],
        "hourly_average": [p.hourly_average for p in profiles],
    }
    for column in FEATURE_COLUMNS:
        data[column] = [getattr(p.features, column) for p in profiles]

    schema = {
        "station_id": pl.Int64,
        "name": pl.Utf8,
        "total_demand": pl.Float64,
        "hourly_average": pl.List(pl.Float64),
        **{column: pl.Float64 for column in FEATURE_COLUMNS},
    }
    return pl.DataFrame(data, schema=schema)


def profiles_from_rows(rows: Iterable[Mapping[str, Any]]) -> List[StationProfile]:
    """Rebuilds profiles; features are re-derived from the stored curve."""
    profiles = []
    for row in rows:
        curve = [float(v) for v in row["hourly_average"]]
        profiles.append(StationProfile(
            station_id=int(row["station_id"]),
            name=row.get("name") or "",
            hourly_average=curve,
            total_demand=float(row["total_demand"]),
            features=derive_features(curve),
        ))
    return profiles
