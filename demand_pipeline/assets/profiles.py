import polars as pl
from dagster import asset, Output
from stationpulse.config import AnalysisConfig
from stationpulse.frames import profiles_table, stations_from_rows
from stationpulse.profiles import build_profiles
from stationpulse.records import parse_records
from .ingestion import fetch_demand_records, fetch_stations
from .constants import PROFILES_FILE

@asset(group_name="analysis")
def build_station_profiles(fetch_demand_records: pl.DataFrame, fetch_stations: pl.DataFrame):
    """
    Builds each station's average day (24 hourly means over the observation window).

    The day count comes from configuration (STATIONPULSE_OBSERVED_DAYS), never
    from the data, so every run divides by the same window.
    """
    config = AnalysisConfig.from_env()

    records, skipped = parse_records(fetch_demand_records.iter_rows(named=True))
    stations = stations_from_rows(fetch_stations.iter_rows(named=True))

    print(f"--- BUILDING PROFILES FOR {len(stations)} STATIONS OVER {config.observed_day_count} DAYS ---")
    profiles = build_profiles(
        records,
        stations,
        config.observed_day_count,
        prefer_authoritative=config.prefer_authoritative_totals,
    )

    profiles_df = profiles_table(profiles)

    print(f"--- SAVING PROFILES TO {PROFILES_FILE} ---")
    profiles_df.write_parquet(PROFILES_FILE)

    return Output(
        profiles_df,
        metadata={
            "stations": len(profiles_df),
            "observed_days": config.observed_day_count,
            "skipped_records": skipped,
        }
    )
