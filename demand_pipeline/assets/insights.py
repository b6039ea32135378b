import json
import polars as pl
from dagster import asset, Output
from stationpulse.aggregation import aggregate, merge_station_metrics, station_summaries
from stationpulse.config import AnalysisConfig
from stationpulse.frames import stations_from_rows
from stationpulse.insights import (
    demand_tiers,
    overview,
    peak_hour_insight,
    recommended_stations,
    space_insights,
    time_insights,
)
from stationpulse.records import parse_records
from .ingestion import fetch_demand_records, fetch_stations
from .constants import INSIGHTS_FILE

@asset(group_name="reporting")
def generate_insights(fetch_demand_records: pl.DataFrame, fetch_stations: pl.DataFrame):
    """
    City-wide findings for the overview screen: busiest and quietest hours,
    weekday vs weekend, station spread, demand tiers, the most common peak
    hour and recommended stations.
    """
    records, _ = parse_records(fetch_demand_records.iter_rows(named=True))
    stations = stations_from_rows(fetch_stations.iter_rows(named=True))

    # 1. Aggregate the whole record set
    summary = aggregate(records)
    print(f"Aggregated {summary.record_count} records, {summary.skipped_records} skipped.")

    # 2. Station totals: metadata where present, derived otherwise
    station_totals = merge_station_metrics(stations, station_summaries(records, stations))

    # 3. Format
    insights = {
        "time": time_insights(summary),
        "space": space_insights(station_totals),
        "tiers": demand_tiers(station_totals),
        "peak_hours": peak_hour_insight(station_totals),
        "recommendations": recommended_stations(station_totals),
        "overview": overview(station_totals, records, AnalysisConfig.from_env().observed_day_count),
        "summary": summary.model_dump(mode="json"),
    }

    print(f"--- SAVING INSIGHTS TO {INSIGHTS_FILE} ---")
    with open(INSIGHTS_FILE, "w") as f:
        json.dump(insights, f, indent=2, ensure_ascii=False)

    return Output(insights, metadata={"file": INSIGHTS_FILE, "records": summary.record_count})
