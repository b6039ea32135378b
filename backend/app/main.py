from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from . import db
from .schemas import ClusterSummary, FavoriteOut, InsightsOut, OverviewOut, PatternMeta, StationOut
import datetime
import os
import logging
import polars as pl
from dotenv import load_dotenv
from pathlib import Path
from typing import List, Literal, Optional

from stationpulse.aggregation import (
    aggregate,
    demand_level,
    merge_station_metrics,
    rank_stations,
    station_info,
    station_summaries,
)
from stationpulse.classifier import classify
from stationpulse.config import AnalysisConfig, Policy
from stationpulse.config import data_dir as processed_data_dir
from stationpulse.errors import CollaboratorError, ConfigurationError
from stationpulse.frames import profiles_from_rows, stations_from_rows
from stationpulse.insights import (
    PATTERN_META,
    demand_tiers,
    overview,
    pattern_descriptions,
    peak_hour_insight,
    recommended_stations,
    space_insights,
    time_insights,
)
from stationpulse.models import DemandRecord, RankedStation, Station, StationInfo, StationProfile, Summary
from stationpulse.records import parse_records
from stationpulse.store import DEFAULT_STORE_URL, DocumentStoreClient

# Load settings
load_dotenv()

# Configure Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="StationPulse")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Dependencies ---

def get_data_dir() -> Path:
    # Same directory the pipeline writes to
    return processed_data_dir()

def get_config() -> AnalysisConfig:
    return AnalysisConfig.from_env()

def get_store() -> DocumentStoreClient:
    return DocumentStoreClient(os.getenv("STATIONPULSE_STORE_URL", DEFAULT_STORE_URL))

@app.exception_handler(CollaboratorError)
async def collaborator_error_handler(request, exc: CollaboratorError):
    logger.error(f"Data access failed: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})

@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request, exc: ConfigurationError):
    logger.error(f"Bad configuration: {exc}")
    return JSONResponse(status_code=500, content={"detail": str(exc)})

# --- Data Loading (per request, no module-level cache) ---

def load_stations(data_dir: Path) -> List[Station]:
    rows = db.scan_parquet(data_dir / "stations.parquet", order_by="station_id")
    return stations_from_rows(rows)

def load_records(
    data_dir: Path,
    station_id: Optional[int] = None,
    start: Optional[datetime.date] = None,
    end: Optional[datetime.date] = None,
) -> List[DemandRecord]:
    clauses, params = [], []
    if station_id is not None:
        clauses.append("station_id = ?")
        params.append(station_id)
    if start is not None:
        clauses.append("date >= CAST(? AS DATE)")
        params.append(start.isoformat())
    if end is not None:
        clauses.append("date <= CAST(? AS DATE)")
        params.append(end.isoformat())

    rows = db.scan_parquet(
        data_dir / "demand_records.parquet",
        columns="station_id, CAST(date AS VARCHAR) AS date, hour, demand",
        where=clauses,
        params=params,
        order_by="date, hour",
    )
    records, skipped = parse_records(rows)
    if skipped:
        logger.warning(f"{skipped} stored demand rows failed validation")
    return records

def load_profiles(data_dir: Path) -> List[StationProfile]:
    rows = db.scan_parquet(
        data_dir / "station_profiles.parquet",
        columns="station_id, name, total_demand, hourly_average",
        order_by="station_id",
    )
    return profiles_from_rows(rows)

def find_station(stations: List[Station], station_id: int) -> Station:
    for station in stations:
        if station.station_id == station_id:
            return station
    raise HTTPException(status_code=404, detail=f"Station {station_id} not found")

# --- Endpoints ---

@app.get("/stations", response_model=List[StationOut])
def get_stations(data_dir: Path = Depends(get_data_dir)):
    stations = load_stations(data_dir)
    return [
        StationOut(
            station_id=s.station_id,
            name=s.name,
            latitude=s.latitude,
            longitude=s.longitude,
            total_demand=s.total_demand,
            demand_level=s.demand_level if s.demand_level is not None else (
                demand_level(s.total_demand) if s.total_demand is not None else None
            ),
        )
        for s in stations
    ]

@app.get("/stations/{station_id}", response_model=StationInfo)
def get_station(station_id: int, data_dir: Path = Depends(get_data_dir)):
    station = find_station(load_stations(data_dir), station_id)
    return station_info(station, load_records(data_dir, station_id))

@app.get("/stations/{station_id}/summary", response_model=Summary)
def get_station_summary(
    station_id: int,
    start: Optional[datetime.date] = None,
    end: Optional[datetime.date] = None,
    data_dir: Path = Depends(get_data_dir),
):
    find_station(load_stations(data_dir), station_id)
    return aggregate(load_records(data_dir, station_id, start, end))

@app.get("/stations/{station_id}/export")
def export_station(
    station_id: int,
    start: Optional[datetime.date] = None,
    end: Optional[datetime.date] = None,
    data_dir: Path = Depends(get_data_dir),
):
    find_station(load_stations(data_dir), station_id)
    records = load_records(data_dir, station_id, start, end)

    csv_df = pl.DataFrame(
        {
            "Date": [r.date.isoformat() for r in records],
            "Hour": [r.hour for r in records],
            "Demand": [r.demand for r in records],
        },
        schema={"Date": pl.Utf8, "Hour": pl.Int64, "Demand": pl.Float64},
    )
    span = f"{start or 'all'}_{end or 'all'}"
    filename = f"station_{station_id}_{span}.csv"
    return Response(
        content=csv_df.write_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

@app.get("/ranking", response_model=List[RankedStation])
def get_ranking(
    metric: Literal["total", "avg", "peak"] = "total",
    limit: Optional[int] = Query(default=None, ge=1),
    data_dir: Path = Depends(get_data_dir),
):
    stations = load_stations(data_dir)
    summaries = station_summaries(load_records(data_dir), stations)
    return rank_stations(merge_station_metrics(stations, summaries), metric, limit)

@app.get("/patterns", response_model=List[ClusterSummary])
def get_patterns(
    policy: Optional[Policy] = None,
    data_dir: Path = Depends(get_data_dir),
    config: AnalysisConfig = Depends(get_config),
):
    if policy is not None:
        config = config.model_copy(update={"policy": policy})

    profiles = load_profiles(data_dir)
    result = classify(profiles, config)
    descriptions = pattern_descriptions(result, profiles)
    names = {p.station_id: p.name for p in profiles}

    response = []
    for cluster in result.clusters:
        response.append(ClusterSummary(
            pattern_type=cluster.pattern_type.value,
            meta=PatternMeta(**PATTERN_META[cluster.pattern_type]),
            member_count=cluster.member_count,
            share_pct=cluster.member_count / len(profiles) * 100 if profiles else 0.0,
            member_station_ids=cluster.member_station_ids,
            examples=[names[sid] for sid in cluster.member_station_ids[:5]],
            description=descriptions[cluster.pattern_type],
            chart_data=cluster.typical_curve,
        ))
    return response

@app.get("/insights", response_model=InsightsOut)
def get_insights(data_dir: Path = Depends(get_data_dir)):
    stations = load_stations(data_dir)
    records = load_records(data_dir)
    # Station totals: metadata where present, derived from records otherwise
    station_totals = merge_station_metrics(stations, station_summaries(records, stations))
    return InsightsOut(
        time=time_insights(aggregate(records)),
        space=space_insights(station_totals),
        tiers=demand_tiers(station_totals),
        peak_hours=peak_hour_insight(station_totals),
        recommendations=recommended_stations(station_totals),
    )

@app.get("/overview", response_model=OverviewOut)
def get_overview(
    data_dir: Path = Depends(get_data_dir),
    config: AnalysisConfig = Depends(get_config),
):
    stations = load_stations(data_dir)
    records = load_records(data_dir)
    station_totals = merge_station_metrics(stations, station_summaries(records, stations))
    return overview(station_totals, records, config.observed_day_count)

# --- Favourites (kept in the document store, keyed by the caller's user id) ---

@app.get("/stations/{station_id}/favorite", response_model=FavoriteOut)
def check_favorite(
    station_id: int,
    x_user_id: str = Header(...),
    store: DocumentStoreClient = Depends(get_store),
):
    return FavoriteOut(station_id=station_id, is_favorite=store.is_favorite(x_user_id, station_id))

@app.put("/stations/{station_id}/favorite", response_model=FavoriteOut)
def add_favorite(
    station_id: int,
    x_user_id: str = Header(...),
    data_dir: Path = Depends(get_data_dir),
    store: DocumentStoreClient = Depends(get_store),
):
    find_station(load_stations(data_dir), station_id)
    added = store.add_favorite(x_user_id, station_id)
    message = "added to favourites" if added else "already a favourite"
    return FavoriteOut(station_id=station_id, is_favorite=True, message=message)

@app.delete("/stations/{station_id}/favorite", response_model=FavoriteOut)
def remove_favorite(
    station_id: int,
    x_user_id: str = Header(...),
    store: DocumentStoreClient = Depends(get_store),
):
    store.remove_favorite(x_user_id, station_id)
    return FavoriteOut(station_id=station_id, is_favorite=False, message="removed from favourites")
