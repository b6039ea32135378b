from pydantic import BaseModel
from typing import Any, Dict, List, Optional

class PatternMeta(BaseModel):
    label: str
    icon: str
    color: str
    summary: str

class ClusterSummary(BaseModel):
    pattern_type: str
    meta: PatternMeta
    member_count: int
    share_pct: float
    member_station_ids: List[int]
    examples: List[str]  # first few member names
    description: str
    chart_data: List[float]  # 24 hourly values, 0-100

class StationOut(BaseModel):
    station_id: int
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    total_demand: Optional[float] = None
    demand_level: Optional[int] = None

class InsightsOut(BaseModel):
    time: Dict[str, Any]
    space: Dict[str, Any]
    tiers: List[Dict[str, Any]]
    peak_hours: Dict[str, Any]
    recommendations: List[Dict[str, Any]]

class DateRange(BaseModel):
    start: str
    end: str

class PeakStation(BaseModel):
    station_id: int
    name: str
    total_demand: float

class OverviewOut(BaseModel):
    total_stations: int
    data_days: int
    date_range: Optional[DateRange] = None
    total_demand: float
    avg_daily_demand: int
    peak_station: Optional[PeakStation] = None

class FavoriteOut(BaseModel):
    station_id: int
    is_favorite: bool
    message: str = ""
