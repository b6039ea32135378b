"""
Domain models for station demand analysis.
"""
import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

HOURS_PER_DAY = 24


class PatternType(str, Enum):
    COMMUTE = "COMMUTE"
    LEISURE = "LEISURE"
    BALANCED = "BALANCED"
    NIGHT = "NIGHT"
    LOW_FREQUENCY = "LOW_FREQUENCY"


# Canonical output order for per-pattern results
PATTERN_ORDER = [
    PatternType.COMMUTE,
    PatternType.LEISURE,
    PatternType.BALANCED,
    PatternType.NIGHT,
    PatternType.LOW_FREQUENCY,
]


class DemandRecord(BaseModel):
    """One hourly demand observation for one station."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    station_id: int = Field(alias="stationId")
    date: datetime.date
    hour: int
    demand: float


class Station(BaseModel):
    """
    Station metadata. Precomputed demand fields are authoritative when present.
    """
    model_config = ConfigDict(populate_by_name=True)

    station_id: int = Field(alias="stationId")
    name: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    total_demand: Optional[float] = Field(default=None, alias="totalDemand")
    avg_demand: Optional[float] = Field(default=None, alias="avgDemand")
    max_demand: Optional[float] = Field(default=None, alias="maxDemand")
    peak_hour: Optional[int] = Field(default=None, alias="peakHour")
    demand_level: Optional[int] = Field(default=None, alias="demandLevel")

    @field_validator("name", mode="before")
    @classmethod
    def _blank_name(cls, value):
        return value or ""


class TimeSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: datetime.date
    hour: int

    def label(self) -> str:
        return f"{self.date.isoformat()} {self.hour}:00"


class Summary(BaseModel):
    record_count: int = 0
    total_demand: float = 0.0
    average_demand: float = 0.0
    max_demand: float = 0.0
    min_demand: float = 0.0
    peak_time: Optional[TimeSlot] = None
    valley_time: Optional[TimeSlot] = None
    std_dev: float = 0.0
    cv: float = 0.0
    weekday_average: float = 0.0
    weekend_average: float = 0.0
    weekday_count: int = 0
    weekend_count: int = 0
    hourly_totals: List[float] = Field(default_factory=lambda: [0.0] * HOURS_PER_DAY)
    skipped_records: int = 0


class StationSummary(BaseModel):
    station_id: int
    name: str = ""
    total_demand: float = 0.0
    avg_demand: float = 0.0
    max_demand: float = 0.0
    peak_hour: Optional[int] = None
    record_count: int = 0


class StationInfo(BaseModel):
    """Station metadata with demand figures recomputed from its records."""
    station_id: int
    name: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    total_demand: float = 0.0
    avg_demand: float = 0.0  # per record, one decimal
    max_demand: float = 0.0
    record_count: int = 0


class RankedStation(BaseModel):
    rank: int
    station_id: int
    name: str = ""
    value: float
    percent_of_top: float
    demand_level: int


class DerivedFeatures(BaseModel):
    """
    Shape descriptors of a 24-hour profile. Ratios are window peak / 24h mean.
    """
    model_config = ConfigDict(frozen=True)

    morning_ratio: float = 0.0
    evening_ratio: float = 0.0
    afternoon_ratio: float = 0.0
    night_ratio: float = 0.0
    cv: float = 0.0
    morning_peak: float = 0.0
    noon_peak: float = 0.0
    afternoon_peak: float = 0.0
    evening_peak: float = 0.0
    night_peak: float = 0.0
    mean: float = 0.0


class QuotaFeatures(BaseModel):
    """
    Window-mean descriptors ranked by the quota policy.
    Day ratios are window mean / 24h mean; night_ratio is the night
    windows (22-23h plus 0-5h) as a share of the daily total.
    """
    model_config = ConfigDict(frozen=True)

    morning_ratio: float = 0.0
    evening_ratio: float = 0.0
    afternoon_ratio: float = 0.0
    night_ratio: float = 0.0
    cv: float = 0.0
    morning: float = 0.0
    evening: float = 0.0
    afternoon: float = 0.0
    night: float = 0.0


class StationProfile(BaseModel):
    station_id: int
    name: str = ""
    hourly_average: List[float]  # 24 values, index = hour of day
    total_demand: float
    features: DerivedFeatures


class PatternAssignment(BaseModel):
    model_config = ConfigDict(frozen=True)

    station_id: int
    pattern_type: PatternType
    reason: str


class ClusterStats(BaseModel):
    pattern_type: PatternType
    member_count: int
    typical_curve: List[float]  # 0-100, max scaled to 100
    member_station_ids: List[int]


class ClassificationResult(BaseModel):
    policy: str
    assignments: List[PatternAssignment]
    clusters: List[ClusterStats]
