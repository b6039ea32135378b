from .aggregation import aggregate, demand_level, merge_station_metrics, rank_stations, station_info, station_summaries
from .classifier import QuotaClassifier, ThresholdClassifier, classify, cluster_stats
from .config import AnalysisConfig, Policy, QuotaFractions
from .errors import CollaboratorError, ConfigurationError, InvalidRecordError, StationPulseError
from .models import (
    ClassificationResult,
    ClusterStats,
    DemandRecord,
    DerivedFeatures,
    PatternAssignment,
    PatternType,
    QuotaFeatures,
    Station,
    StationInfo,
    StationProfile,
    Summary,
)
from .profiles import build_profile, build_profiles, quota_features
from .records import parse_records
from .session import AnalysisResult, AnalysisSession

__all__ = [
    "aggregate",
    "demand_level",
    "merge_station_metrics",
    "rank_stations",
    "station_info",
    "station_summaries",
    "QuotaClassifier",
    "ThresholdClassifier",
    "classify",
    "cluster_stats",
    "AnalysisConfig",
    "Policy",
    "QuotaFractions",
    "CollaboratorError",
    "ConfigurationError",
    "InvalidRecordError",
    "StationPulseError",
    "ClassificationResult",
    "ClusterStats",
    "DemandRecord",
    "DerivedFeatures",
    "PatternAssignment",
    "PatternType",
    "QuotaFeatures",
    "Station",
    "StationInfo",
    "StationProfile",
    "Summary",
    "build_profile",
    "build_profiles",
    "quota_features",
    "parse_records",
    "AnalysisResult",
    "AnalysisSession",
]
