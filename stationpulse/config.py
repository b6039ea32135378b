import os
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigurationError

# Shared by the pipeline (writer) and the API (reader)
DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data" / "processed"


def data_dir() -> Path:
    """Processed-data directory: STATIONPULSE_DATA_DIR, else data/processed at the project root."""
    return Path(os.getenv("STATIONPULSE_DATA_DIR") or DEFAULT_DATA_DIR)


class Policy(str, Enum):
    THRESHOLD = "threshold"
    QUOTA = "quota"


class QuotaFractions(BaseModel):
    """
    Share of the still-unassigned population taken at each quota step.
    Defaults reproduce 10/50, 8/40, 12/32 and 10/20 for a 50-station city.
    """
    low_freq: float = Field(default=10 / 50, ge=0.0, le=1.0)
    night: float = Field(default=8 / 40, ge=0.0, le=1.0)
    commute: float = Field(default=12 / 32, ge=0.0, le=1.0)
    leisure: float = Field(default=10 / 20, ge=0.0, le=1.0)


class AnalysisConfig(BaseModel):
    policy: Policy = Policy.THRESHOLD
    observed_day_count: int = Field(default=31, ge=1)
    prefer_authoritative_totals: bool = False
    low_freq_threshold_factor: float = Field(default=0.3, ge=0.0)
    quota_fractions: QuotaFractions = Field(default_factory=QuotaFractions)

    @field_validator("policy", mode="before")
    @classmethod
    def _normalize_policy(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @classmethod
    def from_env(cls) -> "AnalysisConfig":
        """Builds a config from STATIONPULSE_* environment variables."""
        load_dotenv()

        values = {}
        env_map = {
            "policy": "STATIONPULSE_POLICY",
            "observed_day_count": "STATIONPULSE_OBSERVED_DAYS",
            "prefer_authoritative_totals": "STATIONPULSE_PREFER_AUTHORITATIVE",
            "low_freq_threshold_factor": "STATIONPULSE_LOW_FREQ_FACTOR",
        }
        for field_name, env_name in env_map.items():
            raw = os.getenv(env_name)
            if raw is not None and raw != "":
                values[field_name] = raw

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid analysis configuration: {e}") from e
