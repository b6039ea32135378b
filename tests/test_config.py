import pytest
from pydantic import ValidationError

from stationpulse.config import DEFAULT_DATA_DIR, AnalysisConfig, Policy, QuotaFractions, data_dir
from stationpulse.errors import ConfigurationError

ENV_VARS = [
    "STATIONPULSE_POLICY",
    "STATIONPULSE_OBSERVED_DAYS",
    "STATIONPULSE_PREFER_AUTHORITATIVE",
    "STATIONPULSE_LOW_FREQ_FACTOR",
    "STATIONPULSE_DATA_DIR",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = AnalysisConfig.from_env()
    assert config.policy == Policy.THRESHOLD
    assert config.observed_day_count == 31
    assert config.prefer_authoritative_totals is False
    assert config.low_freq_threshold_factor == pytest.approx(0.3)


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("STATIONPULSE_POLICY", "QUOTA")
    monkeypatch.setenv("STATIONPULSE_OBSERVED_DAYS", "30")
    monkeypatch.setenv("STATIONPULSE_PREFER_AUTHORITATIVE", "true")
    monkeypatch.setenv("STATIONPULSE_LOW_FREQ_FACTOR", "0.25")

    config = AnalysisConfig.from_env()

    assert config.policy == Policy.QUOTA
    assert config.observed_day_count == 30
    assert config.prefer_authoritative_totals is True
    assert config.low_freq_threshold_factor == pytest.approx(0.25)


@pytest.mark.parametrize("name,value", [
    ("STATIONPULSE_OBSERVED_DAYS", "0"),
    ("STATIONPULSE_OBSERVED_DAYS", "many"),
    ("STATIONPULSE_POLICY", "kmeans"),
])
def test_invalid_environment_raises_configuration_error(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ConfigurationError):
        AnalysisConfig.from_env()


def test_policy_is_normalized():
    assert AnalysisConfig(policy=" Quota ").policy == Policy.QUOTA


def test_quota_fractions_are_bounded():
    with pytest.raises(ValidationError):
        QuotaFractions(low_freq=1.5)


def test_data_dir_defaults_to_project_data():
    assert data_dir() == DEFAULT_DATA_DIR
    assert DEFAULT_DATA_DIR.parts[-2:] == ("data", "processed")


def test_data_dir_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("STATIONPULSE_DATA_DIR", str(tmp_path))
    assert data_dir() == tmp_path


def test_backend_reads_where_pipeline_writes(monkeypatch, tmp_path):
    from backend.app.main import get_data_dir

    assert get_data_dir() == DEFAULT_DATA_DIR
    monkeypatch.setenv("STATIONPULSE_DATA_DIR", str(tmp_path))
    assert get_data_dir() == tmp_path


def test_pipeline_writes_to_shared_dir():
    from demand_pipeline.assets import constants

    assert constants.DATA_DIR == str(DEFAULT_DATA_DIR)
    assert constants.STATIONS_FILE == str(DEFAULT_DATA_DIR / "stations.parquet")
