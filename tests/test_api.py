from unittest.mock import MagicMock

import pytest
import requests
from fastapi.testclient import TestClient

from backend.app.main import app, get_config, get_data_dir, get_store
from stationpulse.config import AnalysisConfig
from stationpulse.frames import profiles_table, records_table, stations_table
from stationpulse.models import Station
from stationpulse.profiles import build_profiles
from stationpulse.store import DocumentStoreClient
from tests.test_store import FakeStore


@pytest.fixture
def data_dir(tmp_path, stations, month_records):
    stations_table(stations).write_parquet(tmp_path / "stations.parquet")
    records_table(month_records).write_parquet(tmp_path / "demand_records.parquet")
    profiles = build_profiles(month_records, stations, observed_day_count=2)
    profiles_table(profiles).write_parquet(tmp_path / "station_profiles.parquet")
    return tmp_path


def make_client(data_dir):
    app.dependency_overrides[get_data_dir] = lambda: data_dir
    app.dependency_overrides[get_config] = lambda: AnalysisConfig(observed_day_count=2)
    return TestClient(app)


@pytest.fixture
def client(data_dir):
    yield make_client(data_dir)
    app.dependency_overrides.clear()


@pytest.fixture
def empty_client(tmp_path):
    yield make_client(tmp_path)
    app.dependency_overrides.clear()


def test_list_stations(client):
    response = client.get("/stations")
    assert response.status_code == 200
    body = response.json()
    assert [s["station_id"] for s in body] == [1, 2, 3]
    assert body[0]["name"] == "Central Station"


def test_station_summary(client):
    response = client.get("/stations/1/summary")
    assert response.status_code == 200
    body = response.json()
    assert body["record_count"] == 48
    assert body["total_demand"] == pytest.approx(880)
    assert body["peak_time"] == {"date": "2021-05-03", "hour": 18}
    assert body["weekday_count"] == 24
    assert body["weekend_count"] == 24


def test_station_summary_date_range(client):
    response = client.get("/stations/1/summary", params={"start": "2021-05-08", "end": "2021-05-31"})
    body = response.json()
    assert body["record_count"] == 24
    assert body["weekday_count"] == 0
    assert body["weekday_average"] == 0


def test_unknown_station_is_404(client):
    assert client.get("/stations/99/summary").status_code == 404
    assert client.get("/stations/99/export").status_code == 404


def test_export_csv(client):
    response = client.get("/stations/2/export", params={"start": "2021-05-03", "end": "2021-05-03"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert 'filename="station_2_2021-05-03_2021-05-03.csv"' in response.headers["content-disposition"]

    lines = response.text.strip().splitlines()
    assert lines[0] == "Date,Hour,Demand"
    assert len(lines) == 25
    assert lines[15] == "2021-05-03,14,60.0"


def test_ranking_by_total(client):
    body = client.get("/ranking").json()
    assert [r["station_id"] for r in body] == [1, 2, 3]
    assert body[0]["rank"] == 1
    assert body[0]["percent_of_top"] == pytest.approx(100)
    assert body[1]["value"] == pytest.approx(780)


def test_ranking_by_peak_with_limit(client):
    body = client.get("/ranking", params={"metric": "peak", "limit": 2}).json()
    assert [(r["station_id"], r["value"]) for r in body] == [(1, 120), (2, 60)]


def test_ranking_rejects_unknown_metric(client):
    assert client.get("/ranking", params={"metric": "median"}).status_code == 422


def test_patterns_threshold(client):
    body = client.get("/patterns").json()
    assert [c["pattern_type"] for c in body] == ["COMMUTE", "LEISURE", "BALANCED", "NIGHT", "LOW_FREQUENCY"]
    groups = {c["pattern_type"]: c for c in body}
    assert groups["COMMUTE"]["member_station_ids"] == [1]
    assert groups["COMMUTE"]["examples"] == ["Central Station"]
    assert groups["LEISURE"]["member_station_ids"] == [2]
    assert groups["LOW_FREQUENCY"]["member_station_ids"] == [3]
    assert max(groups["COMMUTE"]["chart_data"]) == pytest.approx(100)
    assert groups["NIGHT"]["chart_data"] == [0.0] * 24
    assert groups["COMMUTE"]["meta"]["label"] == "Commuter"


def test_patterns_quota(client):
    body = client.get("/patterns", params={"policy": "quota"}).json()
    counts = {c["pattern_type"]: c["member_count"] for c in body}
    assert counts == {"COMMUTE": 1, "LEISURE": 1, "BALANCED": 1, "NIGHT": 0, "LOW_FREQUENCY": 0}
    assert sum(c["share_pct"] for c in body) == pytest.approx(100)


def test_insights(client):
    body = client.get("/insights").json()
    assert body["time"]["peak_hour"] == 18
    assert body["space"]["top_station"] == 1
    assert len(body["tiers"]) == 5
    assert sum(t["count"] for t in body["tiers"]) == 3


def test_missing_data_gives_empty_results(empty_client):
    assert empty_client.get("/stations").json() == []
    assert empty_client.get("/ranking").json() == []

    patterns = empty_client.get("/patterns").json()
    assert len(patterns) == 5
    assert all(c["member_count"] == 0 for c in patterns)

    insights = empty_client.get("/insights").json()
    assert insights["space"]["top_station"] is None


def test_unreadable_data_is_503(empty_client, tmp_path):
    (tmp_path / "stations.parquet").write_bytes(b"not a parquet file")
    response = empty_client.get("/stations")
    assert response.status_code == 503


def test_station_detail(client):
    response = client.get("/stations/1")
    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Central Station"
    assert body["total_demand"] == pytest.approx(880)
    assert body["avg_demand"] == pytest.approx(18.3)
    assert body["max_demand"] == pytest.approx(120)
    assert body["record_count"] == 48


def test_station_detail_unknown_is_404(client):
    assert client.get("/stations/99").status_code == 404


def test_zero_total_still_gets_demand_level(tmp_path):
    stations_table([Station(station_id=1, name="Quiet Corner", total_demand=0.0)]).write_parquet(
        tmp_path / "stations.parquet"
    )
    client = make_client(tmp_path)
    try:
        body = client.get("/stations").json()
    finally:
        app.dependency_overrides.clear()
    assert body[0]["total_demand"] == 0
    assert body[0]["demand_level"] == 1


def test_insights_peak_hours_and_recommendations(client):
    body = client.get("/insights").json()
    # Stations peak at 18, 14 and 0; ties go to the later hour
    assert body["peak_hours"]["peak_hour"] == 18
    assert [r["station_id"] for r in body["recommendations"]] == [1, 2, 3]
    assert all(r["kind"] == "high_demand" for r in body["recommendations"])


def test_overview(client):
    body = client.get("/overview").json()
    assert body["total_stations"] == 3
    assert body["data_days"] == 2
    assert body["date_range"] == {"start": "2021-05-03", "end": "2021-05-08"}
    assert body["total_demand"] == pytest.approx(1756)
    assert body["avg_daily_demand"] == 878
    assert body["peak_station"]["station_id"] == 1


def test_overview_without_data(empty_client):
    body = empty_client.get("/overview").json()
    assert body["total_stations"] == 0
    assert body["data_days"] == 2
    assert body["date_range"] is None
    assert body["peak_station"] is None


@pytest.fixture
def favorites_client(data_dir):
    store = DocumentStoreClient("http://store.test/api", session=FakeStore({"user_favorites": []}))
    client = make_client(data_dir)
    app.dependency_overrides[get_store] = lambda: store
    yield client
    app.dependency_overrides.clear()


def test_favorite_round_trip(favorites_client):
    headers = {"X-User-Id": "alice"}

    assert favorites_client.get("/stations/2/favorite", headers=headers).json()["is_favorite"] is False

    added = favorites_client.put("/stations/2/favorite", headers=headers).json()
    assert added == {"station_id": 2, "is_favorite": True, "message": "added to favourites"}
    assert favorites_client.get("/stations/2/favorite", headers=headers).json()["is_favorite"] is True

    again = favorites_client.put("/stations/2/favorite", headers=headers).json()
    assert again["message"] == "already a favourite"

    # Another user's favourites are separate
    assert favorites_client.get("/stations/2/favorite", headers={"X-User-Id": "bob"}).json()["is_favorite"] is False

    removed = favorites_client.delete("/stations/2/favorite", headers=headers).json()
    assert removed["is_favorite"] is False
    assert favorites_client.get("/stations/2/favorite", headers=headers).json()["is_favorite"] is False


def test_favorite_requires_user_header(favorites_client):
    assert favorites_client.get("/stations/2/favorite").status_code == 422


def test_favorite_unknown_station_is_404(favorites_client):
    response = favorites_client.put("/stations/99/favorite", headers={"X-User-Id": "alice"})
    assert response.status_code == 404


def test_favorite_store_failure_is_503(data_dir):
    session = MagicMock()
    session.request.side_effect = requests.ConnectionError("store down")
    client = make_client(data_dir)
    app.dependency_overrides[get_store] = lambda: DocumentStoreClient("http://store.test/api", session=session)
    try:
        response = client.get("/stations/2/favorite", headers={"X-User-Id": "alice"})
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 503
