import datetime
import random

import pytest

from stationpulse.models import DemandRecord, Station, StationProfile
from stationpulse.profiles import derive_features

MAY_1 = datetime.date(2021, 5, 1)  # a Saturday


def make_record(station_id, day, hour, demand):
    return DemandRecord(
        station_id=station_id,
        date=MAY_1 + datetime.timedelta(days=day - 1),
        hour=hour,
        demand=demand,
    )


def make_profile(station_id, curve, total=None, name=""):
    return StationProfile(
        station_id=station_id,
        name=name,
        hourly_average=list(curve),
        total_demand=sum(curve) if total is None else total,
        features=derive_features(curve),
    )


def commute_day(station_id=1, day=1):
    """Hour 8 -> 100, hour 18 -> 120, every other hour -> 10."""
    demand = {8: 100, 18: 120}
    return [make_record(station_id, day, h, demand.get(h, 10)) for h in range(24)]


@pytest.fixture
def commute_records():
    return commute_day()


@pytest.fixture
def stations():
    return [
        Station(station_id=1, name="Central Station", latitude=31.23, longitude=121.47),
        Station(station_id=2, name="Riverside Park", latitude=31.20, longitude=121.50),
        Station(station_id=3, name="Old Town", latitude=31.22, longitude=121.49),
    ]


@pytest.fixture
def month_records():
    """Two days of data for three stations with distinct shapes."""
    records = []
    for day in (3, 8):  # Monday, Saturday
        records += commute_day(station_id=1, day=day)
        records += [make_record(2, day, h, 60 if 14 <= h <= 16 else 10) for h in range(24)]
        records += [make_record(3, day, h, 2) for h in range(24)]
    return records


@pytest.fixture
def population():
    """Fifty stations with varied, reproducible curves."""
    rng = random.Random(42)
    profiles = []
    for sid in range(1, 51):
        curve = [rng.uniform(0, 50) for _ in range(24)]
        profiles.append(make_profile(sid, curve))
    return profiles
