import os

from stationpulse.config import data_dir
from stationpulse.store import DEFAULT_STORE_URL

# Base Directories
DATA_DIR = str(data_dir())

os.makedirs(DATA_DIR, exist_ok=True)

# File Paths
STATIONS_FILE = os.path.join(DATA_DIR, "stations.parquet")
RECORDS_FILE = os.path.join(DATA_DIR, "demand_records.parquet")
PROFILES_FILE = os.path.join(DATA_DIR, "station_profiles.parquet")
PATTERNS_FILE = os.path.join(DATA_DIR, "patterns.json")
INSIGHTS_FILE = os.path.join(DATA_DIR, "insights.json")

# Document store (REST front of the managed database)
STORE_URL = os.getenv("STATIONPULSE_STORE_URL", DEFAULT_STORE_URL)
