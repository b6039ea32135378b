from dagster import Definitions
from .assets import ingestion, profiles, patterns, insights

defs = Definitions(
    assets=[
        # Fetch Data
        ingestion.fetch_stations,
        ingestion.fetch_demand_records,

        # Profiles & Classification
        profiles.build_station_profiles,
        patterns.classify_patterns,

        # Reporting
        insights.generate_insights
    ]
)
