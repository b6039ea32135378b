import json
import polars as pl
from dagster import asset, Output
from stationpulse.classifier import classify
from stationpulse.config import AnalysisConfig, Policy
from stationpulse.frames import profiles_from_rows
from stationpulse.insights import pattern_descriptions
from .profiles import build_station_profiles
from .constants import PATTERNS_FILE

@asset(group_name="analysis")
def classify_patterns(build_station_profiles: pl.DataFrame):
    """
    Assigns every station to one demand pattern under both policies.

    Outputs patterns.json, keyed by policy:
    - assignments: station -> pattern + reason
    - clusters: member ids and the 0-100 typical curve per pattern
    - descriptions: short text per pattern
    """
    profiles = profiles_from_rows(build_station_profiles.iter_rows(named=True))
    base_config = AnalysisConfig.from_env()

    output = {}
    for policy in Policy:
        config = base_config.model_copy(update={"policy": policy})
        print(f"--- CLASSIFYING {len(profiles)} STATIONS ({policy.value}) ---")

        result = classify(profiles, config)
        descriptions = pattern_descriptions(result, profiles)

        for cluster in result.clusters:
            print(f"{cluster.pattern_type.value}: {cluster.member_count} stations")

        output[policy.value] = {
            **result.model_dump(mode="json"),
            "descriptions": {k.value: v for k, v in descriptions.items()},
        }

    print(f"--- SAVING PATTERNS TO {PATTERNS_FILE} ---")
    with open(PATTERNS_FILE, "w") as f:
        json.dump(output, f, indent=2, ensure_ascii=False)

    return Output(
        output,
        metadata={
            "file": PATTERNS_FILE,
            "default_policy": base_config.policy.value,
        }
    )
