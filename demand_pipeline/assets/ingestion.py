from dagster import asset, Output
from stationpulse.frames import records_table, stations_table
from stationpulse.store import DocumentStoreClient
from .constants import STORE_URL, STATIONS_FILE, RECORDS_FILE

@asset(group_name="ingestion")
def fetch_stations():
    """
    Fetches station metadata (names, coordinates, precomputed totals) from the document store.
    """
    print("--- FETCHING STATION METADATA ---")
    client = DocumentStoreClient(STORE_URL)
    stations = client.list_stations()
    print(f"Loaded {len(stations)} stations.")

    stations_df = stations_table(stations)

    print(f"--- SAVING TO {STATIONS_FILE} ---")
    stations_df.write_parquet(STATIONS_FILE)

    return Output(stations_df, metadata={"rows": len(stations_df)})

@asset(group_name="ingestion")
def fetch_demand_records():
    """
    Pulls the full hourly demand collection.
    - The store caps reads at 1000 rows, so the scan runs in pages of
      batched requests (see DocumentStoreClient.list_all).
    - Rows that fail the record schema are dropped and counted.
    """
    print("--- FETCHING HOURLY DEMAND RECORDS ---")
    client = DocumentStoreClient(STORE_URL)
    records, skipped = client.fetch_all_records()

    if not records:
        # Nothing to analyze; the collection name or the store is wrong
        raise ValueError(f"Store returned 0 usable demand records from {STORE_URL}")

    print(f"Downloaded {len(records)} hourly records ({skipped} unparseable rows dropped).")

    records_df = records_table(records).sort(["station_id", "date", "hour"])

    print(f"--- SAVING TO {RECORDS_FILE} ---")
    records_df.write_parquet(RECORDS_FILE)

    return Output(records_df, metadata={"rows": len(records_df), "skipped": skipped})
