"""
HTTP client for the document store holding stations, hourly demand records
and user favourites.

The store caps every read (100 rows for filtered queries, 1000 for scans),
so every method here pages transparently and hands back complete sequences.
"""
import datetime
import json
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from .errors import CollaboratorError
from .models import DemandRecord, Station
from .records import parse_records

logger = logging.getLogger(__name__)

DEFAULT_STORE_URL = "http://localhost:8080/api"

STATIONS_COLLECTION = "stations"
RECORDS_COLLECTION = "hourly_demands"
FAVORITES_COLLECTION = "user_favorites"

# Store row caps: 100 per filtered query, 1000 per unfiltered scan
QUERY_LIMIT = 100
SCAN_LIMIT = 1000
# Rows per export page (37,200 monthly records -> 3 pages)
PAGE_SIZE = 12400
CONCURRENT_BATCHES = 5


class DocumentStoreClient:
    def __init__(self, base_url: str, timeout: float = 30.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
                 body: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}/{path}"
        try:
            resp = self.session.request(method, url, params=params, json=body, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise CollaboratorError(f"Store request to {url} failed: {e}") from e
        except ValueError as e:
            raise CollaboratorError(f"Store returned invalid JSON from {url}: {e}") from e

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("GET", path, params)

    def count_matching(self, collection: str, where: Optional[Dict[str, Any]] = None) -> int:
        params = {"where": json.dumps(where)} if where else None
        return int(self._get(f"{collection}/count", params)["total"])

    def _fetch(self, collection: str, skip: int, limit: int,
               where: Optional[Dict[str, Any]] = None,
               order_by: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        params = {"skip": skip, "limit": limit}
        if where:
            params["where"] = json.dumps(where)
        if order_by:
            params["orderBy"] = ",".join(order_by)
        return self._get(collection, params)["data"]

    def list_all(self, collection: str, page_size: int, page_index: int,
                 max_limit: int = SCAN_LIMIT, concurrency: int = CONCURRENT_BATCHES) -> List[Dict[str, Any]]:
        """
        Reads one page of an unfiltered scan as `max_limit`-row batches issued
        `concurrency` at a time, reassembled in batch order.
        """
        batches = math.ceil(page_size / max_limit)

        def fetch_batch(j: int) -> List[Dict[str, Any]]:
            skip = page_index * page_size + j * max_limit
            limit = min(max_limit, page_size - j * max_limit)
            return self._fetch(collection, skip, limit)

        with ThreadPoolExecutor(max_workers=concurrency) as executor:
            # map() yields in submission order
            results = list(executor.map(fetch_batch, range(batches)))

        rows = []
        for batch in results:
            rows.extend(batch)
        return rows

    def query_range(self, date_start: str, date_end: str,
                    station_id: Optional[int] = None) -> List[DemandRecord]:
        """Records with date_start <= date <= date_end, optionally for one station."""
        where: Dict[str, Any] = {"date": {"$gte": date_start, "$lte": date_end}}
        if station_id is not None:
            where["stationId"] = station_id

        total = self.count_matching(RECORDS_COLLECTION, where)
        rows = []
        for i in range(math.ceil(total / QUERY_LIMIT)):
            rows.extend(self._fetch(
                RECORDS_COLLECTION, i * QUERY_LIMIT, QUERY_LIMIT,
                where=where, order_by=["date", "hour"],
            ))

        records, skipped = parse_records(rows)
        if skipped:
            logger.warning(f"query_range({date_start}, {date_end}, {station_id}): {skipped} rows unparseable")
        return records

    def list_stations(self) -> List[Station]:
        total = self.count_matching(STATIONS_COLLECTION)
        rows = []
        for i in range(math.ceil(total / QUERY_LIMIT)):
            rows.extend(self._fetch(STATIONS_COLLECTION, i * QUERY_LIMIT, QUERY_LIMIT))
        try:
            return [Station.model_validate(row) for row in rows]
        except ValidationError as e:
            raise CollaboratorError(f"Malformed station metadata from store: {e}") from e

    def fetch_all_records(self, page_size: int = PAGE_SIZE):
        """
        Full scan of the demand collection, page by page.
        Returns (records, skipped_row_count).
        """
        total = self.count_matching(RECORDS_COLLECTION)
        pages = math.ceil(total / page_size)

        rows = []
        for page in range(pages):
            page_rows = self.list_all(RECORDS_COLLECTION, page_size, page)
            logger.info(f"Page {page + 1}/{pages}: {len(page_rows)} rows")
            rows.extend(page_rows)

        if len(rows) < total:
            raise CollaboratorError(f"Incomplete scan: got {len(rows)} of {total} demand rows")

        return parse_records(rows)

    # --- Favourites (one row per user and station) ---

    @staticmethod
    def _favorite_filter(user_id: str, station_id: int) -> Dict[str, Any]:
        return {"userId": user_id, "stationId": station_id}

    def is_favorite(self, user_id: str, station_id: int) -> bool:
        return self.count_matching(FAVORITES_COLLECTION, self._favorite_filter(user_id, station_id)) > 0

    def add_favorite(self, user_id: str, station_id: int) -> bool:
        """Saves the favourite. Returns False if the user already had it."""
        if self.is_favorite(user_id, station_id):
            return False
        self._request("POST", FAVORITES_COLLECTION, body={
            **self._favorite_filter(user_id, station_id),
            "createTime": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        })
        logger.info(f"User {user_id} added station {station_id} to favourites")
        return True

    def remove_favorite(self, user_id: str, station_id: int) -> None:
        self._request("DELETE", FAVORITES_COLLECTION, params={
            "where": json.dumps(self._favorite_filter(user_id, station_id)),
        })
        logger.info(f"User {user_id} removed station {station_id} from favourites")
