"""
Boundary helpers for demand records: schema parsing and range validation.
"""
import logging
import math
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from pydantic import ValidationError

from .errors import InvalidRecordError
from .models import HOURS_PER_DAY, DemandRecord

logger = logging.getLogger(__name__)


def check_record(record: DemandRecord) -> None:
    """Raises InvalidRecordError if hour or demand is out of range (NaN and inf included)."""
    if not 0 <= record.hour < HOURS_PER_DAY:
        raise InvalidRecordError(
            f"Station {record.station_id} on {record.date}: hour {record.hour} outside 0-23"
        )
    if not math.isfinite(record.demand):
        raise InvalidRecordError(
            f"Station {record.station_id} on {record.date} {record.hour}:00: non-finite demand {record.demand}"
        )
    if record.demand < 0:
        raise InvalidRecordError(
            f"Station {record.station_id} on {record.date} {record.hour}:00: negative demand {record.demand}"
        )


def split_valid(records: Iterable[DemandRecord]) -> Tuple[List[DemandRecord], int]:
    """
    Keeps in-range records and counts the rejected ones.
    Rejection is per record; the rest of the set is still usable.
    """
    valid = []
    skipped = 0
    for record in records:
        try:
            check_record(record)
        except InvalidRecordError as e:
            skipped += 1
            logger.debug(f"Skipping record: {e}")
            continue
        valid.append(record)

    if skipped:
        logger.warning(f"Skipped {skipped} malformed demand records")
    return valid, skipped


def parse_records(rows: Iterable[Mapping[str, Any]]) -> Tuple[List[DemandRecord], int]:
    """
    Validates raw store rows into DemandRecords.
    Rows that do not fit the schema are counted, not raised.
    """
    records = []
    skipped = 0
    for row in rows:
        try:
            records.append(DemandRecord.model_validate(row))
        except ValidationError as e:
            skipped += 1
            logger.debug(f"Unparseable demand row {row!r}: {e.error_count()} errors")

    if skipped:
        logger.warning(f"Dropped {skipped} demand rows that failed schema validation")
    return records, skipped


def group_by_station(records: Sequence[DemandRecord]) -> Dict[int, List[DemandRecord]]:
    grouped = defaultdict(list)
    for record in records:
        grouped[record.station_id].append(record)
    return dict(grouped)
