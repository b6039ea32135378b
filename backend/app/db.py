import duckdb
import logging
import pandas as pd
import numpy as np
from pathlib import Path
from typing import Any, Dict, List, Sequence

from stationpulse.errors import CollaboratorError

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

def _frame_rows(conn, sql_query: str, params: Sequence[Any]) -> List[Row]:
    df = conn.execute(sql_query, params).df()
    df = df.replace([np.inf, -np.inf], np.nan)
    df = df.astype(object).where(pd.notnull(df), None)
    return df.to_dict(orient="records")

def _tuple_rows(conn, sql_query: str, params: Sequence[Any]) -> List[Row]:
    cursor = conn.execute(sql_query, params)
    columns = [desc[0] for desc in cursor.description]
    return [dict(zip(columns, row)) for row in cursor.fetchall()]

def run_query(sql_query: str, params: Sequence[Any] = ()) -> List[Row]:
    """
    Runs one read against the processed parquet files on a throwaway
    in-memory connection, so concurrent requests never share DuckDB state.

    Rows come back as plain dicts with NaN/inf mapped to None. Query
    failures raise CollaboratorError; a partial answer is never returned.
    """
    conn = None
    try:
        conn = duckdb.connect(database=':memory:')
        try:
            return _frame_rows(conn, sql_query, params)
        except duckdb.Error:
            raise
        except Exception as pd_error:
            # List columns (profile curves) can trip the pandas path
            logger.warning(f"DataFrame conversion failed: {pd_error}. Reading rows directly.")
            return _tuple_rows(conn, sql_query, params)

    except duckdb.Error as e:
        logger.error(f"Parquet query failed: {e}")
        raise CollaboratorError(f"Data query failed: {e}") from e

    finally:
        if conn:
            conn.close()

def scan_parquet(
    path: Path,
    columns: str = "*",
    where: Sequence[str] = (),
    params: Sequence[Any] = (),
    order_by: str = "",
) -> List[Row]:
    """
    SELECT over a single parquet file. A file the pipeline has not written
    yet reads as empty.
    """
    if not path.exists():
        logger.info(f"{path.name} not found, treating as empty")
        return []

    sql_query = f"SELECT {columns} FROM '{path}'"
    if where:
        sql_query += f" WHERE {' AND '.join(where)}"
    if order_by:
        sql_query += f" ORDER BY {order_by}"
    return run_query(sql_query, tuple(params))
