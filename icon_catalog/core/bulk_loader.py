"""
PostgreSQL bulk loader for the icon dataset.

Inserts every record of the dataset file into a pgvector-enabled table,
one row at a time, in fixed-size batches with a delay between batches.
A failed insert is recorded and the load continues.
"""

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

import psycopg
from psycopg import sql

from icon_catalog.core.dataset_store import IconRecord
from icon_catalog.core.exceptions import DatabaseConnectionError
from icon_catalog.core.throttle import FixedDelayThrottle, Throttle

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[], Any]

INSERT_COLUMNS = ["name", "commonnames", "description", "tags", "categories", "embedding", "library"]


@dataclass
class InsertResult:
    """Outcome of inserting one icon."""
    name: str
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "success": self.success, "error": self.error}


@dataclass
class BulkLoadResult:
    """Outcome of a bulk load run."""
    success: bool
    inserted: int = 0  # records attempted
    results: List[InsertResult] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "inserted": self.inserted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
            "error": self.error,
        }


def partition_batches(records: Sequence[Any], batch_size: int) -> List[List[Any]]:
    """Split records into consecutive batches of at most batch_size items."""
    if batch_size <= 0:
        raise ValueError("batch_size must be a positive integer")
    return [list(records[i:i + batch_size]) for i in range(0, len(records), batch_size)]


def format_vector(embedding: Sequence[float]) -> str:
    """Serialize an embedding to pgvector's text form, e.g. "[0.1,0.2]"."""
    return "[" + ",".join(repr(float(v)) for v in embedding) + "]"


def psycopg_connection_factory(**connect_kwargs) -> ConnectionFactory:
    """Build a factory that opens a new psycopg connection per call."""
    def connect():
        return psycopg.connect(**connect_kwargs)
    return connect


class IconBulkLoader:
    """
    Loads icon records into PostgreSQL.

    Run states: idle -> connectivity checked -> batches of single-row
    inserts -> done. A failed initial connectivity check ends the run with
    no insert attempts; failed inserts are recorded and never stop the run.
    """

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        throttle: Optional[Throttle] = None,
        table_name: str = "icons",
        verify_each_record: bool = True
    ):
        """
        Initialize the loader.

        Args:
            connection_factory: Callable returning a new DB-API connection
            throttle: Delay strategy between batches (default: fixed 250ms)
            table_name: Target table
            verify_each_record: Re-check connectivity before every insert
        """
        self.connection_factory = connection_factory
        self.throttle = throttle or FixedDelayThrottle(0.25)
        self.table_name = table_name
        self.verify_each_record = verify_each_record

        self._insert_query = sql.SQL(
            "INSERT INTO {table} ({columns}) VALUES "
            "(%s, %s, %s, %s, %s, %s::vector, %s)"
        ).format(
            table=sql.Identifier(table_name),
            columns=sql.SQL(", ").join(sql.Identifier(c) for c in INSERT_COLUMNS)
        )

    @contextmanager
    def _connection(self) -> Iterator[Any]:
        conn = self.connection_factory()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def check_connection(self) -> bool:
        """Run a trivial round-trip query against the database."""
        try:
            with self._connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT NOW();")
                    row = cur.fetchone()
            logger.info(f"Database connection established{' - ok' if row else ''}")
            return True
        except Exception as e:
            logger.error(f"Error connecting to the database: {e}")
            return False

    def insert_icon(self, record: IconRecord) -> InsertResult:
        """
        Insert a single icon row.

        Errors are captured in the result instead of being raised.
        """
        try:
            if not record.is_complete:
                raise ValueError("missing embedding")

            if self.verify_each_record and not self.check_connection():
                raise DatabaseConnectionError("Could not establish a connection to the database")

            params = (
                record.name,
                list(record.commonnames),
                record.description,
                list(record.tags),
                list(record.categories),
                format_vector(record.embedding),
                record.library,
            )

            with self._connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(self._insert_query, params)

            logger.info(f"Icon inserted: {record.name}")
            return InsertResult(name=record.name, success=True)

        except Exception as e:
            logger.error(f"Error inserting icon {record.name}: {e}")
            return InsertResult(name=record.name, success=False, error=str(e))

    def batch_insert(
        self,
        records: List[IconRecord],
        batch_size: int = 250,
        throttle: Optional[Throttle] = None
    ) -> BulkLoadResult:
        """
        Insert records in batches, waiting between batches.

        Args:
            records: Records in dataset order
            batch_size: Records per batch
            throttle: Overrides the loader's delay strategy for this run

        Returns:
            BulkLoadResult; success is False only when the initial
            connectivity check fails
        """
        throttle = throttle or self.throttle
        batches = partition_batches(records, batch_size)

        if not self.check_connection():
            return BulkLoadResult(
                success=False,
                error="Could not establish a connection to the database"
            )

        total = len(records)
        counter = 0
        results: List[InsertResult] = []

        logger.info(f"Starting batch insertion of {total} icons...")

        for batch_number, batch in enumerate(batches, 1):
            logger.info(f"Processing batch {batch_number}/{len(batches)}...")

            for record in batch:
                result = self.insert_icon(record)
                counter += 1
                percentage = (counter / total) * 100
                logger.info(f"Progress: {counter}/{total} ({percentage:.2f}%)")
                results.append(result)

            throttle.wait()

        load_result = BulkLoadResult(success=True, inserted=counter, results=results)
        logger.info(
            f"Batch insertion complete: {load_result.succeeded} inserted, "
            f"{load_result.failed} failed"
        )
        return load_result

    def insert_from_file(
        self,
        file_path: str,
        batch_size: int = 250,
        throttle: Optional[Throttle] = None
    ) -> BulkLoadResult:
        """
        Read a dataset file and insert all of its records.

        Read and parse failures end the run with success=False.
        """
        try:
            logger.info(f"Reading icon file {file_path}...")
            with open(file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, list):
                raise ValueError("dataset must be a JSON array")
            records = [IconRecord.from_dict(item) for item in data]
        except Exception as e:
            logger.error(f"Error reading or processing the file: {e}")
            return BulkLoadResult(success=False, error=str(e))

        logger.info(f"Found {len(records)} icons to process")
        return self.batch_insert(records, batch_size=batch_size, throttle=throttle)
