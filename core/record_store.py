"""
Measurement Record Store for the RF Sweep Measurement System.

Measurement rows are appended to a single SQLite table that is dropped
and recreated at the start of every run.
"""

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from utils.logging import get_logger


class StoreError(Exception):
    """Raised when the measurement database cannot be opened or written."""
    pass


@dataclass(frozen=True)
class TableDefinition:
    """Name and ordered (column, type) pairs of a measurement table."""
    name: str
    columns: Tuple[Tuple[str, str], ...]

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(c for c, _ in self.columns)

    def create_sql(self) -> str:
        cols = ", ".join(f"{c} {t}" for c, t in self.columns)
        return f"CREATE TABLE {self.name}({cols});"

    def drop_sql(self) -> str:
        return f"DROP TABLE IF EXISTS {self.name};"

    def insert_sql(self) -> str:
        names = ", ".join(self.column_names)
        marks = ", ".join("?" for _ in self.columns)
        return f"INSERT INTO {self.name}({names}) VALUES({marks});"


TABLE_NAME = "ToP"

SWEEP_TABLE = TableDefinition(
    name=TABLE_NAME,
    columns=(
        ("epc", "TEXT"),
        ("rssi", "INT"),
        ("phase", "INT"),
        ("freq", "INT"),
        ("pow", "INT"),
    ),
)

CAPTURE_TABLE = TableDefinition(
    name=TABLE_NAME,
    columns=SWEEP_TABLE.columns + (
        ("ant", "INT"),
        ("ts", "INT"),
        ("read_count", "INT"),
        ("protocol", "INT"),
    ),
)


@dataclass(frozen=True)
class MeasurementRecord:
    """One persisted measurement row."""
    epc: str
    rssi: int
    phase: int
    frequency: int
    power: int

    # Continuous capture only
    antenna: Optional[int] = None
    timestamp_s: Optional[int] = None
    read_count: Optional[int] = None
    protocol: Optional[int] = None

    def as_row(self, table: TableDefinition) -> tuple:
        """Values in the column order of the given table."""
        values = {
            "epc": self.epc,
            "rssi": self.rssi,
            "phase": self.phase,
            "freq": self.frequency,
            "pow": self.power,
            "ant": self.antenna,
            "ts": self.timestamp_s,
            "read_count": self.read_count,
            "protocol": self.protocol,
        }
        return tuple(values[c] for c in table.column_names)


class RecordStore:
    """
    Append-only SQLite table of measurement rows.

    Each insert is committed before returning so rows survive an
    interrupted run in visitation order.
    """

    def __init__(self, db_path: str = "default.db"):
        self.db_path = db_path
        self.table: Optional[TableDefinition] = None
        self.rows_written = 0

        self._conn: Optional[sqlite3.Connection] = None
        self._insert_sql: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self):
        """Open the database file, creating parent directories."""
        if self._conn is not None:
            return
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"Cannot open database {self.db_path}: {e}") from e

    def init_schema(self, table: TableDefinition):
        """Drop and recreate the measurement table."""
        self.open()
        try:
            self._conn.execute(table.drop_sql())
            self._conn.execute(table.create_sql())
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"SQL error creating {table.name}: {e}") from e

        self.table = table
        self._insert_sql = table.insert_sql()
        self.rows_written = 0
        get_logger().info(f"[DB] Initialized table {table.name} in {self.db_path}")

    def insert_record(self, record: MeasurementRecord):
        """Insert and commit one row."""
        if self._conn is None or self.table is None:
            raise StoreError("Record store schema is not initialized")
        try:
            self._conn.execute(self._insert_sql, record.as_row(self.table))
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Error inserting row for {record.epc}: {e}") from e
        self.rows_written += 1

    def fetch_all(self) -> list:
        """Return all rows of the current table in insertion order."""
        if self._conn is None or self.table is None:
            raise StoreError("Record store schema is not initialized")
        cursor = self._conn.execute(
            f"SELECT {', '.join(self.table.column_names)} FROM {self.table.name} ORDER BY rowid"
        )
        return cursor.fetchall()

    def close(self):
        """Close the database."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            get_logger().info("[DB] Closing database")

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
