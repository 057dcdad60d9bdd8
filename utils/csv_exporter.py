"""
CSV Export Utilities for the RF Sweep Measurement System.

Reads the measurement table back from the SQLite database and writes
raw rows, a frequency x tag RSSI pivot and a per-tag sweep summary.
"""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from core.record_store import StoreError, TABLE_NAME
from utils.logging import get_logger


NOT_SEEN_RSSI = -99


class CSVExporter:
    """
    Exports measurement tables to CSV files.
    """

    def __init__(self, output_dir: str = "."):
        """
        Initialize exporter.

        Args:
            output_dir: Directory for output files
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def load_measurements(db_path: str, table: str = TABLE_NAME) -> pd.DataFrame:
        """
        Load a measurement table into a DataFrame, in insertion order.

        Raises:
            StoreError: If the database or table cannot be read
        """
        if not Path(db_path).exists():
            raise StoreError(f"Database not found: {db_path}")

        conn = sqlite3.connect(db_path)
        try:
            return pd.read_sql_query(f"SELECT * FROM {table} ORDER BY rowid", conn)
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            raise StoreError(f"Cannot read table {table} from {db_path}: {e}") from e
        finally:
            conn.close()

    @staticmethod
    def rssi_pivot(df: pd.DataFrame) -> pd.DataFrame:
        """Frequency x EPC grid of the recorded RSSI (NaN where not seen)."""
        seen = df.assign(rssi=df["rssi"].where(df["rssi"] != NOT_SEEN_RSSI, np.nan))
        return seen.pivot_table(index="freq", columns="epc", values="rssi", aggfunc="first")

    @staticmethod
    def summarize_sweep(df: pd.DataFrame) -> pd.DataFrame:
        """
        Per-tag summary of a sweep table.

        Columns:
            frequencies: frequencies measured
            frequencies_seen: frequencies at which the tag answered
            coverage: frequencies_seen / frequencies
            rssi_mean: mean RSSI over the frequencies the tag was seen at
            min_power_seen: lowest power at which the tag was seen
            best_freq: frequency with the strongest RSSI
        """
        rows = []
        for epc, group in df.groupby("epc", sort=False):
            seen_mask = (group["rssi"] != NOT_SEEN_RSSI).to_numpy()
            seen = group[seen_mask]
            n_freqs = group["freq"].nunique()
            n_seen = seen["freq"].nunique()
            rows.append({
                "epc": epc,
                "frequencies": n_freqs,
                "frequencies_seen": n_seen,
                "coverage": n_seen / n_freqs if n_freqs else 0.0,
                "rssi_mean": float(np.mean(seen["rssi"])) if n_seen else np.nan,
                "min_power_seen": int(seen["pow"].min()) if n_seen else np.nan,
                "best_freq": int(seen.loc[seen["rssi"].idxmax(), "freq"]) if n_seen else np.nan,
            })
        return pd.DataFrame(rows, columns=[
            "epc", "frequencies", "frequencies_seen", "coverage",
            "rssi_mean", "min_power_seen", "best_freq",
        ])

    def _output_path(self, filename: Optional[str], prefix: str) -> Path:
        if filename is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filename = f"{prefix}_{timestamp}.csv"
        return self.output_dir / filename

    def export_measurements(self, db_path: str, filename: Optional[str] = None) -> str:
        """
        Export the raw measurement table.

        Returns:
            Path to exported file
        """
        df = self.load_measurements(db_path)
        filepath = self._output_path(filename, "measurements")
        df.to_csv(filepath, index=False)
        get_logger().info(f"Exported {len(df)} rows to: {filepath}")
        return str(filepath)

    def export_pivot(self, db_path: str, filename: Optional[str] = None) -> str:
        """
        Export the frequency x tag RSSI grid of a sweep table.

        Returns:
            Path to exported file
        """
        df = self.load_measurements(db_path)
        filepath = self._output_path(filename, "rssi_grid")
        self.rssi_pivot(df).to_csv(filepath)
        get_logger().info(f"Exported RSSI grid to: {filepath}")
        return str(filepath)

    def export_summary(self, db_path: str, filename: Optional[str] = None) -> str:
        """
        Export the per-tag sweep summary.

        Returns:
            Path to exported file
        """
        df = self.load_measurements(db_path)
        filepath = self._output_path(filename, "sweep_summary")
        self.summarize_sweep(df).to_csv(filepath, index=False)
        get_logger().info(f"Exported sweep summary to: {filepath}")
        return str(filepath)
