"""DuckDB store for the prediction cache, annotated tables and run provenance."""

import re
from pathlib import Path
from typing import Optional

import duckdb
import polars as pl

_TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Registry of every table written through the store
CHECKPOINT_TABLE = "_checkpoints"


def _check_table_name(table_name: str) -> str:
    """Accept only plain SQL identifiers as table names."""
    if not _TABLE_NAME_RE.match(table_name):
        raise ValueError(f"Invalid table name: {table_name!r}")
    return table_name


class PipelineStore:
    """
    One DuckDB file holding everything a run persists.

    Tables written through ``save_dataframe`` are registered in
    ``_checkpoints`` together with their row count, so callers can ask
    whether a table exists without touching the catalog.
    """

    def __init__(self, db_path: Path):
        """
        Open (or create) the database file.

        Args:
            db_path: DuckDB file location; missing parent directories are created
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.conn = duckdb.connect(str(self.db_path))
        self.conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {CHECKPOINT_TABLE} (
                table_name VARCHAR PRIMARY KEY,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                row_count INTEGER,
                description VARCHAR
            )
        """)

    def _register(self, table_name: str, row_count: int, description: str) -> None:
        self.conn.execute(
            f"INSERT OR REPLACE INTO {CHECKPOINT_TABLE} "
            "(table_name, row_count, description, created_at) "
            "VALUES (?, ?, ?, CURRENT_TIMESTAMP)",
            [table_name, row_count, description],
        )

    def save_dataframe(
        self,
        df: pl.DataFrame,
        table_name: str,
        description: str = "",
        replace: bool = True
    ) -> None:
        """
        Write a frame to ``table_name``.

        With ``replace=False`` rows are appended; the table is created on
        the first append. The checkpoint row count always reflects the
        whole table.

        Raises:
            ValueError: If df is not a polars DataFrame or the name is not
                a plain identifier
        """
        if not isinstance(df, pl.DataFrame):
            raise ValueError("df must be a polars.DataFrame")
        table_name = _check_table_name(table_name)

        if replace or not self.has_checkpoint(table_name):
            self.conn.execute(f"CREATE OR REPLACE TABLE {table_name} AS SELECT * FROM df")
            row_count = df.height
        else:
            self.conn.execute(f"INSERT INTO {table_name} SELECT * FROM df")
            row_count = self.conn.execute(f"SELECT COUNT(*) FROM {table_name}").fetchone()[0]

        self._register(table_name, row_count, description)

    def load_dataframe(self, table_name: str) -> Optional[pl.DataFrame]:
        """Read a whole table, or None when it was never written."""
        table_name = _check_table_name(table_name)
        try:
            return self.conn.execute(f"SELECT * FROM {table_name}").pl()
        except duckdb.CatalogException:
            return None

    def has_checkpoint(self, table_name: str) -> bool:
        count = self.conn.execute(
            f"SELECT COUNT(*) FROM {CHECKPOINT_TABLE} WHERE table_name = ?",
            [table_name]
        ).fetchone()[0]
        return count > 0

    def list_checkpoints(self) -> list[dict]:
        """
        Registered tables, newest first.

        Each entry has table_name, created_at, row_count and description.
        """
        rows = self.conn.execute(f"""
            SELECT table_name, created_at, row_count, description
            FROM {CHECKPOINT_TABLE}
            ORDER BY created_at DESC
        """).fetchall()
        keys = ("table_name", "created_at", "row_count", "description")
        return [dict(zip(keys, row)) for row in rows]

    def delete_checkpoint(self, table_name: str) -> None:
        """Drop a table and forget its checkpoint."""
        table_name = _check_table_name(table_name)
        self.conn.execute(f"DROP TABLE IF EXISTS {table_name}")
        self.conn.execute(
            f"DELETE FROM {CHECKPOINT_TABLE} WHERE table_name = ?",
            [table_name]
        )

    def execute_query(
        self,
        query: str,
        params: Optional[list] = None
    ) -> pl.DataFrame:
        """Run SQL (optionally parameterized with ``?``) and return the result as a frame."""
        cursor = self.conn.execute(query, params) if params else self.conn.execute(query)
        return cursor.pl()

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @classmethod
    def from_config(cls, config: "PipelineConfig") -> "PipelineStore":
        """Open the store at ``config.duckdb_path``."""
        return cls(config.duckdb_path)
