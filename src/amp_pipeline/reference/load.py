"""Load the reference metadata table."""

from pathlib import Path

import polars as pl
import structlog

from amp_pipeline.errors import MalformedInputError
from amp_pipeline.reference.models import ReferenceMetadata

logger = structlog.get_logger()


def read_metadata_table(
    path: Path | str,
    accession_column: str = "accession",
) -> pl.DataFrame:
    """Read a reference metadata table into a string-typed frame.

    TSV is assumed unless the file ends in ``.csv``. Every column is read
    as text; empty cells become empty strings. The accession column is
    renamed to ``accession`` and moved first. Rows without an accession
    cannot be joined and are dropped.

    Args:
        path: Metadata table path
        accession_column: Name of the accession column in the file

    Returns:
        DataFrame with ``accession`` followed by the attribute columns

    Raises:
        FileNotFoundError: If the file doesn't exist
        MalformedInputError: If the file cannot be parsed or lacks the
            accession column
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Metadata table not found: {path}")

    separator = "," if path.suffix.lower() == ".csv" else "\t"
    try:
        df = pl.read_csv(path, separator=separator, infer_schema=False)
    except pl.exceptions.PolarsError as e:
        raise MalformedInputError(
            f"Unreadable metadata table {path}: {e}", stage="metadata"
        ) from e

    if accession_column not in df.columns:
        raise MalformedInputError(
            f"Metadata table {path} has no '{accession_column}' column "
            f"(columns: {df.columns})",
            stage="metadata",
        )

    if accession_column != "accession":
        if "accession" in df.columns:
            df = df.drop("accession")
        df = df.rename({accession_column: "accession"})

    attribute_cols = [c for c in df.columns if c != "accession"]
    df = df.select(
        pl.col("accession").str.strip_chars(),
        *[pl.col(c).fill_null("") for c in attribute_cols],
    )

    missing = df.filter(pl.col("accession").is_null() | (pl.col("accession") == "")).height
    if missing:
        logger.warning("metadata_rows_without_accession", dropped=missing)
        df = df.filter(pl.col("accession").is_not_null() & (pl.col("accession") != ""))

    duplicates = df.height - df["accession"].n_unique()
    logger.info(
        "metadata_table_loaded",
        path=str(path),
        row_count=df.height,
        attribute_columns=attribute_cols,
        duplicate_accessions=duplicates,
    )
    return df


def load_reference_metadata(
    path: Path | str,
    accession_column: str = "accession",
) -> list[ReferenceMetadata]:
    """Load the metadata table as records, in file order (duplicates kept)."""
    df = read_metadata_table(path, accession_column=accession_column)
    attribute_cols = [c for c in df.columns if c != "accession"]
    return [
        ReferenceMetadata(
            accession=row["accession"],
            attributes={c: row[c] for c in attribute_cols},
        )
        for row in df.iter_rows(named=True)
    ]
