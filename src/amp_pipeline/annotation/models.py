"""Data models for annotated predictions."""

import polars as pl
from pydantic import BaseModel, ConfigDict

from amp_pipeline.homology.models import HomologyHit

# Table name for DuckDB storage
ANNOTATED_TABLE_NAME = "annotated_predictions"

# Hit columns carried into the annotated table (query_id equals short_key)
HIT_OUTPUT_COLUMNS = [
    "subject_id",
    "identity_pct",
    "alignment_length",
    "e_value",
    "bitscore",
    "mismatches",
    "gap_opens",
    "query_start",
    "query_end",
    "subject_start",
    "subject_end",
    "subject_strand",
    "subject_frame",
    "subject_title",
]

# Fixed leading columns of the annotated table; every column after these
# is a reference metadata attribute.
ANNOTATION_BASE_COLUMNS = [
    "seq_id",
    "short_key",
    "probability",
    "has_homolog",
    *HIT_OUTPUT_COLUMNS,
    "accession",
]


class AnnotatedRecord(BaseModel):
    """One filtered prediction joined with its homology and metadata evidence.

    Attributes:
        seq_id: Full header of the predicted sequence
        short_key: Normalized join key derived from seq_id
        probability: Classifier probability (above the run threshold)
        hit: Chosen homology hit, None when the query had no hits
        accession: Matched reference accession, None when no metadata matched
        attributes: Reference metadata columns, empty when no metadata matched
        has_homolog: True iff at least one hit existed for short_key

    has_homolog depends only on the homology join; a hit whose subject
    has no metadata row still counts as a homolog.
    """

    model_config = ConfigDict(frozen=True)

    seq_id: str
    short_key: str
    probability: float
    hit: HomologyHit | None = None
    accession: str | None = None
    attributes: dict[str, str] = {}
    has_homolog: bool = False


def attribute_columns(df: pl.DataFrame) -> list[str]:
    """Metadata attribute columns of an annotated frame."""
    return [c for c in df.columns if c not in ANNOTATION_BASE_COLUMNS]


def frame_to_records(df: pl.DataFrame) -> list[AnnotatedRecord]:
    """Convert an annotated frame into immutable records, preserving row order."""
    attr_cols = attribute_columns(df)
    records = []
    for row in df.iter_rows(named=True):
        hit = None
        if row["has_homolog"]:
            hit = HomologyHit(
                query_id=row["short_key"],
                subject_id=row["subject_id"],
                identity_pct=row["identity_pct"],
                alignment_length=row["alignment_length"],
                e_value=row["e_value"],
                bitscore=row["bitscore"],
                mismatches=row["mismatches"],
                gap_opens=row["gap_opens"],
                query_span=(row["query_start"], row["query_end"]),
                subject_span=(row["subject_start"], row["subject_end"]),
                subject_strand=row["subject_strand"],
                subject_frame=row["subject_frame"],
                subject_title=row["subject_title"],
            )

        attributes: dict[str, str] = {}
        if row["accession"] is not None:
            attributes = {c: row[c] if row[c] is not None else "" for c in attr_cols}

        records.append(AnnotatedRecord(
            seq_id=row["seq_id"],
            short_key=row["short_key"],
            probability=row["probability"],
            hit=hit,
            accession=row["accession"],
            attributes=attributes,
            has_homolog=row["has_homolog"],
        ))
    return records
