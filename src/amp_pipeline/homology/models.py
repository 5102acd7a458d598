"""Data models for homology search hits."""

from typing import Iterable

import polars as pl
from pydantic import BaseModel, ConfigDict

# Fixed column order of the tabular hit format (no header row)
HIT_COLUMNS = [
    "query_id",
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

HIT_SCHEMA = {
    "query_id": pl.Utf8,
    "subject_id": pl.Utf8,
    "identity_pct": pl.Float64,
    "alignment_length": pl.Int64,
    "e_value": pl.Float64,
    "bitscore": pl.Float64,
    "mismatches": pl.Int64,
    "gap_opens": pl.Int64,
    "query_start": pl.Int64,
    "query_end": pl.Int64,
    "subject_start": pl.Int64,
    "subject_end": pl.Int64,
    "subject_strand": pl.Utf8,
    "subject_frame": pl.Int64,
    "subject_title": pl.Utf8,
}

# BLAST+ output format string producing HIT_COLUMNS in order
BLAST_OUTFMT = (
    "6 qseqid sseqid pident length evalue bitscore mismatch gapopen "
    "qstart qend sstart send sstrand sframe stitle"
)


class HomologyHit(BaseModel):
    """A single alignment between a query and a reference sequence.

    Attributes:
        query_id: Query identifier as reported by the search tool
        subject_id: Reference sequence identifier
        identity_pct: Percent identity of the alignment
        alignment_length: Alignment length
        e_value: Expect value (lower = more significant)
        bitscore: Bit score (higher = better)
        mismatches: Number of mismatches
        gap_opens: Number of gap openings
        query_span: (start, end) on the query, 1-based inclusive
        subject_span: (start, end) on the subject, 1-based inclusive
        subject_strand: Subject strand ("N/A" for protein searches)
        subject_frame: Subject frame (0 for protein searches)
        subject_title: Subject title (joins the reference metadata)
    """

    model_config = ConfigDict(frozen=True)

    query_id: str
    subject_id: str
    identity_pct: float
    alignment_length: int
    e_value: float
    bitscore: float
    mismatches: int
    gap_opens: int
    query_span: tuple[int, int]
    subject_span: tuple[int, int]
    subject_strand: str
    subject_frame: int = 0
    subject_title: str = ""

    def to_row(self) -> dict:
        """Flat row in HIT_COLUMNS order."""
        return {
            "query_id": self.query_id,
            "subject_id": self.subject_id,
            "identity_pct": self.identity_pct,
            "alignment_length": self.alignment_length,
            "e_value": self.e_value,
            "bitscore": self.bitscore,
            "mismatches": self.mismatches,
            "gap_opens": self.gap_opens,
            "query_start": self.query_span[0],
            "query_end": self.query_span[1],
            "subject_start": self.subject_span[0],
            "subject_end": self.subject_span[1],
            "subject_strand": self.subject_strand,
            "subject_frame": self.subject_frame,
            "subject_title": self.subject_title,
        }


def hits_to_frame(hits: Iterable[HomologyHit]) -> pl.DataFrame:
    """Typed frame of hits in HIT_COLUMNS order; an empty input keeps the schema."""
    rows = [hit.to_row() for hit in hits]
    if not rows:
        return pl.DataFrame(schema=HIT_SCHEMA)
    return pl.DataFrame(rows, schema=HIT_SCHEMA)
