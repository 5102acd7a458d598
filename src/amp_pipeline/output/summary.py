"""Summary counts and descriptive labels for annotated predictions."""

from collections import Counter
from typing import Any, Callable, Hashable, Iterable

import polars as pl
import structlog

from amp_pipeline.annotation.models import AnnotatedRecord

logger = structlog.get_logger()

# UniProt-style headers: ">sp|P60022|DEFB1_HUMAN Beta-defensin 1 OS=Homo sapiens OX=9606"
DEFAULT_DESCRIPTION_MARKER = "OS="


def count_by(
    records: Iterable[AnnotatedRecord],
    key_fn: Callable[[AnnotatedRecord], Hashable],
) -> dict[Any, int]:
    """Count records per grouping key, keys in order of first appearance."""
    return dict(Counter(key_fn(rec) for rec in records))


def summarize_homology(records: Iterable[AnnotatedRecord]) -> dict[bool, int]:
    """Count records with and without a homolog; both keys are always present."""
    counts = count_by(records, lambda rec: rec.has_homolog)
    return {True: counts.get(True, 0), False: counts.get(False, 0)}


def count_frame_by(df: pl.DataFrame, column: str) -> dict[Any, int]:
    """Frame-level count_by over a single column."""
    counts = df.group_by(column).len().sort(column)
    return {row[column]: row["len"] for row in counts.to_dicts()}


def extract_description(header: str, marker: str = DEFAULT_DESCRIPTION_MARKER) -> str | None:
    """Descriptive label of a header: text between the first space and ``marker``.

    >>> extract_description("sp|P60022|DEFB1_HUMAN Beta-defensin 1 OS=Homo sapiens")
    'Beta-defensin 1'

    Returns None when the header has no space or no marker after it.
    """
    space = header.find(" ")
    if space < 0:
        return None
    end = header.find(marker, space + 1)
    if end < 0:
        return None
    return header[space + 1:end].strip()


def add_descriptions(
    df: pl.DataFrame,
    source_column: str = "subject_title",
    marker: str = DEFAULT_DESCRIPTION_MARKER,
    alias: str = "description",
) -> pl.DataFrame:
    """Add a description column extracted from ``source_column``."""
    df = df.with_columns(
        pl.col(source_column)
        .map_elements(lambda h: extract_description(h, marker), return_dtype=pl.Utf8)
        .alias(alias)
    )
    logger.debug(
        "add_descriptions_complete",
        source_column=source_column,
        described=df.filter(pl.col(alias).is_not_null()).height,
    )
    return df
