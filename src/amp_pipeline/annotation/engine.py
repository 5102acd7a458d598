"""Join predictions, homology hits and reference metadata into one table.

The engine applies the probability threshold first, then performs two
ordered LEFT JOINs:

    filtered predictions --(short_key = query_id)--> best hit per query
                         --(metadata key = accession)--> reference metadata

Left joins never drop or duplicate prediction rows: each right-hand side is
reduced to at most one row per key before joining. Missing hits or missing
metadata are expected outcomes and leave the corresponding columns NULL.
"""

from typing import Iterable, Literal

import polars as pl
import structlog

from amp_pipeline.annotation.models import (
    ANNOTATION_BASE_COLUMNS,
    AnnotatedRecord,
    frame_to_records,
)
from amp_pipeline.annotation.normalize import short_key
from amp_pipeline.classifier.models import PredictionRecord, predictions_to_frame
from amp_pipeline.homology.models import HIT_SCHEMA, HomologyHit, hits_to_frame
from amp_pipeline.reference.models import ReferenceMetadata, metadata_to_frame

logger = structlog.get_logger()

MetadataKey = Literal["subject_title", "subject_id"]


def _short_key_or_null(header: str) -> str | None:
    return short_key(header) or None


def short_key_expr(column: str) -> pl.Expr:
    """Apply ``short_key`` to a column; blank headers become null.

    Evaluated row by row so the key splits on exactly the whitespace
    ``str.split`` recognizes.
    """
    return pl.col(column).map_elements(_short_key_or_null, return_dtype=pl.Utf8)


def filter_predictions(df: pl.DataFrame, threshold: float) -> pl.DataFrame:
    """Keep predictions with probability strictly above ``threshold``.

    Args:
        df: Frame with seq_id and probability columns
        threshold: Probability cutoff in [0, 1]; there is no default

    Returns:
        Filtered frame in the original row order

    Raises:
        ValueError: If threshold is outside [0, 1]
    """
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must be within [0, 1], got {threshold}")

    filtered = df.filter(pl.col("probability") > threshold)
    logger.info(
        "filter_predictions_complete",
        threshold=threshold,
        input_count=df.height,
        kept_count=filtered.height,
    )
    return filtered


def select_best_hits(hits: pl.DataFrame) -> pl.DataFrame:
    """Reduce hits to one row per query_id.

    Preference order: lowest e_value, then highest bitscore, then the hit
    that came first in the input.

    Args:
        hits: Frame with HIT_SCHEMA columns, any number of rows per query

    Returns:
        One row per query_id, in input order of the chosen hits
    """
    best = (
        hits.with_row_index("_hit_order")
        .sort(
            ["query_id", "e_value", "bitscore", "_hit_order"],
            descending=[False, False, True, False],
        )
        .unique(subset=["query_id"], keep="first", maintain_order=True)
        .sort("_hit_order")
        .drop("_hit_order")
    )
    logger.debug("select_best_hits_complete", hit_count=hits.height, query_count=best.height)
    return best


def dedupe_metadata(metadata: pl.DataFrame) -> pl.DataFrame:
    """Cast every column to text and keep the first row for each accession."""
    metadata = metadata.with_columns(pl.all().cast(pl.Utf8))
    deduped = metadata.unique(subset=["accession"], keep="first", maintain_order=True)
    if deduped.height != metadata.height:
        logger.warning(
            "metadata_duplicate_accessions",
            dropped=metadata.height - deduped.height,
        )
    return deduped


def annotate_frame(
    predictions: pl.DataFrame,
    hits: pl.DataFrame,
    metadata: pl.DataFrame,
    threshold: float,
    metadata_key: MetadataKey = "subject_title",
) -> pl.DataFrame:
    """Build the annotated table.

    Args:
        predictions: Frame with seq_id (full header) and probability
        hits: Frame with HIT_SCHEMA columns
        metadata: Frame with an accession column plus attribute columns
        threshold: Probability cutoff (strictly greater passes)
        metadata_key: Hit field whose short key joins metadata accession

    Returns:
        One row per filtered prediction, in prediction order, with columns
        ANNOTATION_BASE_COLUMNS followed by the metadata attribute columns.
        Attribute columns that clash with a base column get an ``_ref`` suffix.

    Raises:
        ValueError: If threshold is outside [0, 1] or metadata_key is unknown
    """
    if metadata_key not in ("subject_title", "subject_id"):
        raise ValueError(f"Unknown metadata key: {metadata_key}")

    filtered = (
        filter_predictions(predictions.select(["seq_id", "probability"]), threshold)
        .with_row_index("_row")
        .with_columns(short_key_expr("seq_id").fill_null("").alias("short_key"))
    )

    # Join 1: prediction -> best homology hit
    best_hits = (
        select_best_hits(hits.select(list(HIT_SCHEMA)))
        .with_columns(pl.lit(True).alias("has_homolog"))
    )
    df = filtered.join(best_hits, left_on="short_key", right_on="query_id", how="left")
    df = df.with_columns(
        pl.col("has_homolog").fill_null(False),
        short_key_expr(metadata_key).alias("_metadata_key"),
    )

    # Join 2: chosen hit -> reference metadata
    meta = dedupe_metadata(metadata).with_columns(pl.col("accession").alias("_accession_key"))
    left_columns = set(df.columns) | set(ANNOTATION_BASE_COLUMNS)
    meta = meta.rename({
        c: f"{c}_ref"
        for c in meta.columns
        if c not in ("accession", "_accession_key") and c in left_columns
    })
    attr_cols = [c for c in meta.columns if c not in ("accession", "_accession_key")]

    df = df.join(meta, left_on="_metadata_key", right_on="_accession_key", how="left")

    df = df.sort("_row").select([*ANNOTATION_BASE_COLUMNS, *attr_cols])

    if df.height != filtered.height:
        raise RuntimeError(
            f"Annotation changed row count: {filtered.height} -> {df.height}"
        )

    homolog_count = df.filter(pl.col("has_homolog")).height
    logger.info(
        "annotate_frame_complete",
        row_count=df.height,
        with_homolog=homolog_count,
        without_homolog=df.height - homolog_count,
        with_metadata=df.filter(pl.col("accession").is_not_null()).height,
    )
    return df


def annotate(
    predictions: Iterable[PredictionRecord],
    hits: Iterable[HomologyHit],
    metadata: Iterable[ReferenceMetadata],
    threshold: float,
    metadata_key: MetadataKey = "subject_title",
) -> list[AnnotatedRecord]:
    """Record-level entry point to the annotation engine.

    Args:
        predictions: Classifier output, one per sequence
        hits: Homology hits, any number per query, unranked
        metadata: Reference metadata rows (duplicate accessions allowed)
        threshold: Probability cutoff (strictly greater passes)
        metadata_key: Hit field whose short key joins metadata accession

    Returns:
        AnnotatedRecords, exactly one per prediction above the threshold,
        in prediction order
    """
    df = annotate_frame(
        predictions_to_frame(predictions),
        hits_to_frame(hits),
        metadata_to_frame(metadata),
        threshold=threshold,
        metadata_key=metadata_key,
    )
    return frame_to_records(df)

