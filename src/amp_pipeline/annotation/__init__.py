"""Annotation engine: threshold filter and joins across predictions, hits and metadata."""

from amp_pipeline.annotation.normalize import short_key
from amp_pipeline.annotation.models import (
    ANNOTATED_TABLE_NAME,
    ANNOTATION_BASE_COLUMNS,
    AnnotatedRecord,
    attribute_columns,
    frame_to_records,
)
from amp_pipeline.annotation.engine import (
    annotate,
    annotate_frame,
    dedupe_metadata,
    filter_predictions,
    select_best_hits,
    short_key_expr,
)

__all__ = [
    "short_key",
    "short_key_expr",
    "ANNOTATED_TABLE_NAME",
    "ANNOTATION_BASE_COLUMNS",
    "AnnotatedRecord",
    "attribute_columns",
    "frame_to_records",
    "filter_predictions",
    "select_best_hits",
    "dedupe_metadata",
    "annotate_frame",
    "annotate",
]
