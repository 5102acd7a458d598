"""Output generation: summary counts and dual-format file writing."""

from amp_pipeline.output.summary import (
    DEFAULT_DESCRIPTION_MARKER,
    add_descriptions,
    count_by,
    count_frame_by,
    extract_description,
    summarize_homology,
)
from amp_pipeline.output.writers import write_annotation_output

__all__ = [
    "DEFAULT_DESCRIPTION_MARKER",
    "count_by",
    "count_frame_by",
    "summarize_homology",
    "extract_description",
    "add_descriptions",
    "write_annotation_output",
]
