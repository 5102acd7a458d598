"""Homology adapter: external search invocation and hit parsing."""

from amp_pipeline.homology.models import (
    BLAST_OUTFMT,
    HIT_COLUMNS,
    HIT_SCHEMA,
    HomologyHit,
    hits_to_frame,
)
from amp_pipeline.homology.parse import parse_hit_line, parse_hit_table, read_hit_table
from amp_pipeline.homology.search import HomologyAdapter

__all__ = [
    "BLAST_OUTFMT",
    "HIT_COLUMNS",
    "HIT_SCHEMA",
    "HomologyHit",
    "hits_to_frame",
    "parse_hit_line",
    "parse_hit_table",
    "read_hit_table",
    "HomologyAdapter",
]
