"""Persistence layer for pipeline tables and provenance tracking."""

from amp_pipeline.persistence.duckdb_store import PipelineStore
from amp_pipeline.persistence.provenance import ProvenanceTracker

__all__ = ["PipelineStore", "ProvenanceTracker"]
