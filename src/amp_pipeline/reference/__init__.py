"""Reference metadata keyed by accession."""

from amp_pipeline.reference.models import ReferenceMetadata, metadata_to_frame
from amp_pipeline.reference.load import load_reference_metadata, read_metadata_table

__all__ = [
    "ReferenceMetadata",
    "metadata_to_frame",
    "load_reference_metadata",
    "read_metadata_table",
]
