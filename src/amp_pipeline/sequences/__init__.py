"""Sequence container parsing and serialization."""

from amp_pipeline.sequences.models import SequenceRecord
from amp_pipeline.sequences.fasta import (
    decompress_if_gzipped,
    parse_fasta,
    read_fasta,
    records_to_frame,
    sequence_fingerprint,
    serialize_fasta,
    write_fasta,
)

__all__ = [
    "SequenceRecord",
    "decompress_if_gzipped",
    "parse_fasta",
    "serialize_fasta",
    "read_fasta",
    "write_fasta",
    "sequence_fingerprint",
    "records_to_frame",
]
