"""Parse and serialize FASTA sequence containers.

The container is a run of ``>header`` lines, each followed by one or more
residue lines. Gzip-compressed input is detected by its magic bytes and
decompressed transparently; anything else is parsed as plain text.
"""

import gzip
import hashlib
import zlib
from pathlib import Path
from typing import Iterable

import polars as pl
import structlog
from pydantic import ValidationError

from amp_pipeline.errors import MalformedInputError
from amp_pipeline.sequences.models import SequenceRecord

logger = structlog.get_logger()

GZIP_MAGIC = b"\x1f\x8b"
LINE_WIDTH = 60


def decompress_if_gzipped(data: bytes) -> bytes:
    """Return decompressed bytes for gzip input, the input itself otherwise.

    Raises:
        MalformedInputError: If the data starts with the gzip magic bytes
            but the stream is truncated or corrupt
    """
    if not data.startswith(GZIP_MAGIC):
        return data
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise MalformedInputError(
            f"Corrupt gzip stream: {e}", stage="ingest"
        ) from e


def _build_record(header: str, chunks: list[str], line_no: int) -> SequenceRecord:
    if not chunks:
        raise MalformedInputError(
            f"Header on line {line_no} is not followed by a residue line",
            stage="ingest",
            record_id=header,
        )
    try:
        return SequenceRecord(id=header, sequence="".join(chunks))
    except ValidationError as e:
        raise MalformedInputError(
            f"Invalid record starting on line {line_no}: {e.errors()[0]['msg']}",
            stage="ingest",
            record_id=header,
        ) from e


def parse_fasta(data: bytes | str) -> list[SequenceRecord]:
    """Parse a FASTA container into sequence records.

    Args:
        data: Raw container bytes (optionally gzip-compressed) or text

    Returns:
        Records in file order

    Raises:
        MalformedInputError: If residues appear before the first header,
            a header has no residue line, a header id is repeated, or a
            residue line contains characters outside the residue alphabet
    """
    if isinstance(data, bytes):
        data = decompress_if_gzipped(data)
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedInputError(
                f"Sequence container is not valid UTF-8 text: {e}", stage="ingest"
            ) from e
    else:
        text = data

    records: list[SequenceRecord] = []
    seen: set[str] = set()
    header: str | None = None
    header_line = 0
    chunks: list[str] = []

    # Only "\n" ends a line; other separators stay part of the header text
    for line_no, raw in enumerate(text.split("\n"), start=1):
        raw = raw.rstrip("\r")
        if not raw.strip():
            continue

        if raw.startswith(">"):
            if header is not None:
                records.append(_build_record(header, chunks, header_line))
            header = raw[1:]
            header_line = line_no
            chunks = []
            if header in seen:
                raise MalformedInputError(
                    f"Duplicate header on line {line_no}",
                    stage="ingest",
                    record_id=header,
                )
            seen.add(header)
        else:
            if header is None:
                raise MalformedInputError(
                    f"Residue line {line_no} appears before any header",
                    stage="ingest",
                )
            chunks.append(raw.strip())

    if header is not None:
        records.append(_build_record(header, chunks, header_line))

    logger.debug("fasta_parse_complete", record_count=len(records))
    return records


def serialize_fasta(records: Iterable[SequenceRecord], line_width: int = LINE_WIDTH) -> bytes:
    """Serialize records to FASTA bytes, wrapping residues at ``line_width``.

    Headers are written verbatim so that ``parse_fasta(serialize_fasta(x)) == x``.
    """
    lines: list[str] = []
    for rec in records:
        lines.append(f">{rec.id}")
        seq = rec.sequence
        for i in range(0, len(seq), line_width):
            lines.append(seq[i:i + line_width])
    if not lines:
        return b""
    return ("\n".join(lines) + "\n").encode("utf-8")


def read_fasta(path: Path | str) -> list[SequenceRecord]:
    """Read a FASTA file (plain or gzip-compressed)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Sequence file not found: {path}")

    records = parse_fasta(path.read_bytes())
    logger.info("fasta_read", path=str(path), record_count=len(records))
    return records


def write_fasta(path: Path | str, records: Iterable[SequenceRecord]) -> Path:
    """Write records to a FASTA file; paths ending in ``.gz`` are gzip-compressed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = serialize_fasta(records)
    if path.suffix == ".gz":
        payload = gzip.compress(payload)
    path.write_bytes(payload)
    return path


def sequence_fingerprint(records: Iterable[SequenceRecord]) -> str:
    """SHA-256 content fingerprint of an ordered record set.

    Any change to a header, a residue or the record order changes the
    fingerprint; it keys cached scores and search indexes.
    """
    digest = hashlib.sha256()
    for rec in records:
        digest.update(rec.id.encode("utf-8"))
        digest.update(b"\x00")
        digest.update(rec.sequence.encode("utf-8"))
        digest.update(b"\x01")
    return digest.hexdigest()


def records_to_frame(records: Iterable[SequenceRecord]) -> pl.DataFrame:
    """Tabular form of a record set with columns ``id, sequence``."""
    records = list(records)
    return pl.DataFrame(
        {
            "id": [r.id for r in records],
            "sequence": [r.sequence for r in records],
        },
        schema={"id": pl.Utf8, "sequence": pl.Utf8},
    )
