"""Parse the 15-column tabular hit format."""

from pathlib import Path

import structlog

from amp_pipeline.errors import MalformedInputError
from amp_pipeline.homology.models import HIT_COLUMNS, HomologyHit

logger = structlog.get_logger()

_INT_FIELDS = {
    "alignment_length",
    "mismatches",
    "gap_opens",
    "query_start",
    "query_end",
    "subject_start",
    "subject_end",
    "subject_frame",
}
_FLOAT_FIELDS = {"identity_pct", "e_value", "bitscore"}


def parse_hit_line(line: str, line_no: int) -> HomologyHit:
    """Parse one tab-separated hit row.

    Raises:
        MalformedInputError: If the row does not have exactly 15 fields or
            a numeric field does not parse
    """
    fields = line.split("\t")
    if len(fields) != len(HIT_COLUMNS):
        raise MalformedInputError(
            f"Hit line {line_no} has {len(fields)} fields, expected {len(HIT_COLUMNS)}",
            stage="search",
            record_id=fields[0] if fields else None,
        )

    values: dict = {}
    for name, raw in zip(HIT_COLUMNS, fields):
        try:
            if name in _INT_FIELDS:
                values[name] = int(raw)
            elif name in _FLOAT_FIELDS:
                values[name] = float(raw)
            else:
                values[name] = raw
        except ValueError as e:
            raise MalformedInputError(
                f"Hit line {line_no}: invalid {name} value {raw!r}",
                stage="search",
                record_id=fields[0],
            ) from e

    if not values["query_id"]:
        raise MalformedInputError(
            f"Hit line {line_no} has an empty query id", stage="search"
        )

    return HomologyHit(
        query_id=values["query_id"],
        subject_id=values["subject_id"],
        identity_pct=values["identity_pct"],
        alignment_length=values["alignment_length"],
        e_value=values["e_value"],
        bitscore=values["bitscore"],
        mismatches=values["mismatches"],
        gap_opens=values["gap_opens"],
        query_span=(values["query_start"], values["query_end"]),
        subject_span=(values["subject_start"], values["subject_end"]),
        subject_strand=values["subject_strand"],
        subject_frame=values["subject_frame"],
        subject_title=values["subject_title"],
    )


def parse_hit_table(data: bytes | str) -> list[HomologyHit]:
    """Parse a whole hit table, in input order.

    Blank lines are skipped. A single malformed row aborts the parse and
    no partial result is returned.

    Args:
        data: Table content (UTF-8 bytes or text), no header row

    Returns:
        Hits in the order they appear in the table

    Raises:
        MalformedInputError: On the first malformed row
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedInputError(
                f"Hit table is not valid UTF-8 text: {e}", stage="search"
            ) from e

    hits = [
        parse_hit_line(line.rstrip("\r"), line_no)
        for line_no, line in enumerate(data.split("\n"), start=1)
        if line.strip()
    ]
    logger.debug("hit_table_parsed", hit_count=len(hits))
    return hits


def read_hit_table(path: Path | str) -> list[HomologyHit]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Hit table not found: {path}")
    return parse_hit_table(path.read_bytes())
