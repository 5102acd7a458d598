"""Data models for reference metadata."""

from typing import Iterable

import polars as pl
from pydantic import BaseModel, ConfigDict


class ReferenceMetadata(BaseModel):
    """Annotation columns for one reference accession.

    Attributes:
        accession: Reference accession (join key)
        attributes: Arbitrary annotation columns, e.g. {"family": "defensin"}
    """

    model_config = ConfigDict(frozen=True)

    accession: str
    attributes: dict[str, str] = {}


def metadata_to_frame(records: Iterable[ReferenceMetadata]) -> pl.DataFrame:
    """Tabular form with an ``accession`` column plus one column per attribute.

    Attribute columns are ordered by first appearance; a record without a
    given attribute gets an empty string in that column.
    """
    records = list(records)
    columns: list[str] = []
    for rec in records:
        for name in rec.attributes:
            if name not in columns:
                columns.append(name)

    data = {"accession": [rec.accession for rec in records]}
    for name in columns:
        data[name] = [rec.attributes.get(name, "") for rec in records]
    return pl.DataFrame(data, schema={name: pl.Utf8 for name in data})
