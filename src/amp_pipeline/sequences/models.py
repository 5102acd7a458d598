"""Data models for sequence records."""

import re

from pydantic import BaseModel, ConfigDict, field_validator

# Residue alphabet: IUPAC letters plus stop (*), gap (-) and the '.' gap variant
RESIDUE_PATTERN = re.compile(r"^[A-Za-z*.\-]+$")


class SequenceRecord(BaseModel):
    """A single sequence from a FASTA container.

    Attributes:
        id: Full header text after '>' (kept verbatim, including any
            metadata tokens such as "OS=Homo sapiens")
        sequence: Residue string, non-empty, no whitespace

    Records are immutable once loaded.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    sequence: str

    @field_validator("id")
    @classmethod
    def check_header(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("header must not be empty")
        if "\n" in v or "\r" in v:
            raise ValueError("header must be a single line")
        return v

    @field_validator("sequence")
    @classmethod
    def check_residues(cls, v: str) -> str:
        if not RESIDUE_PATTERN.match(v):
            raise ValueError("sequence must be a non-empty residue string")
        return v
