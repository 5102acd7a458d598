"""Tests for reference metadata loading."""

import polars as pl
import pytest

from amp_pipeline.errors import MalformedInputError
from amp_pipeline.reference import (
    ReferenceMetadata,
    load_reference_metadata,
    metadata_to_frame,
    read_metadata_table,
)


def test_read_tsv(tmp_path):
    """Test reading a TSV table as text columns."""
    path = tmp_path / "meta.tsv"
    path.write_text("accession\tfamily\tlength\nM1\tdefensin\t40\nM2\tcathelicidin\t\n")

    df = read_metadata_table(path)

    assert df.columns == ["accession", "family", "length"]
    assert df["family"].to_list() == ["defensin", "cathelicidin"]
    # every column is text, missing cells become empty strings
    assert df.schema["length"] == pl.Utf8
    assert df["length"].to_list() == ["40", ""]


def test_read_csv_by_extension(tmp_path):
    """Test that .csv files are comma separated."""
    path = tmp_path / "meta.csv"
    path.write_text("accession,family\nM1,defensin\n")

    df = read_metadata_table(path)

    assert df.row(0) == ("M1", "defensin")


def test_custom_accession_column(tmp_path):
    """Test that the accession column is renamed and moved first."""
    path = tmp_path / "meta.tsv"
    path.write_text("family\tEntry\ndefensin\t M1 \n")

    df = read_metadata_table(path, accession_column="Entry")

    assert df.columns == ["accession", "family"]
    assert df["accession"].to_list() == ["M1"]


def test_missing_accession_column(tmp_path):
    """Test that a table without the accession column is malformed."""
    path = tmp_path / "meta.tsv"
    path.write_text("id\tfamily\nM1\tdefensin\n")

    with pytest.raises(MalformedInputError, match="accession") as exc_info:
        read_metadata_table(path)

    assert exc_info.value.stage == "metadata"


def test_rows_without_accession_dropped(tmp_path):
    """Test that rows with an empty accession are dropped."""
    path = tmp_path / "meta.tsv"
    path.write_text("accession\tfamily\nM1\tdefensin\n\torphan\n")

    df = read_metadata_table(path)

    assert df["accession"].to_list() == ["M1"]


def test_missing_file(tmp_path):
    """Test that a missing metadata table raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError):
        read_metadata_table(tmp_path / "missing.tsv")


def test_load_records_keeps_duplicates(tmp_path):
    """Test that record loading keeps file order and duplicate accessions."""
    path = tmp_path / "meta.tsv"
    path.write_text("accession\tfamily\nM1\tdefensin\nM1\tother\n")

    records = load_reference_metadata(path)

    assert records == [
        ReferenceMetadata(accession="M1", attributes={"family": "defensin"}),
        ReferenceMetadata(accession="M1", attributes={"family": "other"}),
    ]


def test_metadata_to_frame_fills_missing_attributes():
    """Test that attribute columns are ordered by first appearance."""
    df = metadata_to_frame([
        ReferenceMetadata(accession="M1", attributes={"family": "defensin"}),
        ReferenceMetadata(accession="M2", attributes={"organism": "mouse", "family": "lysozyme"}),
    ])

    assert df.columns == ["accession", "family", "organism"]
    assert df["organism"].to_list() == ["", "mouse"]


def test_metadata_to_frame_empty():
    """Test that no records still yields an accession column."""
    df = metadata_to_frame([])

    assert df.columns == ["accession"]
    assert df.height == 0
