"""Tests for hit table parsing and the homology search adapter."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import polars as pl
import pytest

from amp_pipeline.config.schema import HomologyConfig
from amp_pipeline.errors import MalformedInputError, SearchUnavailableError
from amp_pipeline.homology import (
    BLAST_OUTFMT,
    HIT_COLUMNS,
    HomologyAdapter,
    hits_to_frame,
    parse_hit_line,
    parse_hit_table,
    read_hit_table,
)
from amp_pipeline.sequences import SequenceRecord

HIT_LINE = "P1\tM1\t87.5\t40\t1e-10\t85.1\t5\t0\t1\t40\t3\t42\tN/A\t0\tM1 Defensin-like OS=Mus musculus"


def hit_row(query_id, subject_id, e_value, bitscore, title=None):
    """One 15-column hit row."""
    return "\t".join([
        query_id, subject_id, "90.0", "30", str(e_value), str(bitscore),
        "3", "0", "1", "30", "1", "30", "N/A", "0", title or subject_id,
    ])


@pytest.fixture
def queries():
    return [
        SequenceRecord(id="P1 candidate", sequence="GIGKFLHSAKKFGKAFVGEIMNS"),
        SequenceRecord(id="P2 candidate", sequence="KWKLFKKIEKVGQNIRDGIIKAGPAVAVVGQATQIAK"),
    ]


@pytest.fixture
def reference():
    return [
        SequenceRecord(id="M1 Defensin-like OS=Mus musculus", sequence="GIGKFLHSAKKFGKAFVGEIMNS"),
        SequenceRecord(id="M2 Cathelicidin OS=Mus musculus", sequence="KWKLFKKIEKVGQNIRDG"),
    ]


@pytest.fixture
def adapter(tmp_path):
    return HomologyAdapter(HomologyConfig(threads=2), index_dir=tmp_path / "index")


def test_parse_hit_line():
    """Test parsing all 15 fields with their types."""
    hit = parse_hit_line(HIT_LINE, 1)

    assert hit.query_id == "P1"
    assert hit.subject_id == "M1"
    assert hit.identity_pct == 87.5
    assert hit.alignment_length == 40
    assert hit.e_value == 1e-10
    assert hit.bitscore == 85.1
    assert hit.query_span == (1, 40)
    assert hit.subject_span == (3, 42)
    assert hit.subject_strand == "N/A"
    assert hit.subject_frame == 0
    assert hit.subject_title == "M1 Defensin-like OS=Mus musculus"


def test_wrong_field_count():
    """Test that a row without exactly 15 fields is malformed."""
    short = "\t".join(HIT_LINE.split("\t")[:14])

    with pytest.raises(MalformedInputError, match="14 fields") as exc_info:
        parse_hit_line(short, 7)

    assert exc_info.value.stage == "search"
    assert exc_info.value.record_id == "P1"


def test_non_numeric_field():
    """Test that a non-numeric e-value is malformed."""
    fields = HIT_LINE.split("\t")
    fields[4] = "tiny"

    with pytest.raises(MalformedInputError, match="e_value"):
        parse_hit_line("\t".join(fields), 1)


def test_empty_query_id():
    """Test that a row without a query id is malformed."""
    with pytest.raises(MalformedInputError, match="empty query id"):
        parse_hit_line("\t" + HIT_LINE.split("\t", 1)[1], 1)


def test_parse_table_keeps_order_and_skips_blank_lines():
    """Test that hits come back in input order, unranked."""
    data = "\n".join([
        hit_row("P1", "M2", 1e-5, 40.0),
        "",
        hit_row("P1", "M1", 1e-20, 90.0),
        hit_row("P2", "M3", 1e-3, 20.0),
    ]) + "\n"

    hits = parse_hit_table(data.encode())

    assert [(h.query_id, h.subject_id) for h in hits] == [("P1", "M2"), ("P1", "M1"), ("P2", "M3")]


@pytest.mark.parametrize("separator", ["\x0c", "\x1c", "\x85", "\u2028"])
def test_subject_title_keeps_line_separator_characters(separator):
    """Test that only newline ends a hit row; other separators stay in the title."""
    title = f"M1 Defensin-like{separator}OS=Mus musculus"
    data = hit_row("P1", "M1", 1e-5, 40.0, title=title) + "\r\n"

    hits = parse_hit_table(data.encode())

    assert len(hits) == 1
    assert hits[0].subject_title == title


def test_one_bad_row_aborts_parse():
    """Test that no partial result is returned on a malformed row."""
    data = hit_row("P1", "M1", 1e-5, 40.0) + "\nnot a hit row\n"

    with pytest.raises(MalformedInputError, match="line 2"):
        parse_hit_table(data)


def test_empty_table():
    """Test that an empty table has no hits."""
    assert parse_hit_table(b"") == []


def test_read_hit_table(tmp_path):
    """Test reading a hit table from disk."""
    path = tmp_path / "hits.tsv"
    path.write_text(HIT_LINE + "\n")

    assert len(read_hit_table(path)) == 1
    with pytest.raises(FileNotFoundError):
        read_hit_table(tmp_path / "missing.tsv")


def test_hits_to_frame():
    """Test tabular form of hits, including the empty case."""
    df = hits_to_frame([parse_hit_line(HIT_LINE, 1)])

    assert df.columns == HIT_COLUMNS
    assert df["query_start"].to_list() == [1]
    assert df.schema["e_value"] == pl.Float64

    empty = hits_to_frame([])
    assert empty.height == 0
    assert empty.columns == HIT_COLUMNS


def fake_blast(hit_lines):
    """Build a subprocess.run stand-in for makeblastdb and blastp."""
    def run(cmd, **kwargs):
        if "-out" in cmd and "-outfmt" in cmd:
            out = Path(cmd[cmd.index("-out") + 1])
            out.write_text("\n".join(hit_lines) + "\n")
        return subprocess.CompletedProcess(cmd, 0, "", "")
    return run


def test_search(adapter, queries, reference):
    """Test index build plus search with the expected tool arguments."""
    lines = [hit_row("P1", "M1", 1e-30, 95.0, "M1 Defensin-like OS=Mus musculus")]

    with patch("amp_pipeline.homology.search.subprocess.run", side_effect=fake_blast(lines)) as mock_run:
        hits = adapter.search(queries, reference)

    assert len(hits) == 1
    assert hits[0].subject_title == "M1 Defensin-like OS=Mus musculus"

    build_cmd = mock_run.call_args_list[0][0][0]
    search_cmd = mock_run.call_args_list[1][0][0]
    assert build_cmd[0] == "makeblastdb"
    assert build_cmd[build_cmd.index("-dbtype") + 1] == "prot"
    assert search_cmd[0] == "blastp"
    assert search_cmd[search_cmd.index("-outfmt") + 1] == BLAST_OUTFMT
    assert search_cmd[search_cmd.index("-num_threads") + 1] == "2"
    assert search_cmd[search_cmd.index("-db") + 1] == build_cmd[build_cmd.index("-out") + 1]


def test_index_reused_for_same_reference(adapter, queries, reference):
    """Test that an unchanged reference set is indexed only once."""
    with patch("amp_pipeline.homology.search.subprocess.run", side_effect=fake_blast([])) as mock_run:
        adapter.search(queries, reference)
        adapter.search(queries, reference)
        adapter.search(queries, reference[:1])

    tools = [c[0][0][0] for c in mock_run.call_args_list]
    assert tools == ["makeblastdb", "blastp", "blastp", "makeblastdb", "blastp"]


def test_search_with_prebuilt_index(adapter, queries, tmp_path):
    """Test that a database path skips the index build."""
    with patch("amp_pipeline.homology.search.subprocess.run", side_effect=fake_blast([])) as mock_run:
        hits = adapter.search(queries, tmp_path / "prebuilt" / "ref")

    assert hits == []
    assert mock_run.call_count == 1
    assert mock_run.call_args[0][0][0] == "blastp"


def test_no_queries_skips_search(adapter, reference):
    """Test that an empty query set never invokes the tools."""
    with patch("amp_pipeline.homology.search.subprocess.run") as mock_run:
        assert adapter.search([], reference) == []

    mock_run.assert_not_called()


def test_missing_search_tool(adapter, queries, reference):
    """Test that a missing executable is a SearchUnavailableError."""
    with patch(
        "amp_pipeline.homology.search.subprocess.run",
        side_effect=FileNotFoundError("makeblastdb"),
    ):
        with pytest.raises(SearchUnavailableError, match="not found") as exc_info:
            adapter.search(queries, reference)

    assert exc_info.value.stage == "search"


def test_failed_index_build_not_marked_complete(adapter, queries, reference):
    """Test that a failed index build is retried on the next run, not reused."""
    error = subprocess.CalledProcessError(1, ["makeblastdb"], output="", stderr="bad input")

    with patch("amp_pipeline.homology.search.subprocess.run", side_effect=error):
        with pytest.raises(SearchUnavailableError, match="bad input"):
            adapter.search(queries, reference)

    with patch("amp_pipeline.homology.search.subprocess.run", side_effect=fake_blast([])) as mock_run:
        adapter.search(queries, reference)

    assert mock_run.call_args_list[0][0][0][0] == "makeblastdb"


def test_search_timeout(adapter, queries, tmp_path):
    """Test that a hung search is reported, not retried."""
    with patch(
        "amp_pipeline.homology.search.subprocess.run",
        side_effect=subprocess.TimeoutExpired(["blastp"], 7200),
    ) as mock_run:
        with pytest.raises(SearchUnavailableError, match="did not finish"):
            adapter.search(queries, tmp_path / "ref")

    assert mock_run.call_count == 1


def test_malformed_search_output(adapter, queries, tmp_path):
    """Test that malformed tool output aborts the search."""
    with patch(
        "amp_pipeline.homology.search.subprocess.run",
        side_effect=fake_blast(["P1\tM1\tgarbage"]),
    ):
        with pytest.raises(MalformedInputError):
            adapter.search(queries, tmp_path / "ref")
