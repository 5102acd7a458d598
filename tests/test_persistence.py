"""Tests for persistence layer (DuckDB store and provenance tracking)."""

import json

import polars as pl
import pytest

from amp_pipeline.config.loader import load_config
from amp_pipeline.persistence import PipelineStore, ProvenanceTracker


@pytest.fixture
def test_config(tmp_path):
    """Create a minimal test config."""
    config_path = tmp_path / "test_config.yaml"
    config_path.write_text("""
data_dir: {data_dir}
cache_dir: {cache_dir}
duckdb_path: {duckdb_path}
versions:
  model_version: amp-classifier-test
  reference_release: test-release
classifier:
  command: "amp-score {{input}} {{output}}"
annotation:
  threshold: 0.8
""".format(
        data_dir=str(tmp_path / "data"),
        cache_dir=str(tmp_path / "cache"),
        duckdb_path=str(tmp_path / "test.duckdb"),
    ))
    return load_config(config_path)


@pytest.fixture
def predictions_df():
    return pl.DataFrame({
        "seq_id": ["P1 desc", "P2 desc", "P3 desc"],
        "probability": [0.95, 0.12, 0.88],
        "has_homolog": [True, False, True],
    })


# ============================================================================
# DuckDB Store Tests
# ============================================================================

def test_store_creates_database(tmp_path):
    """Test that PipelineStore creates .duckdb file at specified path."""
    db_path = tmp_path / "nested" / "test.duckdb"
    assert not db_path.exists()

    store = PipelineStore(db_path)
    store.close()

    assert db_path.exists()


def test_save_and_load(tmp_path, predictions_df):
    """Test saving and loading a polars DataFrame."""
    store = PipelineStore(tmp_path / "test.duckdb")

    store.save_dataframe(predictions_df, "predictions", "test predictions")
    loaded = store.load_dataframe("predictions")

    assert loaded.shape == predictions_df.shape
    assert loaded.columns == predictions_df.columns
    assert loaded["seq_id"].to_list() == predictions_df["seq_id"].to_list()
    assert loaded["has_homolog"].to_list() == [True, False, True]

    store.close()


def test_append_mode(tmp_path, predictions_df):
    """Test that replace=False appends rows and updates the row count."""
    store = PipelineStore(tmp_path / "test.duckdb")

    # Append to a missing table creates it
    store.save_dataframe(predictions_df, "predictions", replace=False)
    store.save_dataframe(predictions_df.head(1), "predictions", replace=False)

    assert store.load_dataframe("predictions").height == 4
    checkpoint = store.list_checkpoints()[0]
    assert checkpoint["row_count"] == 4

    store.close()


def test_rejects_non_polars(tmp_path):
    """Test that only polars DataFrames can be saved."""
    store = PipelineStore(tmp_path / "test.duckdb")

    with pytest.raises(ValueError):
        store.save_dataframe({"seq_id": ["P1"]}, "predictions")

    store.close()


def test_rejects_unsafe_table_name(tmp_path, predictions_df):
    """Test that table names must be plain identifiers."""
    store = PipelineStore(tmp_path / "test.duckdb")

    with pytest.raises(ValueError, match="Invalid table name"):
        store.save_dataframe(predictions_df, "x; DROP TABLE _checkpoints")

    store.close()


def test_checkpoint_lifecycle(tmp_path):
    """Test checkpoint lifecycle: save -> has -> delete -> not has."""
    store = PipelineStore(tmp_path / "test.duckdb")

    df = pl.DataFrame({"col": [1, 2, 3]})

    assert not store.has_checkpoint("test_table")

    store.save_dataframe(df, "test_table", "test")
    assert store.has_checkpoint("test_table")

    store.delete_checkpoint("test_table")
    assert not store.has_checkpoint("test_table")

    assert store.load_dataframe("test_table") is None

    store.close()


def test_list_checkpoints(tmp_path):
    """Test listing checkpoints returns metadata."""
    store = PipelineStore(tmp_path / "test.duckdb")

    for i in range(3):
        df = pl.DataFrame({"val": list(range(i + 1))})
        store.save_dataframe(df, f"table_{i}", f"description {i}")

    checkpoints = store.list_checkpoints()

    assert len(checkpoints) == 3
    for ckpt in checkpoints:
        assert set(ckpt) == {"table_name", "created_at", "row_count", "description"}

    table_0 = [c for c in checkpoints if c["table_name"] == "table_0"][0]
    assert table_0["row_count"] == 1
    assert table_0["description"] == "description 0"

    store.close()


def test_execute_query_with_params(tmp_path, predictions_df):
    """Test parameterized queries return polars frames."""
    store = PipelineStore(tmp_path / "test.duckdb")
    store.save_dataframe(predictions_df, "predictions")

    result = store.execute_query(
        "SELECT seq_id FROM predictions WHERE probability > ? ORDER BY seq_id",
        params=[0.8],
    )

    assert isinstance(result, pl.DataFrame)
    assert result["seq_id"].to_list() == ["P1 desc", "P3 desc"]

    store.close()


def test_load_nonexistent_returns_none(tmp_path):
    """Test that loading non-existent table returns None."""
    store = PipelineStore(tmp_path / "test.duckdb")

    assert store.load_dataframe("nonexistent_table") is None

    store.close()


def test_context_manager(tmp_path, predictions_df):
    """Test context manager support and persistence across connections."""
    db_path = tmp_path / "test.duckdb"

    with PipelineStore(db_path) as store:
        store.save_dataframe(predictions_df, "predictions", "test")
        assert store.has_checkpoint("predictions")

    with PipelineStore(db_path) as store:
        loaded = store.load_dataframe("predictions")
        assert loaded is not None
        assert loaded.shape == predictions_df.shape


def test_from_config(test_config):
    """Test that the store opens the configured DuckDB path."""
    with PipelineStore.from_config(test_config) as store:
        assert store.db_path == test_config.duckdb_path

    assert test_config.duckdb_path.exists()


# ============================================================================
# Provenance Tests
# ============================================================================

def test_provenance_metadata_structure(test_config):
    """Test that provenance metadata has all required keys."""
    tracker = ProvenanceTracker("0.1.0", test_config)

    metadata = tracker.create_metadata()

    assert metadata["pipeline_version"] == "0.1.0"
    assert metadata["data_source_versions"] == {
        "model_version": "amp-classifier-test",
        "reference_release": "test-release",
    }
    assert metadata["config_hash"] == test_config.config_hash()
    assert "created_at" in metadata
    assert metadata["processing_steps"] == []


def test_provenance_records_steps(test_config):
    """Test that processing steps are recorded with timestamps."""
    tracker = ProvenanceTracker("0.1.0", test_config)

    tracker.record_step("score")
    tracker.record_step("search", {"query_count": 12})

    steps = tracker.get_steps()

    assert len(steps) == 2
    assert steps[0]["step_name"] == "score"
    assert "details" not in steps[0]
    assert steps[1]["details"]["query_count"] == 12
    assert all("timestamp" in step for step in steps)


def test_provenance_sidecar_roundtrip(test_config, tmp_path):
    """Test saving and loading provenance sidecar."""
    tracker = ProvenanceTracker("0.1.0", test_config)
    tracker.record_step("annotate", {"threshold": 0.8})

    sidecar_path = tracker.save_sidecar(tmp_path / "annotated_predictions.tsv")

    assert sidecar_path == tmp_path / "annotated_predictions.provenance.json"
    loaded = ProvenanceTracker.load_sidecar(sidecar_path)

    assert loaded["pipeline_version"] == "0.1.0"
    assert loaded["config_hash"] == test_config.config_hash()
    assert loaded["processing_steps"][0]["step_name"] == "annotate"


def test_provenance_from_config_uses_package_version(test_config):
    """Test that from_config defaults to the installed package version."""
    from amp_pipeline import __version__

    tracker = ProvenanceTracker.from_config(test_config)

    assert tracker.pipeline_version == __version__


def test_provenance_save_to_store(test_config, tmp_path):
    """Test saving provenance to DuckDB store."""
    store = PipelineStore(tmp_path / "test.duckdb")
    tracker = ProvenanceTracker("0.1.0", test_config)
    tracker.record_step("ingest")

    tracker.save_to_store(store)

    result = store.conn.execute("SELECT * FROM _provenance").fetchall()
    assert len(result) == 1

    row = result[0]
    assert row[0] == "0.1.0"
    assert row[1] == test_config.config_hash()

    steps = json.loads(row[3])
    assert steps[0]["step_name"] == "ingest"

    store.close()
