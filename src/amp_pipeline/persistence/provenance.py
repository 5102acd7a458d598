"""Run provenance: which model, reference and settings produced an output."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

PROVENANCE_TABLE = "_provenance"


class ProvenanceTracker:
    """
    Collects provenance for one annotation run.

    Captures the package version, the model and reference versions, a
    hash of the full configuration and an ordered list of stage records
    (ingest, score, search, annotate). The result is written next to the
    output files and appended to the DuckDB store.
    """

    def __init__(self, pipeline_version: str, config: "PipelineConfig"):
        self.pipeline_version = pipeline_version
        self.config_hash = config.config_hash()
        self.data_source_versions = config.versions.model_dump()
        self.processing_steps: list[dict] = []
        self.created_at = datetime.now(timezone.utc)

    def record_step(self, step_name: str, details: Optional[dict] = None) -> None:
        """
        Append a stage record stamped with the current UTC time.

        Args:
            step_name: Stage name, e.g. "score"
            details: Stage statistics such as counts or thresholds
        """
        step = {
            "step_name": step_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if details:
            step["details"] = details
        self.processing_steps.append(step)

    def get_steps(self) -> list[dict]:
        return self.processing_steps

    def create_metadata(self) -> dict:
        return {
            "pipeline_version": self.pipeline_version,
            "data_source_versions": self.data_source_versions,
            "config_hash": self.config_hash,
            "created_at": self.created_at.isoformat(),
            "processing_steps": self.processing_steps,
        }

    def save_sidecar(self, output_path: Path) -> Path:
        """
        Write the provenance JSON beside an output file.

        ``results/annotated_predictions.tsv`` gets
        ``results/annotated_predictions.provenance.json``.

        Returns:
            Path of the sidecar
        """
        sidecar_path = Path(output_path).with_suffix(".provenance.json")
        sidecar_path.parent.mkdir(parents=True, exist_ok=True)
        sidecar_path.write_text(json.dumps(self.create_metadata(), indent=2, default=str))
        return sidecar_path

    def save_to_store(self, store: "PipelineStore") -> None:
        """Append one row for this run to the store's provenance table."""
        metadata = self.create_metadata()

        store.conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {PROVENANCE_TABLE} (
                version VARCHAR,
                config_hash VARCHAR,
                created_at TIMESTAMP,
                steps_json VARCHAR
            )
        """)
        store.conn.execute(
            f"INSERT INTO {PROVENANCE_TABLE} VALUES (?, ?, ?, ?)",
            [
                metadata["pipeline_version"],
                metadata["config_hash"],
                metadata["created_at"],
                json.dumps(metadata["processing_steps"], default=str),
            ],
        )

    @staticmethod
    def load_sidecar(sidecar_path: Path) -> dict:
        return json.loads(Path(sidecar_path).read_text())

    @classmethod
    def from_config(
        cls,
        config: "PipelineConfig",
        version: Optional[str] = None
    ) -> "ProvenanceTracker":
        """Tracker for ``config``; version defaults to ``amp_pipeline.__version__``."""
        if version is None:
            from amp_pipeline import __version__
            version = __version__

        return cls(version, config)
