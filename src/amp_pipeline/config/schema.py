"""Pydantic models for pipeline configuration."""

import hashlib
import json
import shlex
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class DataSourceVersions(BaseModel):
    """Version information for the classifier model and reference data."""

    model_version: str = Field(
        ...,
        min_length=1,
        description="Classifier model version (part of the prediction cache key)",
    )
    reference_release: str = Field(
        default="unknown",
        description="Release of the reference sequence set and metadata table",
    )


class ClassifierConfig(BaseModel):
    """Configuration for the external probability scorer."""

    command: str = Field(
        ...,
        description="Scorer command template with {input} and {output} placeholders",
    )
    batch_size: int = Field(
        default=500,
        ge=1,
        description="Number of sequences per scorer invocation",
    )
    workers: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Parallel scorer invocations (1 = sequential)",
    )
    timeout_seconds: int = Field(
        default=3600,
        ge=1,
        description="Per-batch scorer timeout in seconds",
    )

    @field_validator("command")
    @classmethod
    def require_placeholders(cls, v: str) -> str:
        """Command template must reference both the input and output files."""
        if "{input}" not in v or "{output}" not in v:
            raise ValueError("classifier command must contain {input} and {output} placeholders")
        try:
            for token in shlex.split(v):
                token.format(input="", output="")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(
                f"classifier command accepts only the {{input}} and {{output}} placeholders; "
                f"double any literal braces ({e!r})"
            ) from e
        return v


class HomologyConfig(BaseModel):
    """Configuration for the homology search tools (BLAST+)."""

    makeblastdb: str = Field(
        default="makeblastdb",
        description="Index-build executable",
    )
    search: str = Field(
        default="blastp",
        description="Search executable",
    )
    evalue: float = Field(
        default=1e-5,
        gt=0.0,
        description="E-value reporting cutoff passed to the search tool",
    )
    max_target_seqs: int = Field(
        default=5,
        ge=1,
        description="Maximum reported subjects per query",
    )
    threads: int = Field(
        default=1,
        ge=1,
        description="Threads used by the search tool",
    )
    timeout_seconds: int = Field(
        default=7200,
        ge=1,
        description="Timeout for one search invocation in seconds",
    )


class AnnotationConfig(BaseModel):
    """Join and filter parameters for the annotation engine."""

    threshold: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Keep predictions with probability strictly above this value",
    )
    metadata_key: Literal["subject_title", "subject_id"] = Field(
        default="subject_title",
        description="Hit field joined against the reference accession column",
    )
    accession_column: str = Field(
        default="accession",
        min_length=1,
        description="Accession column name in the reference metadata table",
    )
    description_marker: str = Field(
        default="OS=",
        min_length=1,
        description="Marker token that ends the descriptive part of a header",
    )


class PipelineConfig(BaseModel):
    """Main pipeline configuration."""

    data_dir: Path = Field(
        ...,
        description="Directory for pipeline outputs and search indexes",
    )
    cache_dir: Path = Field(
        ...,
        description="Directory for scratch files of external tool runs",
    )
    duckdb_path: Path = Field(
        ...,
        description="Path to DuckDB database file",
    )
    versions: DataSourceVersions = Field(
        ...,
        description="Model and reference version information",
    )
    classifier: ClassifierConfig = Field(
        ...,
        description="Classifier adapter configuration",
    )
    homology: HomologyConfig = Field(
        default_factory=HomologyConfig,
        description="Homology adapter configuration",
    )
    annotation: AnnotationConfig = Field(
        ...,
        description="Annotation engine configuration",
    )

    @field_validator("data_dir", "cache_dir")
    @classmethod
    def create_directory(cls, v: Path) -> Path:
        """Create directory if it doesn't exist."""
        v.mkdir(parents=True, exist_ok=True)
        return v

    def config_hash(self) -> str:
        """
        Compute SHA-256 hash of the configuration.

        Returns a deterministic hash based on all config values,
        useful for tracking config changes in provenance records.
        """
        config_dict = self.model_dump(mode="python")
        # Path objects are serialized through str()
        config_json = json.dumps(
            config_dict,
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(config_json.encode()).hexdigest()
