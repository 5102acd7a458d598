"""End-to-end annotation run: ingest -> score -> search -> join -> aggregate.

Stages run sequentially and each consumes the complete output of the one
before it. Every input (sequence sets, threshold, metadata table, tool
settings) is passed in explicitly; nothing is read from ambient state.
"""

from dataclasses import dataclass, field
from pathlib import Path

import polars as pl
import structlog

from amp_pipeline.annotation import (
    ANNOTATED_TABLE_NAME,
    AnnotatedRecord,
    annotate_frame,
    frame_to_records,
)
from amp_pipeline.classifier import ClassifierAdapter, PredictionRecord, predictions_to_frame
from amp_pipeline.config.schema import PipelineConfig
from amp_pipeline.homology import HomologyAdapter, HomologyHit, hits_to_frame
from amp_pipeline.output import summarize_homology
from amp_pipeline.persistence import PipelineStore, ProvenanceTracker
from amp_pipeline.reference import ReferenceMetadata, metadata_to_frame, read_metadata_table
from amp_pipeline.sequences import SequenceRecord, read_fasta, sequence_fingerprint

logger = structlog.get_logger()


@dataclass
class PipelineResult:
    """Outputs of one pipeline run.

    Attributes:
        records: AnnotatedRecords, one per prediction above the threshold
        frame: Tabular form of ``records``
        counts: CountSummary keyed by has_homolog
        predictions: All predictions, one per input sequence
        hits: All hits reported for the searched queries
    """
    records: list[AnnotatedRecord]
    frame: pl.DataFrame
    counts: dict[bool, int]
    predictions: list[PredictionRecord] = field(default_factory=list)
    hits: list[HomologyHit] = field(default_factory=list)


def run_pipeline(
    sequences: list[SequenceRecord],
    threshold: float,
    reference: list[SequenceRecord] | Path,
    metadata: list[ReferenceMetadata] | pl.DataFrame,
    classifier: ClassifierAdapter,
    homology: HomologyAdapter,
    metadata_key: str = "subject_title",
    provenance: ProvenanceTracker | None = None,
) -> PipelineResult:
    """Annotate a sequence set.

    Only sequences whose probability passes the threshold are sent to the
    homology search; the others can never appear in the output.

    Args:
        sequences: Query sequences
        threshold: Probability cutoff (strictly greater passes)
        reference: Reference sequences, or the prefix of a prebuilt index
        metadata: Reference metadata records or an equivalent frame
        classifier: Configured classifier adapter
        homology: Configured homology adapter
        metadata_key: Hit field joined against metadata accession
        provenance: Optional tracker receiving one step per stage

    Returns:
        PipelineResult

    Raises:
        ValueError: If threshold is outside [0, 1]
        ScorerUnavailableError, SearchUnavailableError, MalformedInputError:
            From the stage that failed; the run is aborted
    """
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must be within [0, 1], got {threshold}")

    logger.info(
        "pipeline_start",
        sequence_count=len(sequences),
        fingerprint=sequence_fingerprint(sequences)[:16],
        threshold=threshold,
    )

    # Score
    predictions = classifier.score(sequences)
    if provenance is not None:
        provenance.record_step("score", {
            "sequence_count": len(sequences),
            "model_version": classifier.scorer.model_version,
        })

    # Search
    passing = {p.seq_id for p in predictions if p.probability > threshold}
    queries = [rec for rec in sequences if rec.id in passing]
    hits = homology.search(queries, reference)
    if provenance is not None:
        provenance.record_step("search", {
            "query_count": len(queries),
            "hit_count": len(hits),
        })

    # Join
    if isinstance(metadata, pl.DataFrame):
        metadata_df = metadata
    else:
        metadata_df = metadata_to_frame(metadata)

    frame = annotate_frame(
        predictions_to_frame(predictions),
        hits_to_frame(hits),
        metadata_df,
        threshold=threshold,
        metadata_key=metadata_key,
    )
    records = frame_to_records(frame)

    # Aggregate
    counts = summarize_homology(records)
    if provenance is not None:
        provenance.record_step("annotate", {
            "threshold": threshold,
            "metadata_key": metadata_key,
            "annotated_count": len(records),
            "with_homolog": counts[True],
            "without_homolog": counts[False],
        })

    logger.info(
        "pipeline_complete",
        annotated_count=len(records),
        with_homolog=counts[True],
        without_homolog=counts[False],
    )
    return PipelineResult(
        records=records,
        frame=frame,
        counts=counts,
        predictions=predictions,
        hits=hits,
    )


def run_from_config(
    config: PipelineConfig,
    sequences_path: Path,
    reference_path: Path,
    metadata_path: Path,
    store: PipelineStore,
    provenance: ProvenanceTracker,
) -> PipelineResult:
    """Run the pipeline on files, with tools and thresholds taken from ``config``.

    The annotated table is persisted to the store as ``annotated_predictions``.
    """
    sequences = read_fasta(sequences_path)
    reference = read_fasta(reference_path)
    metadata_df = read_metadata_table(
        metadata_path, accession_column=config.annotation.accession_column
    )
    provenance.record_step("ingest", {
        "sequences_path": str(sequences_path),
        "sequence_count": len(sequences),
        "reference_path": str(reference_path),
        "reference_count": len(reference),
        "metadata_path": str(metadata_path),
        "metadata_rows": metadata_df.height,
    })

    result = run_pipeline(
        sequences,
        threshold=config.annotation.threshold,
        reference=reference,
        metadata=metadata_df,
        classifier=ClassifierAdapter.from_config(config, store=store),
        homology=HomologyAdapter.from_config(config),
        metadata_key=config.annotation.metadata_key,
        provenance=provenance,
    )

    store.save_dataframe(
        result.frame,
        ANNOTATED_TABLE_NAME,
        description=f"Predictions above {config.annotation.threshold} with homology and metadata",
        replace=True,
    )
    return result
