"""Classifier adapter: batching, marshaling and cached scoring."""

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import polars as pl
import structlog
from pydantic import ValidationError

from amp_pipeline.classifier.models import (
    PREDICTION_CACHE_TABLE,
    PredictionRecord,
)
from amp_pipeline.classifier.scorers import CommandScorer, Scorer
from amp_pipeline.errors import MalformedInputError
from amp_pipeline.persistence import PipelineStore
from amp_pipeline.sequences import SequenceRecord, sequence_fingerprint

logger = structlog.get_logger()


class PredictionCache:
    """Score cache in DuckDB keyed by input-set fingerprint and model version.

    An entry is valid only for the exact input set it was computed from:
    any change to the sequences, their order or the model version misses.
    """

    def __init__(self, store: PipelineStore, table_name: str = PREDICTION_CACHE_TABLE):
        self.store = store
        self.table_name = table_name

    def lookup(
        self,
        fingerprint: str,
        model_version: str,
        sequences: list[SequenceRecord],
    ) -> list[PredictionRecord] | None:
        """Return cached predictions for this input set, or None on a miss."""
        if not self.store.has_checkpoint(self.table_name):
            return None

        df = self.store.execute_query(
            f"""
            SELECT seq_id, probability
            FROM {self.table_name}
            WHERE fingerprint = ? AND model_version = ?
            ORDER BY position
            """,
            params=[fingerprint, model_version],
        )
        if df.height != len(sequences):
            return None
        if df["seq_id"].to_list() != [rec.id for rec in sequences]:
            logger.warning("prediction_cache_mismatch", fingerprint=fingerprint[:16])
            return None

        return [
            PredictionRecord(seq_id=seq_id, probability=prob)
            for seq_id, prob in df.iter_rows()
        ]

    def save(
        self,
        fingerprint: str,
        model_version: str,
        predictions: list[PredictionRecord],
    ) -> None:
        df = pl.DataFrame(
            {
                "fingerprint": [fingerprint] * len(predictions),
                "model_version": [model_version] * len(predictions),
                "position": list(range(len(predictions))),
                "seq_id": [p.seq_id for p in predictions],
                "probability": [p.probability for p in predictions],
            },
            schema={
                "fingerprint": pl.Utf8,
                "model_version": pl.Utf8,
                "position": pl.Int64,
                "seq_id": pl.Utf8,
                "probability": pl.Float64,
            },
        )
        if self.store.has_checkpoint(self.table_name):
            self.store.conn.execute(
                f"DELETE FROM {self.table_name} WHERE fingerprint = ? AND model_version = ?",
                [fingerprint, model_version],
            )
        self.store.save_dataframe(
            df,
            self.table_name,
            description="Classifier probabilities keyed by input fingerprint",
            replace=False,
        )

    def entries(self) -> pl.DataFrame:
        """One row per cached input set with its sequence count."""
        if not self.store.has_checkpoint(self.table_name):
            return pl.DataFrame(
                schema={"fingerprint": pl.Utf8, "model_version": pl.Utf8, "sequence_count": pl.Int64}
            )
        return self.store.execute_query(
            f"""
            SELECT fingerprint, model_version, COUNT(*) AS sequence_count
            FROM {self.table_name}
            GROUP BY fingerprint, model_version
            ORDER BY fingerprint, model_version
            """
        )

    def clear(self) -> None:
        self.store.delete_checkpoint(self.table_name)


class ClassifierAdapter:
    """Score sequence batches with an opaque scorer.

    Output is one PredictionRecord per input sequence, in input order.
    Batches may be scored in parallel; results are reassembled by their
    original index. Scorer failures propagate unchanged and are never
    retried.
    """

    def __init__(
        self,
        scorer: Scorer,
        batch_size: int = 500,
        workers: int = 1,
        store: PipelineStore | None = None,
    ):
        """Initialize classifier adapter.

        Args:
            scorer: Scoring backend
            batch_size: Number of sequences per scorer call
            workers: Number of batches scored concurrently (1 = sequential)
            store: Optional PipelineStore used as a score cache
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.scorer = scorer
        self.batch_size = batch_size
        self.workers = workers
        self.cache = PredictionCache(store) if store is not None else None

    def _score_batch(self, start: int, batch: list[SequenceRecord]) -> tuple[int, list[float]]:
        scores = self.scorer.score_batch(batch)
        if len(scores) != len(batch):
            raise MalformedInputError(
                f"Scorer returned {len(scores)} scores for a batch of {len(batch)}",
                stage="score",
                record_id=batch[0].id,
            )
        return start, scores

    def _score_all(self, sequences: list[SequenceRecord]) -> list[float]:
        batches = [
            (i, sequences[i:i + self.batch_size])
            for i in range(0, len(sequences), self.batch_size)
        ]
        logger.info(
            "classifier_batches",
            batch_count=len(batches),
            batch_size=self.batch_size,
            workers=self.workers,
        )

        if self.workers > 1 and len(batches) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                results = list(pool.map(lambda b: self._score_batch(*b), batches))
        else:
            results = [self._score_batch(start, batch) for start, batch in batches]

        scores: list[float] = [0.0] * len(sequences)
        for start, batch_scores in results:
            scores[start:start + len(batch_scores)] = batch_scores
        return scores

    def score(self, sequences: list[SequenceRecord]) -> list[PredictionRecord]:
        """Score every sequence, using the cache when the input set is unchanged.

        Args:
            sequences: Sequences to score

        Returns:
            PredictionRecords aligned one-to-one with ``sequences``

        Raises:
            ScorerUnavailableError: If the scorer is missing or fails
            MalformedInputError: If the scorer output cannot be marshaled
                or a probability falls outside [0, 1]
        """
        sequences = list(sequences)
        if not sequences:
            return []

        fingerprint = sequence_fingerprint(sequences)
        model_version = self.scorer.model_version
        logger.info(
            "classifier_score_start",
            sequence_count=len(sequences),
            fingerprint=fingerprint[:16],
            model_version=model_version,
        )

        if self.cache is not None:
            cached = self.cache.lookup(fingerprint, model_version, sequences)
            if cached is not None:
                logger.info("classifier_cache_hit", sequence_count=len(cached))
                return cached

        scores = self._score_all(sequences)

        predictions = []
        for rec, prob in zip(sequences, scores):
            try:
                predictions.append(PredictionRecord(seq_id=rec.id, probability=prob))
            except ValidationError as e:
                raise MalformedInputError(
                    f"Invalid probability {prob!r}", stage="score", record_id=rec.id
                ) from e

        if self.cache is not None:
            self.cache.save(fingerprint, model_version, predictions)

        logger.info("classifier_score_complete", prediction_count=len(predictions))
        return predictions

    @classmethod
    def from_config(
        cls,
        config: "PipelineConfig",
        store: PipelineStore | None = None,
    ) -> "ClassifierAdapter":
        """Build an adapter around the configured external scorer command."""
        scorer = CommandScorer(
            command=config.classifier.command,
            model_version=config.versions.model_version,
            work_dir=Path(config.cache_dir) / "classifier",
            timeout_seconds=config.classifier.timeout_seconds,
        )
        return cls(
            scorer,
            batch_size=config.classifier.batch_size,
            workers=config.classifier.workers,
            store=store,
        )
