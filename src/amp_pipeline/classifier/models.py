"""Data models for classifier predictions."""

from typing import Iterable

import polars as pl
from pydantic import BaseModel, ConfigDict, Field

# Table name for the fingerprint-keyed score cache in DuckDB
PREDICTION_CACHE_TABLE = "prediction_cache"


class PredictionRecord(BaseModel):
    """Classifier output for a single sequence.

    Attributes:
        seq_id: Full header of the scored SequenceRecord
        probability: Probability of the positive functional class, in [0, 1]
    """

    model_config = ConfigDict(frozen=True)

    seq_id: str
    probability: float = Field(ge=0.0, le=1.0)


PREDICTION_SCHEMA = {"seq_id": pl.Utf8, "probability": pl.Float64}


def predictions_to_frame(predictions: Iterable[PredictionRecord]) -> pl.DataFrame:
    """Tabular form of predictions with columns ``seq_id, probability``."""
    predictions = list(predictions)
    return pl.DataFrame(
        {
            "seq_id": [p.seq_id for p in predictions],
            "probability": [p.probability for p in predictions],
        },
        schema=PREDICTION_SCHEMA,
    )
