"""Classifier adapter: probability scoring of sequence batches."""

from amp_pipeline.classifier.models import (
    PREDICTION_CACHE_TABLE,
    PREDICTION_SCHEMA,
    PredictionRecord,
    predictions_to_frame,
)
from amp_pipeline.classifier.scorers import CallableScorer, CommandScorer, Scorer
from amp_pipeline.classifier.adapter import ClassifierAdapter, PredictionCache

__all__ = [
    "PREDICTION_CACHE_TABLE",
    "PREDICTION_SCHEMA",
    "PredictionRecord",
    "predictions_to_frame",
    "Scorer",
    "CommandScorer",
    "CallableScorer",
    "ClassifierAdapter",
    "PredictionCache",
]
