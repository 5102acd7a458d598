"""Scoring backends consumed by the classifier adapter.

A scorer is an opaque, deterministic function from a batch of sequences to
one probability per sequence. Two backends are provided: an external
command (the usual case, a packaged classifier run as a subprocess) and an
in-process callable for embedded models.
"""

import math
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Protocol

import polars as pl
import structlog

from amp_pipeline.annotation.normalize import short_key
from amp_pipeline.errors import MalformedInputError, ScorerUnavailableError
from amp_pipeline.sequences import SequenceRecord, write_fasta

logger = structlog.get_logger()


class Scorer(Protocol):
    """Interface every scoring backend implements."""

    model_version: str

    def score_batch(self, sequences: list[SequenceRecord]) -> list[float]:
        """Return one probability per input sequence, in input order."""
        ...


class CommandScorer:
    """Run an external classifier command over a FASTA batch.

    The command template receives ``{input}`` (a FASTA file holding the
    batch) and ``{output}`` (where the scorer must write a tab-separated
    table with a ``seq_id`` and a ``probability`` column). ``seq_id`` may
    be the full header or its short key.

    Literal braces in the template must be doubled (``{{`` and ``}}``).
    """

    def __init__(
        self,
        command: str,
        model_version: str,
        work_dir: Path,
        timeout_seconds: int = 3600,
    ):
        self.command = command
        try:
            self.argv_template = shlex.split(command)
            self._argv("input", "output")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(
                f"Invalid scorer command template {command!r}: {e!r}"
            ) from e
        self.model_version = model_version
        self.work_dir = Path(work_dir)
        self.timeout_seconds = timeout_seconds

    def _argv(self, input_path, output_path) -> list[str]:
        # Substituted per token: a path containing spaces stays one argument
        return [
            token.format(input=str(input_path), output=str(output_path))
            for token in self.argv_template
        ]

    def _run(self, input_path: Path, output_path: Path) -> None:
        cmd = self._argv(input_path, output_path)
        logger.debug("scorer_command", cmd=cmd)
        try:
            subprocess.run(
                cmd,
                check=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as e:
            raise ScorerUnavailableError(
                f"Scorer executable not found: {cmd[0]}", stage="score"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise ScorerUnavailableError(
                f"Scorer did not finish within {self.timeout_seconds}s", stage="score"
            ) from e
        except subprocess.CalledProcessError as e:
            stderr_tail = (e.stderr or "").strip()[-500:]
            raise ScorerUnavailableError(
                f"Scorer exited with status {e.returncode}: {stderr_tail}",
                stage="score",
            ) from e

    def _read_scores(
        self, output_path: Path, sequences: list[SequenceRecord]
    ) -> list[float]:
        if not output_path.exists():
            raise ScorerUnavailableError(
                f"Scorer produced no output file: {output_path}", stage="score"
            )
        try:
            df = pl.read_csv(
                output_path,
                separator="\t",
                schema_overrides={"seq_id": pl.Utf8, "probability": pl.Float64},
            )
        except pl.exceptions.PolarsError as e:
            raise MalformedInputError(
                f"Unreadable scorer output: {e}", stage="score"
            ) from e

        missing_cols = {"seq_id", "probability"} - set(df.columns)
        if missing_cols:
            raise MalformedInputError(
                f"Scorer output lacks columns: {sorted(missing_cols)}", stage="score"
            )

        by_id: dict[str, float] = {}
        for seq_id, prob in df.select(["seq_id", "probability"]).iter_rows():
            if seq_id is None or prob is None:
                raise MalformedInputError(
                    "Scorer output has an empty seq_id or probability",
                    stage="score",
                    record_id=seq_id,
                )
            by_id.setdefault(seq_id, prob)

        scores = []
        for rec in sequences:
            prob = by_id.get(rec.id)
            if prob is None:
                prob = by_id.get(short_key(rec.id))
            if prob is None:
                raise MalformedInputError(
                    "Scorer output has no probability for sequence",
                    stage="score",
                    record_id=rec.id,
                )
            scores.append(prob)
        return scores

    def score_batch(self, sequences: list[SequenceRecord]) -> list[float]:
        self.work_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(dir=self.work_dir, prefix="score_") as tmp:
            input_path = write_fasta(Path(tmp) / "batch.fasta", sequences)
            output_path = Path(tmp) / "scores.tsv"
            self._run(input_path, output_path)
            return self._read_scores(output_path, sequences)


class CallableScorer:
    """Score sequences with an in-process function of the residue string."""

    def __init__(self, fn: Callable[[str], float], model_version: str):
        self.fn = fn
        self.model_version = model_version

    def score_batch(self, sequences: list[SequenceRecord]) -> list[float]:
        scores = []
        for rec in sequences:
            try:
                value = float(self.fn(rec.sequence))
            except Exception as e:
                raise ScorerUnavailableError(
                    f"Embedded scorer failed: {e}", stage="score", record_id=rec.id
                ) from e
            if math.isnan(value):
                raise MalformedInputError(
                    "Embedded scorer returned NaN", stage="score", record_id=rec.id
                )
            scores.append(value)
        return scores
