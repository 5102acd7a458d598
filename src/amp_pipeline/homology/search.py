"""Run the external homology search (BLAST+) and collect its hits.

The search engine is a black box: this module builds its index, invokes
it once per query set and parses the tabular output. It neither ranks nor
deduplicates hits; choosing one hit per query is the annotation engine's
job. Failed or hung tool runs raise immediately and are never retried.
"""

import subprocess
import tempfile
from pathlib import Path
from typing import Sequence

import structlog

from amp_pipeline.config.schema import HomologyConfig
from amp_pipeline.errors import SearchUnavailableError
from amp_pipeline.homology.models import BLAST_OUTFMT, HomologyHit
from amp_pipeline.homology.parse import parse_hit_table
from amp_pipeline.sequences import SequenceRecord, sequence_fingerprint, write_fasta

logger = structlog.get_logger()

# Written next to the index once makeblastdb has succeeded
INDEX_SENTINEL = ".index_complete"


class HomologyAdapter:
    """Index a reference set and search query sequences against it."""

    def __init__(
        self,
        config: HomologyConfig,
        index_dir: Path,
        scratch_dir: Path | None = None,
    ):
        """Initialize homology adapter.

        Args:
            config: Tool executables and search parameters
            index_dir: Directory holding reference indexes (one per reference fingerprint)
            scratch_dir: Directory for per-search temporary files (default: index_dir)
        """
        self.config = config
        self.index_dir = Path(index_dir)
        self.scratch_dir = Path(scratch_dir) if scratch_dir is not None else self.index_dir

    def _run_tool(self, cmd: list[str], step: str) -> None:
        logger.debug("homology_tool_start", step=step, cmd=cmd)
        try:
            subprocess.run(
                cmd,
                check=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.config.timeout_seconds,
            )
        except FileNotFoundError as e:
            raise SearchUnavailableError(
                f"{step} executable not found: {cmd[0]}", stage="search"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise SearchUnavailableError(
                f"{step} did not finish within {self.config.timeout_seconds}s",
                stage="search",
            ) from e
        except subprocess.CalledProcessError as e:
            stderr_tail = (e.stderr or "").strip()[-500:]
            raise SearchUnavailableError(
                f"{step} exited with status {e.returncode}: {stderr_tail}",
                stage="search",
            ) from e

    def ensure_database(self, reference: Sequence[SequenceRecord]) -> Path:
        """Build the search index for a reference set unless it already exists.

        Indexes are keyed by the reference fingerprint, so a changed
        reference set gets a fresh index and an unchanged one is reused.

        Args:
            reference: Reference sequences

        Returns:
            Index prefix path passed to the search tool as ``-db``

        Raises:
            SearchUnavailableError: If the index-build tool is missing or fails
        """
        reference = list(reference)
        fingerprint = sequence_fingerprint(reference)
        db_dir = self.index_dir / f"ref_{fingerprint[:16]}"
        prefix = db_dir / "reference"
        sentinel = db_dir / INDEX_SENTINEL

        if sentinel.exists():
            logger.info("homology_index_exists", path=str(prefix))
            return prefix

        db_dir.mkdir(parents=True, exist_ok=True)
        fasta_path = write_fasta(db_dir / "reference.fasta", reference)

        logger.info(
            "homology_index_build_start",
            reference_count=len(reference),
            path=str(prefix),
        )
        self._run_tool(
            [
                self.config.makeblastdb,
                "-in", str(fasta_path),
                "-dbtype", "prot",
                "-out", str(prefix),
            ],
            step="makeblastdb",
        )
        sentinel.write_text(fingerprint + "\n")
        logger.info("homology_index_build_complete", path=str(prefix))
        return prefix

    def search(
        self,
        queries: Sequence[SequenceRecord],
        database: Sequence[SequenceRecord] | Path,
    ) -> list[HomologyHit]:
        """Search queries against a reference set.

        Args:
            queries: Query sequences
            database: Reference sequences (indexed on demand) or the prefix
                of an existing index

        Returns:
            All reported hits, unranked, zero or more per query

        Raises:
            SearchUnavailableError: If a tool is missing, fails or times out
            MalformedInputError: If the tool output has a malformed row
        """
        queries = list(queries)
        if not queries:
            return []

        if isinstance(database, (str, Path)):
            db_prefix = Path(database)
        else:
            db_prefix = self.ensure_database(database)

        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        logger.info("homology_search_start", query_count=len(queries), db=str(db_prefix))

        with tempfile.TemporaryDirectory(dir=self.scratch_dir, prefix="search_") as tmp:
            query_path = write_fasta(Path(tmp) / "queries.fasta", queries)
            out_path = Path(tmp) / "hits.tsv"
            self._run_tool(
                [
                    self.config.search,
                    "-db", str(db_prefix),
                    "-query", str(query_path),
                    "-outfmt", BLAST_OUTFMT,
                    "-evalue", str(self.config.evalue),
                    "-max_target_seqs", str(self.config.max_target_seqs),
                    "-num_threads", str(self.config.threads),
                    "-out", str(out_path),
                ],
                step="search",
            )
            if not out_path.exists():
                raise SearchUnavailableError(
                    "Search produced no output file", stage="search"
                )
            hits = parse_hit_table(out_path.read_bytes())

        logger.info(
            "homology_search_complete",
            hit_count=len(hits),
            queries_with_hits=len({h.query_id for h in hits}),
        )
        return hits

    @classmethod
    def from_config(cls, config: "PipelineConfig") -> "HomologyAdapter":
        return cls(
            config.homology,
            index_dir=Path(config.data_dir) / "homology",
            scratch_dir=Path(config.cache_dir) / "homology",
        )
