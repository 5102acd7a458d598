"""Annotate command: score, search and join one sequence set.

Runs the full pipeline with paths given on the command line and
thresholds/tool settings taken from the configuration file:
- Scores sequences with the external classifier (cached by input fingerprint)
- Searches the passing sequences against the reference set
- Joins hits with reference metadata
- Writes TSV+Parquet output and provenance
"""

import logging
import sys
from pathlib import Path

import click

from amp_pipeline.config.loader import load_config_with_overrides
from amp_pipeline.errors import PipelineError
from amp_pipeline.output import add_descriptions, write_annotation_output
from amp_pipeline.persistence import PipelineStore, ProvenanceTracker
from amp_pipeline.pipeline import run_from_config

logger = logging.getLogger(__name__)


@click.command('annotate')
@click.option(
    '--sequences',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help='Query FASTA (plain or gzip-compressed)'
)
@click.option(
    '--reference',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help='Reference FASTA searched for homologs'
)
@click.option(
    '--metadata',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help='Reference metadata table (TSV, or CSV by extension)'
)
@click.option(
    '--threshold',
    type=click.FloatRange(0.0, 1.0),
    default=None,
    help='Override annotation.threshold from the config'
)
@click.option(
    '--output-dir',
    type=click.Path(path_type=Path),
    default=None,
    help='Output directory (default: {data_dir}/annotation)'
)
@click.option(
    '--force',
    is_flag=True,
    help='Overwrite existing output files'
)
@click.pass_context
def annotate(ctx, sequences, reference, metadata, threshold, output_dir, force):
    """Annotate predicted AMPs with homology hits and reference metadata.

    Examples:

        # Run with the configured threshold
        amp-pipeline annotate --sequences proteome.fasta.gz \\
            --reference mammal.fasta --metadata mammal_meta.tsv

        # Stricter threshold, custom output directory
        amp-pipeline annotate --sequences proteome.fasta --reference ref.fasta \\
            --metadata meta.tsv --threshold 0.95 --output-dir results/
    """
    config_path = ctx.obj['config_path']

    click.echo(click.style("=== AMP Annotation ===", bold=True))
    click.echo()

    store = None
    try:
        click.echo("Loading configuration...")
        config = load_config_with_overrides(
            config_path, {"annotation.threshold": threshold}
        )
        click.echo(click.style(f"  Config loaded: {config_path}", fg='green'))
        click.echo(f"  Threshold: {config.annotation.threshold}")
        click.echo(f"  Model Version: {config.versions.model_version}")
        click.echo()

        if output_dir is None:
            output_dir = Path(config.data_dir) / "annotation"
        output_dir = Path(output_dir)

        tsv_path = output_dir / "annotated_predictions.tsv"
        if tsv_path.exists() and not force:
            click.echo(click.style(
                f"Warning: Output files already exist at {output_dir}",
                fg='yellow'
            ))
            click.echo(click.style(
                "  Use --force to overwrite existing files.",
                fg='yellow'
            ))
            return

        click.echo("Initializing storage and provenance tracking...")
        store = PipelineStore.from_config(config)
        provenance = ProvenanceTracker.from_config(config)
        click.echo(click.style("  Storage initialized", fg='green'))
        click.echo()

        click.echo(click.style("Running pipeline...", bold=True))
        try:
            result = run_from_config(
                config,
                sequences_path=sequences,
                reference_path=reference,
                metadata_path=metadata,
                store=store,
                provenance=provenance,
            )
        except PipelineError as e:
            click.echo(click.style(f"  Pipeline failed: {e}", fg='red'), err=True)
            logger.exception("Pipeline run failed")
            sys.exit(1)

        click.echo(click.style(
            f"  Scored {len(result.predictions)} sequences, "
            f"{len(result.records)} above threshold",
            fg='green'
        ))
        click.echo()

        click.echo("Writing output files...")
        frame = add_descriptions(
            result.frame, marker=config.annotation.description_marker
        )
        paths = write_annotation_output(frame, output_dir)
        provenance_path = provenance.save_sidecar(paths["tsv"])
        provenance.save_to_store(store)
        click.echo(click.style(f"  TSV: {paths['tsv']}", fg='green'))
        click.echo(click.style(f"  Parquet: {paths['parquet']}", fg='green'))
        click.echo(click.style(f"  Provenance: {provenance_path}", fg='green'))
        click.echo()

        click.echo(click.style("=== Summary ===", bold=True))
        click.echo(f"Annotated predictions: {len(result.records)}")
        click.echo(f"  With homolog:    {result.counts[True]}")
        click.echo(f"  Without homolog: {result.counts[False]}")
        click.echo(f"DuckDB Path: {config.duckdb_path}")
        click.echo()
        click.echo(click.style("Annotation complete!", fg='green', bold=True))

    except Exception as e:
        click.echo(click.style(f"Annotate command failed: {e}", fg='red'), err=True)
        logger.exception("Annotate command failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()
