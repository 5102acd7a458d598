"""Main CLI entry point for amp-pipeline.

Provides command group with global options and subcommands for pipeline operations.
"""

import logging
from pathlib import Path

import click

from amp_pipeline import __version__
from amp_pipeline.config.loader import load_config
from amp_pipeline.cli.annotate_cmd import annotate
from amp_pipeline.cli.summary_cmd import summary
from amp_pipeline.cli.cache_cmd import cache


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@click.group()
@click.option(
    '--config',
    type=click.Path(exists=True, path_type=Path),
    default='config/default.yaml',
    help='Path to pipeline configuration YAML file'
)
@click.option(
    '--verbose',
    is_flag=True,
    help='Enable verbose logging (DEBUG level)'
)
@click.pass_context
def cli(ctx, config, verbose):
    """amp-pipeline: annotate antimicrobial peptide predictions with homology evidence.

    Scores a proteome with an external classifier, searches the passing
    sequences against a reference set and joins the hits with reference
    metadata into one annotated table.
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Verbose logging enabled")


@cli.command()
@click.pass_context
def info(ctx):
    """Display pipeline information and configuration summary."""
    config_path = ctx.obj['config_path']

    click.echo(f"amp-pipeline v{__version__}")
    click.echo(f"Config: {config_path}")
    click.echo()

    try:
        config = load_config(config_path)

        click.echo(f"Config Hash: {config.config_hash()[:16]}...")
        click.echo()

        click.echo(click.style("Versions:", bold=True))
        click.echo(f"  Model Version:     {config.versions.model_version}")
        click.echo(f"  Reference Release: {config.versions.reference_release}")
        click.echo()

        click.echo(click.style("Paths:", bold=True))
        click.echo(f"  Data Directory: {config.data_dir}")
        click.echo(f"  Cache Directory: {config.cache_dir}")
        click.echo(f"  DuckDB Path: {config.duckdb_path}")
        click.echo()

        click.echo(click.style("Classifier:", bold=True))
        click.echo(f"  Command: {config.classifier.command}")
        click.echo(f"  Batch Size: {config.classifier.batch_size}")
        click.echo(f"  Workers: {config.classifier.workers}")
        click.echo()

        click.echo(click.style("Homology Search:", bold=True))
        click.echo(f"  Tools: {config.homology.makeblastdb}, {config.homology.search}")
        click.echo(f"  E-value: {config.homology.evalue:g}")
        click.echo(f"  Max Target Seqs: {config.homology.max_target_seqs}")
        click.echo()

        click.echo(click.style("Annotation:", bold=True))
        click.echo(f"  Threshold: {config.annotation.threshold}")
        click.echo(f"  Metadata Key: {config.annotation.metadata_key}")

    except Exception as e:
        click.echo(click.style(f"Error loading config: {e}", fg='red'), err=True)
        ctx.exit(1)


cli.add_command(annotate)
cli.add_command(summary)
cli.add_command(cache)


if __name__ == '__main__':
    cli()
