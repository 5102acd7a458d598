"""Cache commands: inspect and clear the classifier score cache."""

import logging
import sys

import click

from amp_pipeline.classifier import PredictionCache
from amp_pipeline.config.loader import load_config
from amp_pipeline.persistence import PipelineStore

logger = logging.getLogger(__name__)


@click.group('cache')
def cache():
    """Inspect or clear cached classifier scores.

    Scores are cached per input sequence set (content fingerprint) and
    model version; a changed input set never reuses old scores.
    """
    pass


@cache.command('list')
@click.pass_context
def list_entries(ctx):
    """List cached score sets."""
    config_path = ctx.obj['config_path']

    store = None
    try:
        config = load_config(config_path)
        store = PipelineStore.from_config(config)
        entries = PredictionCache(store).entries()

        if entries.height == 0:
            click.echo("Prediction cache is empty.")
            return

        click.echo(click.style("=== Cached Score Sets ===", bold=True))
        for row in entries.iter_rows(named=True):
            click.echo(
                f"  {row['fingerprint'][:16]}  {row['model_version']}  "
                f"{row['sequence_count']} sequences"
            )

    except Exception as e:
        click.echo(click.style(f"Cache command failed: {e}", fg='red'), err=True)
        logger.exception("Cache list failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()


@cache.command('clear')
@click.confirmation_option(prompt='Delete all cached classifier scores?')
@click.pass_context
def clear(ctx):
    """Delete all cached scores."""
    config_path = ctx.obj['config_path']

    store = None
    try:
        config = load_config(config_path)
        store = PipelineStore.from_config(config)
        PredictionCache(store).clear()
        click.echo(click.style("Prediction cache cleared.", fg='green'))

    except Exception as e:
        click.echo(click.style(f"Cache command failed: {e}", fg='red'), err=True)
        logger.exception("Cache clear failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()
