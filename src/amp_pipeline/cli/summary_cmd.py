"""Summary command: count annotated predictions from the DuckDB store."""

import logging
import sys

import click

from amp_pipeline.annotation import ANNOTATED_TABLE_NAME
from amp_pipeline.config.loader import load_config
from amp_pipeline.output import count_frame_by
from amp_pipeline.persistence import PipelineStore

logger = logging.getLogger(__name__)


@click.command('summary')
@click.option(
    '--by',
    'group_by',
    multiple=True,
    default=('has_homolog',),
    show_default=True,
    help='Column to count by (repeatable, e.g. --by has_homolog --by family)'
)
@click.pass_context
def summary(ctx, group_by):
    """Print counts of the last annotated table, grouped by one or more columns.

    Run this after 'amp-pipeline annotate'.
    """
    config_path = ctx.obj['config_path']

    store = None
    try:
        config = load_config(config_path)
        store = PipelineStore.from_config(config)

        if not store.has_checkpoint(ANNOTATED_TABLE_NAME):
            click.echo(click.style(
                f"Error: {ANNOTATED_TABLE_NAME} table not found. Run 'amp-pipeline annotate' first.",
                fg='red'
            ), err=True)
            sys.exit(1)

        df = store.load_dataframe(ANNOTATED_TABLE_NAME)

        click.echo(click.style("=== Annotation Summary ===", bold=True))
        click.echo(f"Annotated predictions: {df.height}")

        for column in group_by:
            click.echo()
            if column not in df.columns:
                click.echo(click.style(
                    f"Column '{column}' not in table (available: {', '.join(df.columns)})",
                    fg='yellow'
                ))
                continue
            click.echo(click.style(f"By {column}:", bold=True))
            for key, count in count_frame_by(df, column).items():
                label = "(none)" if key is None else key
                click.echo(f"  {label}: {count}")

    except Exception as e:
        click.echo(click.style(f"Summary command failed: {e}", fg='red'), err=True)
        logger.exception("Summary command failed")
        sys.exit(1)
    finally:
        if store is not None:
            store.close()
