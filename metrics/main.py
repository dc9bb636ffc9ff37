"""
Command line interface for the status page metrics service.
"""

import asyncio
import json
import sys
from datetime import datetime

import click
import pytz

from metrics.errors import MetricsError
from metrics.pipeline import MetricsPipeline
from utils.config import DEFAULT_CONFIG_PATH, get_config
from utils.logger import setup_logging


def _load_pipeline(config_path: str) -> MetricsPipeline:
    setup_logging(config_path)
    config = get_config(config_path)
    if not config.validate_config():
        raise click.ClickException(f"Invalid configuration: {config_path}")
    return MetricsPipeline.from_config(config)


@click.group()
@click.option('--config', 'config_path', default=DEFAULT_CONFIG_PATH, show_default=True,
              help='Path to the YAML configuration file')
@click.pass_context
def cli(ctx, config_path):
    """Status page metrics CLI."""
    ctx.obj = {'config_path': config_path}


@cli.command()
@click.argument('event_file', type=click.File('r'))
@click.pass_context
def post(ctx, event_file):
    """Post datapoints from a JSON file mapping metric ids to datapoints."""
    pipeline = _load_pipeline(ctx.obj['config_path'])

    try:
        event = json.load(event_file)
    except ValueError as e:
        raise click.ClickException(f"Invalid JSON in {event_file.name}: {e}")

    if not isinstance(event, dict):
        raise click.ClickException("The event must be a JSON object keyed by metric id")

    result = asyncio.run(pipeline.post_datapoints(event))

    if not result.success:
        click.echo(json.dumps(result.errors, indent=2))
        sys.exit(1)

    click.echo(json.dumps(result.data, indent=2))


@cli.command()
@click.option('--metric-id', 'metric_ids', multiple=True, help='Metric to collect (repeatable, default all)')
@click.pass_context
def collect(ctx, metric_ids):
    """Collect new datapoints from the monitoring API."""
    pipeline = _load_pipeline(ctx.obj['config_path'])

    results = asyncio.run(pipeline.collect_all(list(metric_ids) or None))

    successful = sum(1 for r in results.values() if r.success)
    click.echo(f"Collection complete: {successful}/{len(results)} successful")
    for metric_id, r in results.items():
        status = "OK  " if r.success else "FAIL"
        detail = f"{r.datapoints_merged} datapoints" if r.success else r.error_message
        click.echo(f"  {status} {metric_id:14} {detail}")

    stats = pipeline.get_pipeline_stats()
    click.echo(f"Success rate: {stats['success_rate']:.0%} in {stats['total_runtime']:.2f}s")
    if 'api_usage' in stats:
        usage = stats['api_usage']
        click.echo(f"API calls: {usage['recent_calls']}/{usage['calls_per_minute_limit']} in the last minute")

    if successful < len(results):
        sys.exit(1)


@cli.command(name='list')
@click.option('--public', is_flag=True, help='Only visible metrics')
@click.option('--external', is_flag=True, help='Metrics known to the monitoring API')
@click.pass_context
def list_metrics(ctx, public, external):
    """List metrics."""
    if public and external:
        raise click.UsageError("--public and --external are mutually exclusive")

    pipeline = _load_pipeline(ctx.obj['config_path'])

    try:
        if external:
            descriptors = asyncio.run(pipeline.metrics.list_external())
            click.echo(json.dumps(descriptors, indent=2))
            return

        if public:
            metrics = asyncio.run(pipeline.metrics.list_public())
        else:
            metrics = asyncio.run(pipeline.metrics.list())
    except MetricsError as e:
        raise click.ClickException(str(e))

    for metric in metrics:
        click.echo(f"{metric.metric_id:14} {metric.status:8} {metric.type:12} {metric.title}")


@cli.command()
@click.argument('metric_id')
@click.option('--date', 'day', type=click.DateTime(formats=['%Y-%m-%d']),
              help='UTC day to show (default today)')
@click.pass_context
def show(ctx, metric_id, day):
    """Show one day's datapoints of a metric."""
    pipeline = _load_pipeline(ctx.obj['config_path'])
    day = day.date() if day else datetime.now(pytz.UTC).date()

    async def run():
        metric = await pipeline.metrics.lookup(metric_id)
        return await metric.get_datapoints(day)

    try:
        datapoints = asyncio.run(run())
    except MetricsError as e:
        raise click.ClickException(str(e))

    if datapoints is None:
        click.echo(f"No datapoints for {metric_id} on {day}")
        return

    click.echo(json.dumps([point.to_dict() for point in datapoints], indent=2))


if __name__ == "__main__":
    cli()
