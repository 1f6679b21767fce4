"""
nodewatch entry point.

Usage:
    nodewatch --url http://localhost:9200 --node node-2 serve       Prometheus exporter
    nodewatch --url http://localhost:9200 --node node-2 check       One-shot scrape
    nodewatch --url http://localhost:9200 --node node-2 check --raw
"""

from __future__ import annotations

import logging
import time

import click
import httpx
from prometheus_client import CollectorRegistry, generate_latest, start_http_server

from nodewatch import __version__
from nodewatch.collector.node_in_cluster import DEFAULT_NAMESPACE, NodeInClusterCollector


log = logging.getLogger("nodewatch")


def _build_collector(ctx: click.Context) -> NodeInClusterCollector:
    opts = ctx.obj
    client = httpx.Client(timeout=opts["timeout"])
    try:
        return NodeInClusterCollector(
            base_url=opts["url"],
            client=client,
            node=opts["node"],
            namespace=opts["namespace"],
        )
    except ValueError as e:
        client.close()
        raise click.BadParameter(str(e), ctx=ctx, param_hint="--url")


@click.group()
@click.version_option(version=__version__, prog_name="nodewatch")
@click.option("--url", envvar="NODEWATCH_URL", required=True,
              help="Elasticsearch base URL (e.g. http://localhost:9200)")
@click.option("--node", envvar="NODEWATCH_NODE", required=True,
              help="Substring to look for among cluster node names")
@click.option("--namespace", default=DEFAULT_NAMESPACE, help="Metric name prefix")
@click.option("--timeout", default=5.0, help="HTTP timeout in seconds")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx, url: str, node: str, namespace: str, timeout: float, verbose: bool):
    """nodewatch - reports whether a node is a member of an Elasticsearch cluster."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    ctx.ensure_object(dict)
    ctx.obj["url"] = url
    ctx.obj["node"] = node
    ctx.obj["namespace"] = namespace
    ctx.obj["timeout"] = timeout


@cli.command()
@click.option("--listen-address", default="0.0.0.0", help="Address to expose metrics on")
@click.option("--port", default=9114, help="Port to expose metrics on")
@click.pass_context
def serve(ctx, listen_address: str, port: int):
    """Expose the collector on /metrics until interrupted."""
    collector = _build_collector(ctx)
    registry = CollectorRegistry()
    registry.register(collector)

    start_http_server(port, addr=listen_address, registry=registry)
    log.info("Serving %s on %s:%d", collector.name(), listen_address, port)
    click.echo(f"Exporting {collector.name()} at http://{listen_address}:{port}/metrics")

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        registry.unregister(collector)
        collector.close()


@cli.command()
@click.option("--raw", is_flag=True, default=False,
              help="Print Prometheus text exposition instead of a table")
@click.pass_context
def check(ctx, raw: bool):
    """Run a single scrape and print the resulting samples."""
    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    collector = _build_collector(ctx)

    try:
        if raw:
            registry = CollectorRegistry()
            registry.register(collector)
            click.echo(generate_latest(registry).decode(), nl=False)
            if not collector.last_scrape_succeeded():
                raise SystemExit(1)
            return
        families = collector.collect()
    finally:
        collector.close()

    console = Console()
    table = Table(show_header=True, header_style="bold", title=escape(collector.name()))
    table.add_column("Sample")
    table.add_column("Labels")
    table.add_column("Value", justify="right")

    for family in families:
        for sample in family.samples:
            labels = escape(", ".join(f"{k}={v}" for k, v in sample.labels.items()))
            table.add_row(f"[cyan]{sample.name}[/cyan]", labels, f"{sample.value:g}")
    console.print(table)

    if not collector.last_scrape_succeeded():
        console.print("\n[bold red]Scrape failed -- see warnings above.[/bold red]")
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
