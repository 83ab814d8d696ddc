"""Metrics port CLI commands.

- show: resolve the metrics endpoint of every node in a topology
"""

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from dispatch_core.cli.partition import read_topology_file
from dispatch_core.config import Configuration, DispatcherSettings
from dispatch_core.endpoints import PortResolver
from dispatch_core.exceptions import InvalidConfigurationError, NoEndpointConfiguredError

ports_app = typer.Typer(help="Inspect metrics endpoint configuration")


@ports_app.command("show")
def show_ports(
    config_path: Path = typer.Option(
        ..., "--config", "-c", exists=True, help="Client configuration (properties or YAML)"
    ),
    topology: Path = typer.Option(..., "--topology", exists=True, help="Topology YAML file"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Show the metrics URL each node would be polled at."""
    try:
        resolver = PortResolver.from_configuration(Configuration.load(config_path))
    except InvalidConfigurationError as e:
        print(f"Error: {e}")
        raise typer.Exit(1)

    settings = DispatcherSettings()
    cluster = read_topology_file(topology)

    rows = []
    missing = 0
    for node in cluster.nodes():
        try:
            port = resolver.resolve_port(node.id)
        except NoEndpointConfiguredError:
            missing += 1
            rows.append({"id": node.id, "host": node.host, "port": None, "url": None})
            continue
        source = "override" if node.id in resolver.overrides else "default"
        rows.append(
            {
                "id": node.id,
                "host": node.host,
                "port": port,
                "source": source,
                "url": f"{settings.metrics_scheme}://{node.host}:{port}{settings.metrics_path}",
            }
        )

    if json_output:
        print(json.dumps(rows, indent=2))
    else:
        table = Table(title="Metrics endpoints")
        table.add_column("Node", justify="right", style="cyan")
        table.add_column("Host")
        table.add_column("Port", justify="right")
        table.add_column("Source")
        table.add_column("URL")
        for row in rows:
            if row["port"] is None:
                table.add_row(str(row["id"]), row["host"], "[red]missing[/red]", "-", "-")
            else:
                table.add_row(
                    str(row["id"]), row["host"], str(row["port"]), row["source"], row["url"]
                )
        Console().print(table)

    if missing:
        raise typer.Exit(1)
