"""Partition selection CLI commands.

This module provides CLI commands for exercising the dispatcher against a
live cluster:
- select: poll the topic's leaders once, then print the chosen partition
- watch: print per-node costs and the chosen partition every interval

The topology comes either from a YAML file (--topology) or from a cluster
metadata API (--topology-url).
"""

import asyncio
import signal
from pathlib import Path

import httpx
import typer
import yaml
from rich.console import Console
from rich.table import Table

from dispatch_core.config import Configuration, DispatcherSettings
from dispatch_core.dispatcher import StrictCostDispatcher
from dispatch_core.exceptions import InvalidConfigurationError, NoEndpointConfiguredError
from dispatch_core.topology import ClusterSnapshot, TopologyClient

partition_app = typer.Typer(help="Select partitions using live broker metrics")


async def load_cluster(
    topology: Path | None,
    topology_url: str | None,
    topics: list[str],
) -> ClusterSnapshot:
    """
    Load the cluster view from a file or a metadata API.

    Unreadable or malformed topology is reported and exits with code 1.
    """
    if topology is not None:
        return read_topology_file(topology)
    if topology_url is None:
        print("Error: one of --topology or --topology-url is required")
        raise typer.Exit(1)
    try:
        async with httpx.AsyncClient(base_url=topology_url, timeout=10.0) as http:
            return await TopologyClient(http=http).get_cluster(topics)
    except (httpx.HTTPError, ValueError) as e:
        print(f"Error: cannot load topology from {topology_url}: {e}")
        raise typer.Exit(1)


def read_topology_file(path: Path) -> ClusterSnapshot:
    """Load a topology YAML file, exiting with code 1 if it is malformed."""
    try:
        return ClusterSnapshot.load(path)
    except (yaml.YAMLError, ValueError) as e:
        print(f"Error: invalid topology file {path}: {e}")
        raise typer.Exit(1)


def _costs_table(
    dispatcher: StrictCostDispatcher,
    cluster: ClusterSnapshot,
    chosen: int,
    topic: str,
) -> Table:
    """Per-node total cost, marking the leader of the chosen partition."""
    chosen_leader = next(
        (p.leader.id for p in cluster.available_partitions(topic) if p.partition == chosen),
        None,
    )
    snapshots = dispatcher.registry.snapshot_all()

    table = Table(title=f"Node costs for {topic} (chosen partition: {chosen})")
    table.add_column("Node", justify="right", style="cyan")
    table.add_column("Host")
    table.add_column("Cost", justify="right")
    table.add_column("Snapshot", justify="center")
    table.add_column("Leader of", justify="right")

    for node_id, cost in dispatcher.node_costs(cluster).items():
        node = cluster.node(node_id)
        led = [
            str(p.partition)
            for p in cluster.available_partitions(topic)
            if p.leader is not None and p.leader.id == node_id
        ]
        mark = "[green]*[/green] " if node_id == chosen_leader else ""
        snapshot = snapshots.get(node_id)
        table.add_row(
            f"{mark}{node_id}",
            node.host if node else "-",
            f"{cost:.4f}",
            snapshot.taken_at.strftime("%H:%M:%S") if snapshot else "[yellow]pending[/yellow]",
            ",".join(led) or "-",
        )
    return table


@partition_app.command("select")
def select_partition(
    topic: str = typer.Option(..., "--topic", "-t", help="Topic to write to"),
    config_path: Path = typer.Option(
        ..., "--config", "-c", exists=True, help="Client configuration (properties or YAML)"
    ),
    topology: Path = typer.Option(
        None, "--topology", exists=True, help="Topology YAML file"
    ),
    topology_url: str = typer.Option(
        None, "--topology-url", envvar="DISPATCH_TOPOLOGY_URL", help="Cluster metadata API URL"
    ),
    key: str = typer.Option("", "--key", "-k", help="Record key"),
    warmup: float = typer.Option(
        None, "--warmup", help="Seconds to let pollers gather metrics (default: one interval)"
    ),
) -> None:
    """Print the partition the dispatcher picks for one record."""

    async def _select() -> int:
        cluster = await load_cluster(topology, topology_url, [topic])
        dispatcher = StrictCostDispatcher.from_configuration(
            Configuration.load(config_path), settings=DispatcherSettings()
        )
        async with dispatcher:
            # First call registers pollers for every leader
            dispatcher.partition(topic, key.encode(), b"", cluster)
            await asyncio.sleep(dispatcher.interval if warmup is None else warmup)
            return dispatcher.partition(topic, key.encode(), b"", cluster)

    try:
        partition = asyncio.run(_select())
    except (InvalidConfigurationError, NoEndpointConfiguredError) as e:
        print(f"Error: {e}")
        raise typer.Exit(1)

    print(partition)


@partition_app.command("watch")
def watch_partitions(
    topic: str = typer.Option(..., "--topic", "-t", help="Topic to write to"),
    config_path: Path = typer.Option(
        ..., "--config", "-c", exists=True, help="Client configuration (properties or YAML)"
    ),
    topology: Path = typer.Option(
        None, "--topology", exists=True, help="Topology YAML file"
    ),
    topology_url: str = typer.Option(
        None, "--topology-url", envvar="DISPATCH_TOPOLOGY_URL", help="Cluster metadata API URL"
    ),
    count: int = typer.Option(
        0, "--count", "-n", help="Stop after this many tables (0: run until interrupted)"
    ),
) -> None:
    """
    Show node costs and the chosen partition every poll interval.

    Runs until interrupted with Ctrl+C, or for --count intervals.
    """
    console = Console()

    async def _watch() -> None:
        shutdown = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, shutdown.set)

        cluster = await load_cluster(topology, topology_url, [topic])
        dispatcher = StrictCostDispatcher.from_configuration(Configuration.load(config_path))

        print(f"Watching {topic} (interval: {dispatcher.interval}s)")
        print("Press Ctrl+C to stop")

        shown = 0
        async with dispatcher:
            while not shutdown.is_set():
                chosen = dispatcher.partition(topic, None, None, cluster)
                console.print(_costs_table(dispatcher, cluster, chosen, topic))
                shown += 1
                if count and shown >= count:
                    break

                try:
                    await asyncio.wait_for(shutdown.wait(), timeout=dispatcher.interval)
                except asyncio.TimeoutError:
                    pass

        print("Stopped")

    try:
        asyncio.run(_watch())
    except (InvalidConfigurationError, NoEndpointConfiguredError) as e:
        print(f"Error: {e}")
        raise typer.Exit(1)
