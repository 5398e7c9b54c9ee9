"""Command-line interface for knowgraph.

Every command loads a graph snapshot JSON file and reports on it:
- info: Show node, edge and per-type counts
- metrics: Show graph metrics, or one node's centralities
- central: Rank nodes by a centrality measure
- structure: Show structural analysis and important elements
- patterns: Mine structural patterns
- cluster: Cluster nodes by community, Louvain modularity or content similarity
- path: Find the shortest path, or all paths, between two nodes
"""

import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from knowgraph import __version__
from knowgraph.core.config import EngineConfig
from knowgraph.core.constants import ClusterAlgorithm, CentralityType, PatternType
from knowgraph.core.exceptions import ConfigurationError, SnapshotError
from knowgraph.graph.snapshot import load_snapshot
from knowgraph.graph.store import GraphStore


logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="knowgraph",
    help="Knowledge graph analytics over snapshot files.",
    no_args_is_help=True,
)

SnapshotArg = Annotated[
    Path,
    typer.Argument(help="Path to a graph snapshot JSON file"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", "-j", help="Output as JSON"),
]


def _emit_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"knowgraph {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to an engine config JSON file"),
    ] = None,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """Knowledge graph analytics over snapshot files."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = EngineConfig.load(config_path) if config_path else EngineConfig()
    except ConfigurationError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    ctx.obj = {"config": config}


def load_store(ctx: typer.Context, snapshot_path: Path) -> GraphStore:
    """Build a store from a snapshot file, exiting with status 1 on failure.

    Args:
        ctx: Typer context carrying the engine configuration.
        snapshot_path: Snapshot JSON file.

    Returns:
        Populated GraphStore.
    """
    config = ctx.obj["config"] if ctx.obj else EngineConfig()
    try:
        snapshot = load_snapshot(snapshot_path)
    except SnapshotError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    store = GraphStore(config=config)
    report = store.import_snapshot(snapshot)
    if report.nodes_skipped or report.edges_skipped:
        err_console.print(
            f"[yellow]Skipped {report.nodes_skipped} nodes and "
            f"{report.edges_skipped} edges while loading[/yellow]"
        )
    return store


@app.command("info")
def info_command(ctx: typer.Context, snapshot: SnapshotArg, json_output: JsonOption = False) -> None:
    """Show graph statistics."""
    store = load_store(ctx, snapshot)
    stats = store.get_stats()

    if json_output:
        _emit_json(stats.to_dict())
        return

    table = Table(title="Knowledge Graph")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Nodes", str(stats.node_count))
    table.add_row("Edges", str(stats.edge_count))
    table.add_row("Components", str(len(store.get_connected_components())))
    console.print(table)

    if stats.node_type_counts:
        type_table = Table(title="Nodes by Type")
        type_table.add_column("Type", style="cyan")
        type_table.add_column("Count", style="green", justify="right")
        for node_type, count in sorted(stats.node_type_counts.items()):
            type_table.add_row(node_type, str(count))
        console.print(type_table)

    if stats.relationship_counts:
        rel_table = Table(title="Relationships by Type")
        rel_table.add_column("Type", style="cyan")
        rel_table.add_column("Count", style="green", justify="right")
        for rel_type, count in sorted(stats.relationship_counts.items()):
            rel_table.add_row(rel_type, str(count))
        console.print(rel_table)


@app.command("metrics")
def metrics_command(
    ctx: typer.Context,
    snapshot: SnapshotArg,
    node_id: Annotated[
        Optional[str],
        typer.Option("--node", "-n", help="Show metrics for a single node"),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Show graph-level metrics, or the centralities of one node."""
    store = load_store(ctx, snapshot)

    if node_id is not None:
        metrics = store.calculate_node_metrics(node_id)
        if metrics is None:
            err_console.print(f"[red]Node not found: {node_id}[/red]")
            raise typer.Exit(1)
        data = metrics.to_dict()
        title = f"Node Metrics: {node_id}"
    else:
        data = store.calculate_graph_metrics().to_dict()
        title = "Graph Metrics"

    if json_output:
        _emit_json(data)
        return

    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")
    for name, value in data.items():
        if name in ("node_id", "duration_ms"):
            continue
        table.add_row(name.replace("_", " ").title(), str(value))
    console.print(table)


@app.command("central")
def central_command(
    ctx: typer.Context,
    snapshot: SnapshotArg,
    count: Annotated[
        int,
        typer.Option("--count", "-k", help="Number of nodes to show"),
    ] = 5,
    centrality_type: Annotated[
        str,
        typer.Option(
            "--type",
            "-t",
            help=f"Centrality measure: {', '.join(c.value for c in CentralityType)}",
        ),
    ] = CentralityType.PAGERANK.value,
    json_output: JsonOption = False,
) -> None:
    """Rank nodes by centrality."""
    store = load_store(ctx, snapshot)
    central = store.find_central_nodes(count, centrality_type)

    if json_output:
        _emit_json([c.to_dict() for c in central])
        return

    if not central:
        console.print("[yellow]Graph is empty[/yellow]")
        return

    table = Table(title=f"Most Central Nodes ({central[0].centrality_type})")
    table.add_column("Rank", justify="right")
    table.add_column("Node", style="cyan")
    table.add_column("Score", style="green", justify="right")
    for rank, node in enumerate(central, 1):
        table.add_row(str(rank), node.node_id, f"{node.score:.4f}")
    console.print(table)


@app.command("structure")
def structure_command(ctx: typer.Context, snapshot: SnapshotArg, json_output: JsonOption = False) -> None:
    """Show structural analysis and structurally important elements."""
    store = load_store(ctx, snapshot)
    analysis = store.analyze_structure()
    importance = store.get_structural_importance()

    if json_output:
        _emit_json({"analysis": analysis.to_dict(), "importance": importance.to_dict()})
        return

    console.print(Panel(
        f"Small-world: {'yes' if analysis.has_small_world_property else 'no'}\n"
        f"Scale-free: {'yes' if analysis.is_scale_free else 'no'}\n"
        f"Community structure strength: {analysis.community_structure_strength:.4f}\n"
        f"Bridge nodes: {', '.join(analysis.bridge_nodes) or 'none'}",
        title="Structural Analysis",
    ))

    if importance.hubs:
        table = Table(title="Hubs")
        table.add_column("Node", style="cyan")
        table.add_column("Degree", justify="right")
        table.add_column("Importance", style="green", justify="right")
        for hub in importance.hubs:
            table.add_row(hub.node_id, str(hub.degree), f"{hub.importance:.4f}")
        console.print(table)

    if importance.bridges:
        table = Table(title="Bridge Edges")
        table.add_column("From", style="cyan")
        table.add_column("To", style="cyan")
        table.add_column("Importance", style="green", justify="right")
        for bridge in importance.bridges:
            table.add_row(bridge.from_id, bridge.to_id, f"{bridge.importance:.4f}")
        console.print(table)


@app.command("patterns")
def patterns_command(
    ctx: typer.Context,
    snapshot: SnapshotArg,
    pattern_types: Annotated[
        Optional[list[str]],
        typer.Option(
            "--type",
            "-t",
            help=f"Pattern family to mine (repeatable): {', '.join(p.value for p in PatternType)}",
        ),
    ] = None,
    max_size: Annotated[
        Optional[int],
        typer.Option("--max-size", "-m", help="Maximum nodes per pattern"),
    ] = None,
    min_support: Annotated[
        Optional[float],
        typer.Option("--min-support", help="Minimum pattern support"),
    ] = None,
    min_confidence: Annotated[
        Optional[float],
        typer.Option("--min-confidence", help="Minimum pattern confidence"),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Mine structural patterns."""
    store = load_store(ctx, snapshot)

    overrides: dict[str, Any] = {}
    if pattern_types:
        overrides["enabled_patterns"] = tuple(pattern_types)
    if max_size is not None:
        overrides["max_pattern_size"] = max_size
    if min_support is not None:
        overrides["min_support"] = min_support
    if min_confidence is not None:
        overrides["min_confidence"] = min_confidence

    result = store.mine_patterns(replace(store.config.mining, **overrides))

    if json_output:
        _emit_json(result.to_dict())
        return

    if not result.patterns:
        console.print("[yellow]No patterns found[/yellow]")
        return

    table = Table(title=f"Patterns ({result.pattern_count})")
    table.add_column("ID", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Nodes")
    table.add_column("Support", justify="right")
    table.add_column("Confidence", justify="right")
    for pattern in result.patterns:
        table.add_row(
            pattern.id,
            pattern.pattern_type,
            " -> ".join(pattern.nodes),
            f"{pattern.support:.3f}",
            f"{pattern.confidence:.3f}",
        )
    console.print(table)
    console.print(
        f"Coverage: {result.coverage_percentage:.1f}% of {result.total_nodes} nodes "
        f"({result.duration_ms:.1f}ms)"
    )


@app.command("cluster")
def cluster_command(
    ctx: typer.Context,
    snapshot: SnapshotArg,
    algorithm: Annotated[
        str,
        typer.Option(
            "--algorithm",
            "-a",
            help=f"Clustering algorithm: {', '.join(a.value for a in ClusterAlgorithm)}",
        ),
    ] = ClusterAlgorithm.COMMUNITY.value,
    resolution: Annotated[
        Optional[float],
        typer.Option("--resolution", "-r", help="Louvain modularity resolution"),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Cluster nodes."""
    store = load_store(ctx, snapshot)

    community = store.config.community
    if resolution is not None:
        community = replace(community, resolution=resolution)
    clusters = store.cluster_nodes(algorithm, community_config=community)

    if json_output:
        _emit_json([c.to_dict() for c in clusters])
        return

    if not clusters:
        console.print("[yellow]Graph is empty[/yellow]")
        return

    table = Table(title=f"Clusters ({clusters[0].algorithm})")
    table.add_column("ID", style="dim")
    table.add_column("Size", justify="right")
    table.add_column("Coherence", style="green", justify="right")
    table.add_column("Centroid", style="cyan")
    table.add_column("Members")
    for cluster in clusters:
        table.add_row(
            cluster.id,
            str(cluster.size),
            f"{cluster.coherence:.3f}",
            cluster.centroid or "-",
            ", ".join(cluster.nodes),
        )
    console.print(table)


@app.command("path")
def path_command(
    ctx: typer.Context,
    snapshot: SnapshotArg,
    from_id: Annotated[str, typer.Argument(help="Source node ID")],
    to_id: Annotated[str, typer.Argument(help="Target node ID")],
    all_paths: Annotated[
        bool,
        typer.Option("--all", help="List every simple path instead of the shortest"),
    ] = False,
    max_depth: Annotated[
        Optional[int],
        typer.Option("--max-depth", "-d", help="Maximum nodes per path (with --all)"),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Find paths between two nodes."""
    store = load_store(ctx, snapshot)

    for node_id, label in ((from_id, "Source"), (to_id, "Target")):
        if not store.has_node(node_id):
            err_console.print(f"[red]{label} node not found: {node_id}[/red]")
            raise typer.Exit(1)

    if all_paths:
        paths = store.find_paths(from_id, to_id, max_depth)
    else:
        shortest = store.find_shortest_path(from_id, to_id)
        paths = [shortest] if shortest else []

    if json_output:
        _emit_json(paths)
        return

    if not paths:
        console.print(f"[yellow]No path found between {from_id} and {to_id}[/yellow]")
        return

    for path in paths:
        console.print(f"[green]({len(path) - 1} hops)[/green] " + " --> ".join(path))


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
