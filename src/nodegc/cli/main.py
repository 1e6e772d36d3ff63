"""Main CLI entry point for nodegc."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click
from rich.console import Console
from rich.table import Table

from nodegc import __version__

if TYPE_CHECKING:
    from nodegc.adapters.aws_adapter import AWSAdapter
    from nodegc.adapters.k8s_adapter import KubernetesAdapter
    from nodegc.core.config import NodeGCConfig
    from nodegc.core.models import PassResult
    from nodegc.gc.link_cache import LinkCache
    from nodegc.gc.reconciler import GarbageCollector

console = Console()


class NodeGCContext:
    """Shared context for CLI commands with lazy initialization."""

    def __init__(self, config_path: str):
        """Initialize context with config path.

        Args:
            config_path: Path to configuration file
        """
        self.config_path = config_path
        self._config: NodeGCConfig | None = None
        self._aws_adapter: AWSAdapter | None = None
        self._k8s_adapter: KubernetesAdapter | None = None
        self._link_cache: LinkCache | None = None
        self._collector: GarbageCollector | None = None

    @property
    def config(self) -> NodeGCConfig:
        """Get or create config lazily, configuring logging and rate limits."""
        if self._config is None:
            from nodegc.core.config import NodeGCConfig
            from nodegc.utils.logging import setup_logging
            from nodegc.utils.rate_limiter_init import initialize_rate_limiters

            self._config = NodeGCConfig.from_file(self.config_path)
            setup_logging(
                level=self._config.logging.level,
                format=self._config.logging.format,
                output=self._config.logging.output,
            )
            initialize_rate_limiters(self._config.rate_limits)
        return self._config

    @property
    def aws_adapter(self) -> AWSAdapter:
        """Get or create AWS adapter lazily."""
        if self._aws_adapter is None:
            from nodegc.adapters.aws_adapter import AWSAdapter

            self._aws_adapter = AWSAdapter(
                region=self.config.aws.region, profile=self.config.aws.profile
            )
        return self._aws_adapter

    @property
    def k8s_adapter(self) -> KubernetesAdapter:
        """Get or create Kubernetes adapter lazily."""
        if self._k8s_adapter is None:
            from nodegc.adapters.k8s_adapter import KubernetesAdapter
            from nodegc.clients.kubernetes_client import KubernetesClient

            k8s = self.config.kubernetes
            client = KubernetesClient(
                kubeconfig_path=k8s.kubeconfig_path,
                context=k8s.context,
                machine_group=k8s.machines.group,
                machine_version=k8s.machines.version,
                machine_plural=k8s.machines.plural,
            )
            self._k8s_adapter = KubernetesAdapter(
                linked_annotation_key=k8s.machines.linked_annotation_key, client=client
            )
        return self._k8s_adapter

    @property
    def link_cache(self) -> LinkCache:
        """Get or create the process-local link cache lazily."""
        if self._link_cache is None:
            from nodegc.gc.link_cache import LinkCache

            gc = self.config.garbage_collection
            self._link_cache = LinkCache(
                ttl=gc.link_cache_ttl_seconds,
                sweep_interval=gc.link_cache_sweep_interval_seconds,
            )
        return self._link_cache

    @property
    def collector(self) -> GarbageCollector:
        """Get or create the garbage collector lazily."""
        if self._collector is None:
            from nodegc.gc.deleter import Deleter
            from nodegc.gc.reconciler import GarbageCollector

            gc = self.config.garbage_collection
            self._collector = GarbageCollector(
                cloud_provider=self.aws_adapter,
                kubernetes_provider=self.k8s_adapter,
                link_cache=self.link_cache,
                tag_filter=self.config.cluster.tag_filter(),
                resolution_window=gc.resolution_window,
                deleter=Deleter(self.aws_adapter, max_concurrent=gc.max_concurrent_deletions),
            )
        return self._collector


def render_result(result: PassResult) -> None:
    """Print a pass summary table."""
    title = "Garbage Collection Pass (dry run)" if result.dry_run else "Garbage Collection Pass"
    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Instances scanned", str(result.instances_scanned))
    for reason, count in sorted(result.kept.items(), key=lambda item: item[0].value):
        table.add_row(f"Kept ({reason.value})", str(count))
    table.add_row("Orphaned", f"[yellow]{result.orphaned_found}[/yellow]")
    if not result.dry_run:
        table.add_row("Deleted", f"[green]{len(result.deleted)}[/green]")
        table.add_row("Failed", f"[red]{len(result.failed)}[/red]")
        table.add_row("Node deletion failures", str(len(result.node_deletion_failures)))
        table.add_row("Unprocessed", str(len(result.unprocessed)))
    table.add_row("Duration (s)", f"{result.duration_seconds:.2f}")
    console.print(table)

    if result.dry_run and result.orphaned:
        console.print("[yellow]Would delete:[/yellow] " + ", ".join(result.orphaned))
    for failure in result.failed:
        console.print(f"  [red]✗ {failure.instance_id}: {failure.cause}[/red]")
    for failure in result.node_deletion_failures:
        console.print(f"  [yellow]! node for {failure.instance_id}: {failure.cause}[/yellow]")


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    type=click.Path(exists=True),
    default="~/.nodegc/config.yaml",
    help="Path to configuration file",
)
@click.pass_context
def cli(ctx: click.Context, config: str) -> None:
    """Delete cloud instances launched for the cluster that no Machine owns."""
    ctx.obj = NodeGCContext(config_path=config)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Report orphaned instances without deleting them")
@click.option("--timeout", type=float, default=None, help="Seconds allowed for deletions")
@click.option("--format", type=click.Choice(["table", "json"]), default="table")
@click.pass_context
def run(ctx: click.Context, dry_run: bool, timeout: float | None, format: str) -> None:
    """Run a single garbage collection pass."""
    import asyncio

    from nodegc.core.exceptions import NodeGCError, PassFailedError

    gc_ctx: NodeGCContext = ctx.obj
    try:
        collector = gc_ctx.collector
        effective_timeout = timeout or gc_ctx.config.garbage_collection.pass_timeout_seconds
        result = asyncio.run(collector.run_pass(dry_run=dry_run, timeout=effective_timeout))
    except PassFailedError as e:
        console.print(f"[red]✗ {e}[/red]")
        ctx.exit(2)
    except NodeGCError as e:
        console.print(f"[red]Error: {e}[/red]")
        ctx.exit(1)

    if format == "json":
        click.echo(result.model_dump_json(indent=2))
    else:
        render_result(result)

    if not result.succeeded:
        ctx.exit(1)


@cli.command()
@click.option("--interval", type=float, default=None, help="Seconds between passes")
@click.pass_context
def watch(ctx: click.Context, interval: float | None) -> None:
    """Run garbage collection passes periodically until interrupted."""
    import asyncio
    import signal

    from nodegc.core.exceptions import NodeGCError

    gc_ctx: NodeGCContext = ctx.obj
    try:
        gc_config = gc_ctx.config.garbage_collection
        collector = gc_ctx.collector
    except NodeGCError as e:
        console.print(f"[red]Error: {e}[/red]")
        ctx.exit(1)

    period = interval or gc_config.pass_interval_seconds
    console.print(f"[bold]Collecting every {period:.0f}s[/bold] (Ctrl+C to stop)")

    async def _watch() -> None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

        with gc_ctx.link_cache:
            await collector.run_forever(
                interval=period, stop=stop, timeout=gc_config.pass_timeout_seconds
            )

    asyncio.run(_watch())


@cli.command(name="show-config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Validate and print the effective configuration."""
    import json

    from nodegc.core.exceptions import ConfigurationError

    try:
        config = ctx.obj.config
    except ConfigurationError as e:
        console.print(f"[red]✗ {e}[/red]")
        ctx.exit(1)

    console.print("[green]✓ Configuration valid[/green]")
    click.echo(json.dumps(config.to_dict(), indent=2, default=str))


if __name__ == "__main__":
    cli()
