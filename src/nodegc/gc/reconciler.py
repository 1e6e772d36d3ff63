"""Garbage collection pass over cloud instances and cluster Machines."""

import asyncio
import time
import uuid
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timedelta

from nodegc.core.exceptions import PassFailedError
from nodegc.core.models import PassResult, utcnow
from nodegc.gc.classifier import DEFAULT_RESOLUTION_WINDOW, MachineIndex, classify
from nodegc.gc.deleter import Deleter
from nodegc.gc.link_cache import LinkCache
from nodegc.gc.node_index import NodeIndex
from nodegc.interfaces.cloud_provider import CloudProvider
from nodegc.interfaces.cloud_types import InstanceTagFilter
from nodegc.interfaces.exceptions import InterfaceError
from nodegc.interfaces.kubernetes_provider import KubernetesProvider
from nodegc.utils.logging import bind_pass_context, clear_pass_context, get_logger
from nodegc.utils.metrics import (
    MetricsCollector,
    OperationType,
    get_metrics_collector,
    timed_operation,
)

logger = get_logger(__name__)


class GarbageCollector:
    """Finds instances launched for the cluster that no Machine owns and deletes them.

    One pass lists instances and Machines once, classifies each instance
    independently against those snapshots and the link cache, then deletes the
    orphans concurrently. Passes keep no state between runs; every deletion is
    idempotent, so overlapping or repeated passes are safe.
    """

    def __init__(
        self,
        cloud_provider: CloudProvider,
        kubernetes_provider: KubernetesProvider,
        link_cache: LinkCache,
        tag_filter: InstanceTagFilter,
        resolution_window: timedelta = DEFAULT_RESOLUTION_WINDOW,
        deleter: Deleter | None = None,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the garbage collector.

        Args:
            cloud_provider: Lists and terminates instances
            kubernetes_provider: Lists Machines and Nodes, deletes Nodes
            link_cache: Provider IDs recently claimed by the Link controller
            tag_filter: Tags marking an instance as launched for this cluster
            resolution_window: Minimum instance age before it can be orphaned
            deleter: Deleter to use (defaults to one over ``cloud_provider``)
            metrics: Metrics collector (defaults to the global one)
            clock: Source of the current UTC time
        """
        self.cloud_provider = cloud_provider
        self.kubernetes_provider = kubernetes_provider
        self.link_cache = link_cache
        self.tag_filter = tag_filter
        self.resolution_window = resolution_window
        self.metrics = metrics
        self.deleter = deleter or Deleter(cloud_provider, metrics=metrics)
        self._clock = clock

    async def run_pass(self, dry_run: bool = False, timeout: float | None = None) -> PassResult:
        """Run one garbage collection pass.

        Args:
            dry_run: Classify and report orphans without deleting anything
            timeout: Seconds allowed for the deletion phase; instances not
                finished in time are reported in ``PassResult.unprocessed``

        Returns:
            Pass summary; individual deletion failures are reported, not raised

        Raises:
            PassFailedError: If instances or Machines could not be listed.
                Nothing was deleted.
        """
        pass_id = uuid.uuid4().hex[:8]
        bind_pass_context(pass_id=pass_id)
        started = time.monotonic()
        result = PassResult(started_at=self._clock(), dry_run=dry_run)

        try:
            with timed_operation(
                OperationType.GC_PASS, pass_id=pass_id, collector=self.metrics
            ) as timer:
                try:
                    await self._run(result, dry_run=dry_run, timeout=timeout)
                except PassFailedError as e:
                    timer.failure(error_type=type(e.__cause__ or e).__name__, error_message=str(e))
                    raise
                if not result.succeeded:
                    timer.failure(error_type="PartialFailure")
        finally:
            result.duration_seconds = time.monotonic() - started
            clear_pass_context("pass_id")

        logger.info(
            "gc_pass_completed",
            pass_id=pass_id,
            scanned=result.instances_scanned,
            orphaned=result.orphaned_found,
            deleted=len(result.deleted),
            failed=len(result.failed),
            node_failures=len(result.node_deletion_failures),
            unprocessed=len(result.unprocessed),
            dry_run=dry_run,
            duration_seconds=round(result.duration_seconds, 3),
        )
        return result

    async def _run(self, result: PassResult, dry_run: bool, timeout: float | None) -> None:
        logger.info("gc_pass_started", cluster=self.tag_filter.cluster_name, dry_run=dry_run)

        # Instances first so the Machine snapshot is never older than the instances
        try:
            instances = await self.cloud_provider.list_owned_instances(self.tag_filter)
            machines = await self.kubernetes_provider.list_machines()
        except InterfaceError as e:
            logger.error("gc_pass_failed", stage="list", error=str(e))
            raise PassFailedError(f"Pass failed, no action taken: {e}") from e

        machine_index = MachineIndex.from_machines(machines)
        now = self._clock()
        classifications = [
            classify(instance, machine_index, self.link_cache, now, self.resolution_window)
            for instance in instances
        ]
        orphans = [c.instance for c in classifications if c.orphaned]

        result.instances_scanned = len(instances)
        result.orphaned_found = len(orphans)
        result.orphaned = sorted(instance.instance_id for instance in orphans)
        result.kept = dict(Counter(c.reason for c in classifications if c.keep))

        logger.info(
            "instances_classified",
            scanned=len(instances),
            machines=len(machines),
            orphaned=len(orphans),
            kept={reason.value: count for reason, count in result.kept.items()},
        )

        if not orphans:
            return
        if dry_run:
            for instance in orphans:
                logger.info(
                    "orphaned_instance_found",
                    instance_id=instance.instance_id,
                    provider_id=instance.provider_id,
                    launch_time=instance.launch_time.isoformat(),
                )
            return

        try:
            nodes = await NodeIndex.load(self.kubernetes_provider)
        except InterfaceError as e:
            logger.warning("node_listing_failed", error=str(e))
            nodes = NodeIndex.unavailable(self.kubernetes_provider, str(e))

        outcomes, unprocessed = await self.deleter.delete_all(orphans, nodes, timeout=timeout)
        for outcome in outcomes:
            result.add_outcome(outcome)
        result.unprocessed = unprocessed

    async def run_forever(
        self,
        interval: float,
        stop: asyncio.Event,
        timeout: float | None = None,
    ) -> None:
        """Run passes every ``interval`` seconds until ``stop`` is set.

        A failed pass is logged and retried at the next interval.
        """
        logger.info("gc_loop_started", interval=interval)
        while not stop.is_set():
            try:
                await self.run_pass(timeout=timeout)
            except PassFailedError as e:
                logger.warning("gc_pass_retry_scheduled", interval=interval, error=str(e))

            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
        metrics = self.metrics or get_metrics_collector()
        logger.info("gc_loop_stopped", metrics=metrics.get_summary())
