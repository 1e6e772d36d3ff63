"""Concurrent deletion of orphaned instances and their nodes."""

import asyncio
from collections.abc import Sequence

from nodegc.core.models import DeleteOutcome
from nodegc.gc.node_index import NodeIndex
from nodegc.interfaces.cloud_provider import CloudProvider
from nodegc.interfaces.cloud_types import CloudInstance
from nodegc.interfaces.exceptions import InstanceNotFoundError
from nodegc.utils.logging import get_logger, log_error
from nodegc.utils.metrics import MetricsCollector, OperationType, timed_operation

logger = get_logger(__name__)

DEFAULT_MAX_CONCURRENT = 100
DEFAULT_NODE_DELETE_TIMEOUT = 30.0


class Deleter:
    """Deletes orphaned instances, then best-effort deletes their nodes.

    Each instance is handled independently: a failure for one instance never
    stops or delays another, and a node deletion failure never fails its
    instance.
    """

    def __init__(
        self,
        cloud_provider: CloudProvider,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        node_delete_timeout: float = DEFAULT_NODE_DELETE_TIMEOUT,
        metrics: MetricsCollector | None = None,
    ):
        """Initialize deleter.

        Args:
            cloud_provider: Provider used to terminate instances
            max_concurrent: Maximum deletions in flight at once
            node_delete_timeout: Seconds to wait for a node deletion
            metrics: Metrics collector (defaults to the global one)
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")

        self.cloud_provider = cloud_provider
        self.max_concurrent = max_concurrent
        self.node_delete_timeout = node_delete_timeout
        self.metrics = metrics

    async def delete(self, instance: CloudInstance, nodes: NodeIndex) -> DeleteOutcome:
        """Delete one orphaned instance and the node pointing at it.

        Args:
            instance: Orphaned instance
            nodes: Node snapshot for the current pass

        Returns:
            Outcome; ``success`` reflects the cloud deletion only
        """
        outcome = await self._terminate(instance)
        if outcome.success:
            outcome.node_deleted, outcome.node_error = await self._delete_node(instance, nodes)
        return outcome

    async def delete_all(
        self,
        instances: Sequence[CloudInstance],
        nodes: NodeIndex,
        timeout: float | None = None,
    ) -> tuple[list[DeleteOutcome], list[str]]:
        """Delete every instance concurrently, bounded by ``max_concurrent``.

        An instance whose cloud deletion finished before the timeout counts as
        deleted even if its node deletion was cut short.

        Args:
            instances: Orphaned instances
            nodes: Node snapshot for the current pass
            timeout: Seconds to wait for all deletions; None waits forever

        Returns:
            Tuple of (outcomes of instances whose cloud deletion finished, IDs
            of instances whose cloud deletion did not finish before the timeout)
        """
        if not instances:
            return [], []

        semaphore = asyncio.Semaphore(self.max_concurrent)
        terminated: dict[str, DeleteOutcome] = {}

        async def _bounded(instance: CloudInstance) -> DeleteOutcome:
            async with semaphore:
                outcome = await self._terminate(instance)
                if outcome.success:
                    terminated[instance.instance_id] = outcome
                    outcome.node_deleted, outcome.node_error = await self._delete_node(
                        instance, nodes
                    )
                return outcome

        tasks = {
            asyncio.create_task(_bounded(instance), name=f"delete-{instance.instance_id}"): instance
            for instance in instances
        }

        try:
            done, pending = await asyncio.wait(tasks, timeout=timeout)
        except asyncio.CancelledError:
            logger.warning(
                "deletions_cancelled",
                unprocessed=sorted(
                    instance.instance_id
                    for task, instance in tasks.items()
                    if not task.done() and instance.instance_id not in terminated
                ),
                terminated=sorted(terminated),
            )
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning("deletions_timed_out", pending=len(pending), timeout=timeout)

        outcomes = []
        unprocessed = []
        for task in pending:
            instance = tasks[task]
            outcome = terminated.get(instance.instance_id)
            if outcome is None:
                unprocessed.append(instance.instance_id)
                continue
            outcome.node_error = outcome.node_error or "node deletion interrupted by pass timeout"
            outcomes.append(outcome)

        for task in done:
            instance = tasks[task]
            exc = task.exception()
            if exc is None:
                outcomes.append(task.result())
                continue
            # _terminate and _delete_node capture provider errors; this covers bugs in the fan-out
            log_error(logger, exc, operation="delete_instance", instance_id=instance.instance_id)
            outcome = terminated.get(instance.instance_id)
            if outcome is not None:
                outcome.node_error = str(exc)
            else:
                outcome = DeleteOutcome(
                    instance_id=instance.instance_id,
                    provider_id=instance.provider_id,
                    success=False,
                    cause=str(exc),
                )
            outcomes.append(outcome)

        return outcomes, sorted(unprocessed)

    async def _terminate(self, instance: CloudInstance) -> DeleteOutcome:
        log = logger.bind(instance_id=instance.instance_id, provider_id=instance.provider_id)

        with timed_operation(
            OperationType.INSTANCE_DELETE, collector=self.metrics, instance_id=instance.instance_id
        ) as timer:
            try:
                await self.cloud_provider.delete_instance(instance.instance_id)
                log.info("orphaned_instance_deleted")
            except InstanceNotFoundError:
                log.info("orphaned_instance_already_gone")
            except Exception as e:
                log.error("orphaned_instance_delete_failed", error=str(e))
                timer.failure(error_type=type(e).__name__, error_message=str(e))
                return DeleteOutcome(
                    instance_id=instance.instance_id,
                    provider_id=instance.provider_id,
                    success=False,
                    cause=str(e),
                )

        return DeleteOutcome(
            instance_id=instance.instance_id, provider_id=instance.provider_id, success=True
        )

    async def _delete_node(
        self, instance: CloudInstance, nodes: NodeIndex
    ) -> tuple[bool, str | None]:
        if nodes.list_error is not None:
            return False, f"nodes could not be listed: {nodes.list_error}"
        if nodes.lookup(instance.provider_id) is None:
            return False, None

        with timed_operation(
            OperationType.NODE_DELETE, collector=self.metrics, instance_id=instance.instance_id
        ) as timer:
            try:
                deleted = await asyncio.wait_for(
                    nodes.delete(instance.provider_id), timeout=self.node_delete_timeout
                )
                return deleted, None
            except asyncio.TimeoutError:
                error = f"node deletion timed out after {self.node_delete_timeout}s"
                timer.timeout()
            except Exception as e:
                error = str(e)
                timer.failure(error_type=type(e).__name__, error_message=error)

        logger.warning(
            "stale_node_delete_failed",
            instance_id=instance.instance_id,
            provider_id=instance.provider_id,
            error=error,
        )
        return False, error
