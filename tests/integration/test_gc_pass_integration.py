"""Integration tests for a garbage collection pass across adapters and clients.

Run with: pytest tests/integration/ -m integration
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from nodegc.gc.link_cache import LinkCache
from nodegc.gc.reconciler import GarbageCollector
from nodegc.utils.metrics import MetricsCollector

from .conftest import CLUSTER, NOW

pytestmark = pytest.mark.integration


@pytest.fixture
def collector(aws_adapter, k8s_adapter) -> GarbageCollector:
    return GarbageCollector(
        cloud_provider=aws_adapter,
        kubernetes_provider=k8s_adapter,
        link_cache=LinkCache(),
        tag_filter=CLUSTER.tag_filter(),
        metrics=MetricsCollector(),
        clock=lambda: NOW,
    )


class TestGarbageCollectionPass:
    """End-to-end pass through the AWS and Kubernetes adapters."""

    @pytest.mark.asyncio
    async def test_pass_deletes_only_orphans(self, collector, ec2, cluster) -> None:
        """Test only the unowned, settled instance and its node are deleted."""
        orphan = ec2.launch("i-00000000000000001")
        owned = ec2.launch("i-00000000000000002")
        linked = ec2.launch("i-00000000000000003")
        ec2.launch("i-00000000000000004", age=timedelta(seconds=10))
        ec2.launch("i-00000000000000005", owned=False)

        cluster.add_machine("default-owned", provider_id=owned)
        cluster.add_machine("default-linking", linked=linked)
        cluster.add_node("ip-10-0-0-1", orphan)
        cluster.add_node("ip-10-0-0-2", owned)

        result = await collector.run_pass()

        assert ec2.terminated == ["i-00000000000000001"]
        assert cluster.deleted_nodes == ["ip-10-0-0-1"]
        assert result.instances_scanned == 4
        assert result.deleted == ["i-00000000000000001"]
        assert result.succeeded

    @pytest.mark.asyncio
    async def test_second_pass_is_a_noop(self, collector, ec2, cluster) -> None:
        orphan = ec2.launch("i-00000000000000001")
        cluster.add_node("ip-10-0-0-1", orphan)

        await collector.run_pass()
        second = await collector.run_pass()

        assert second.instances_scanned == 0
        assert ec2.terminated == ["i-00000000000000001"]

    @pytest.mark.asyncio
    async def test_already_terminated_instance_counts_as_deleted(
        self, collector, ec2, cluster
    ) -> None:
        """Test InvalidInstanceID.NotFound flows through the stack as success."""
        ec2.launch("i-00000000000000001")
        ec2.terminate_error_codes["i-00000000000000001"] = "InvalidInstanceID.NotFound"

        result = await collector.run_pass()

        assert result.deleted == ["i-00000000000000001"]
        assert result.failed == []

    @pytest.mark.asyncio
    async def test_api_failure_is_reported_per_instance(self, collector, ec2, cluster) -> None:
        """Test a persistent EC2 error fails one instance without stopping others."""
        ec2.launch("i-00000000000000001")
        ec2.launch("i-00000000000000002")
        ec2.terminate_error_codes["i-00000000000000001"] = "UnauthorizedOperation"

        with patch("time.sleep"):
            result = await collector.run_pass()

        assert result.deleted == ["i-00000000000000002"]
        assert [f.instance_id for f in result.failed] == ["i-00000000000000001"]
        assert "UnauthorizedOperation" in result.failed[0].cause

    @pytest.mark.asyncio
    async def test_node_already_gone_is_not_a_failure(self, collector, ec2, cluster) -> None:
        orphan = ec2.launch("i-00000000000000001")
        cluster.add_node("ip-10-0-0-1", orphan)
        original_delete = cluster.delete_node

        def _delete_after_external_removal(name):
            cluster.nodes.pop(name, None)
            return original_delete(name)

        cluster.delete_node = _delete_after_external_removal

        result = await collector.run_pass()

        assert result.deleted == ["i-00000000000000001"]
        assert result.node_deletion_failures == []
