"""Pytest configuration and shared fixtures."""

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import patch

import pytest

from nodegc.gc.link_cache import LinkCache
from nodegc.gc.reconciler import GarbageCollector
from nodegc.interfaces.cloud_provider import CloudProvider
from nodegc.interfaces.cloud_types import CloudInstance, InstanceState, InstanceTagFilter
from nodegc.interfaces.exceptions import (
    CloudProviderError,
    InstanceNotFoundError,
    KubernetesProviderError,
    NodeNotFoundError,
)
from nodegc.interfaces.kubernetes_provider import KubernetesProvider, MachineRecord, NodeRecord
from nodegc.utils.metrics import MetricsCollector

CLUSTER_NAME = "test-cluster"
ZONE = "test-zone-1a"
NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def mock_rate_limiters(request):
    """Mock rate limiter for all tests to avoid registration issues."""
    if "no_rate_limiter_mock" in request.keywords:
        yield
        return

    with patch("nodegc.utils.rate_limiter.RateLimiter.acquire", return_value=True):
        yield


# ==============================================================================
# In-memory providers
# ==============================================================================


class FakeCloudProvider(CloudProvider):
    """EC2 stand-in: terminated instances stop being listed, like the real API."""

    def __init__(self) -> None:
        self.instances: dict[str, CloudInstance] = {}
        self.delete_calls: list[str] = []
        self.delete_errors: dict[str, Exception] = {}
        self.delete_delays: dict[str, float] = {}
        self.list_error: Exception | None = None
        self.in_flight = 0
        self.max_in_flight = 0

    def add(self, instance: CloudInstance) -> CloudInstance:
        self.instances[instance.instance_id] = instance
        return instance

    def exists(self, instance_id: str) -> bool:
        instance = self.instances.get(instance_id)
        return instance is not None and not instance.state.is_terminal

    async def list_owned_instances(self, tag_filter: InstanceTagFilter) -> list[CloudInstance]:
        if self.list_error:
            raise self.list_error
        return [
            i
            for i in self.instances.values()
            if tag_filter.matches(i.tags) and not i.state.is_terminal
        ]

    async def delete_instance(self, instance_id: str) -> None:
        self.delete_calls.append(instance_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delete_delays.get(instance_id, 0))
            if instance_id in self.delete_errors:
                raise self.delete_errors[instance_id]
            if not self.exists(instance_id):
                raise InstanceNotFoundError(f"Instance not found: {instance_id}")
            self.instances[instance_id].state = InstanceState.TERMINATED
        finally:
            self.in_flight -= 1


class FakeKubernetesProvider(KubernetesProvider):
    """Cluster stand-in holding Machines and Nodes in memory."""

    def __init__(self) -> None:
        self.machines: list[MachineRecord] = []
        self.nodes: dict[str, NodeRecord] = {}
        self.deleted_nodes: list[str] = []
        self.node_delete_errors: dict[str, Exception] = {}
        self.list_machines_error: Exception | None = None
        self.list_nodes_error: Exception | None = None
        self.list_nodes_calls = 0

    def add_node(self, name: str, provider_id: str) -> NodeRecord:
        node = NodeRecord(name=name, provider_id=provider_id)
        self.nodes[name] = node
        return node

    async def list_machines(self) -> list[MachineRecord]:
        if self.list_machines_error:
            raise self.list_machines_error
        return list(self.machines)

    async def list_nodes(self) -> list[NodeRecord]:
        self.list_nodes_calls += 1
        if self.list_nodes_error:
            raise self.list_nodes_error
        return list(self.nodes.values())

    async def delete_node(self, name: str) -> None:
        if name in self.node_delete_errors:
            raise self.node_delete_errors[name]
        if name not in self.nodes:
            raise NodeNotFoundError(f"Node {name} not found")
        del self.nodes[name]
        self.deleted_nodes.append(name)


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def now() -> datetime:
    """Fixed 'current time' used by the collector under test."""
    return NOW


@pytest.fixture
def tag_filter() -> InstanceTagFilter:
    return InstanceTagFilter(cluster_name=CLUSTER_NAME, managed_by=CLUSTER_NAME)


@pytest.fixture
def owned_tags(tag_filter: InstanceTagFilter) -> dict[str, str]:
    return {
        tag_filter.cluster_tag_key: "owned",
        tag_filter.provisioner_tag_key: "default",
        tag_filter.managed_by_tag_key: CLUSTER_NAME,
    }


@pytest.fixture
def make_instance(owned_tags: dict[str, str]) -> Callable[..., CloudInstance]:
    """Build instances launched ten minutes before NOW unless told otherwise."""
    counter = {"n": 0}

    def _make(
        instance_id: str | None = None,
        age: timedelta = timedelta(minutes=10),
        tags: dict[str, str] | None = None,
        state: InstanceState = InstanceState.RUNNING,
    ) -> CloudInstance:
        counter["n"] += 1
        instance_id = instance_id or f"i-{counter['n']:017x}"
        return CloudInstance(
            instance_id=instance_id,
            provider_id=f"aws:///{ZONE}/{instance_id}",
            launch_time=NOW - age,
            state=state,
            tags=dict(owned_tags if tags is None else tags),
            zone=ZONE,
            instance_type="m5.large",
        )

    return _make


@pytest.fixture
def cloud() -> FakeCloudProvider:
    return FakeCloudProvider()


@pytest.fixture
def kube() -> FakeKubernetesProvider:
    return FakeKubernetesProvider()


@pytest.fixture
def link_cache() -> LinkCache:
    return LinkCache(ttl=600, sweep_interval=10)


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def collector(
    cloud: FakeCloudProvider,
    kube: FakeKubernetesProvider,
    link_cache: LinkCache,
    tag_filter: InstanceTagFilter,
    metrics: MetricsCollector,
) -> GarbageCollector:
    return GarbageCollector(
        cloud_provider=cloud,
        kubernetes_provider=kube,
        link_cache=link_cache,
        tag_filter=tag_filter,
        metrics=metrics,
        clock=lambda: NOW,
    )


@pytest.fixture
def list_errors() -> dict[str, Exception]:
    """Representative listing failures from each collaborator."""
    return {
        "cloud": CloudProviderError("Failed to list instances: RequestLimitExceeded"),
        "machines": KubernetesProviderError("Failed to list machines: Service Unavailable"),
    }


def pytest_configure(config: Any) -> None:
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Tests wiring adapters and clients together")
    config.addinivalue_line("markers", "no_rate_limiter_mock: Disable rate limiter mocking")
