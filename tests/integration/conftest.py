"""Integration test fixtures and configuration."""

from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import MagicMock, Mock, patch

import pytest
from botocore.exceptions import ClientError
from kubernetes.client.exceptions import ApiException
from kubernetes.client.models import V1ListMeta, V1Node, V1NodeList, V1NodeSpec, V1ObjectMeta

from nodegc.adapters.aws_adapter import AWSAdapter
from nodegc.adapters.k8s_adapter import KubernetesAdapter
from nodegc.clients.aws_client import AWSClient
from nodegc.clients.kubernetes_client import KubernetesClient
from nodegc.core.config import ClusterConfig

CLUSTER = ClusterConfig(name="integration")
ZONE = "us-west-2b"
NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeEC2:
    """Serves DescribeInstances pages from memory and records terminations."""

    def __init__(self) -> None:
        self.instances: dict[str, dict[str, Any]] = {}
        self.terminated: list[str] = []
        self.terminate_error_codes: dict[str, str] = {}

    def launch(
        self, instance_id: str, age: timedelta = timedelta(minutes=10), owned: bool = True
    ) -> str:
        tag_filter = CLUSTER.tag_filter()
        tags = [{"Key": tag_filter.cluster_tag_key, "Value": "owned"}]
        if owned:
            tags += [
                {"Key": tag_filter.provisioner_tag_key, "Value": "default"},
                {"Key": tag_filter.managed_by_tag_key, "Value": CLUSTER.name},
            ]
        self.instances[instance_id] = {
            "InstanceId": instance_id,
            "InstanceType": "c5.xlarge",
            "LaunchTime": NOW - age,
            "Placement": {"AvailabilityZone": ZONE},
            "State": {"Name": "running"},
            "Tags": tags,
        }
        return f"aws:///{ZONE}/{instance_id}"

    def get_paginator(self, name: str) -> MagicMock:
        assert name == "describe_instances"
        paginator = MagicMock()
        # Two pages, to exercise pagination; tag filtering is left to the adapter
        paginator.paginate.side_effect = lambda Filters: [
            {"Reservations": [{"Instances": [i]} for i in list(self.instances.values())[:1]]},
            {"Reservations": [{"Instances": [i]} for i in list(self.instances.values())[1:]]},
        ]
        return paginator

    def terminate_instances(self, InstanceIds: list[str]) -> dict[str, Any]:
        (instance_id,) = InstanceIds
        if instance_id in self.terminate_error_codes:
            code = self.terminate_error_codes[instance_id]
            raise ClientError({"Error": {"Code": code, "Message": code}}, "TerminateInstances")
        if instance_id not in self.instances:
            raise ClientError(
                {"Error": {"Code": "InvalidInstanceID.NotFound", "Message": "not found"}},
                "TerminateInstances",
            )
        del self.instances[instance_id]
        self.terminated.append(instance_id)
        return {
            "TerminatingInstances": [
                {"InstanceId": instance_id, "CurrentState": {"Name": "shutting-down"}}
            ]
        }


class FakeCluster:
    """Machines and nodes served through mocked kubernetes API objects."""

    def __init__(self) -> None:
        self.machines: list[dict[str, Any]] = []
        self.nodes: dict[str, V1Node] = {}
        self.deleted_nodes: list[str] = []

    def add_machine(
        self, name: str, provider_id: str | None = None, linked: str | None = None
    ) -> None:
        manifest: dict[str, Any] = {"metadata": {"name": name, "annotations": {}}, "status": {}}
        if provider_id:
            manifest["status"]["providerID"] = provider_id
        if linked:
            manifest["metadata"]["annotations"]["karpenter.sh/linked"] = linked
        self.machines.append(manifest)

    def add_node(self, name: str, provider_id: str) -> None:
        self.nodes[name] = V1Node(
            metadata=V1ObjectMeta(name=name), spec=V1NodeSpec(provider_id=provider_id)
        )

    def list_cluster_custom_object(self, **kwargs: Any) -> dict[str, Any]:
        return {"items": list(self.machines), "metadata": {}}

    def list_node(self, **kwargs: Any) -> V1NodeList:
        return V1NodeList(items=list(self.nodes.values()), metadata=V1ListMeta())

    def delete_node(self, name: str) -> None:
        if name not in self.nodes:
            raise ApiException(status=404, reason="Not Found")
        del self.nodes[name]
        self.deleted_nodes.append(name)


@pytest.fixture
def ec2() -> FakeEC2:
    return FakeEC2()


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def aws_adapter(ec2: FakeEC2) -> AWSAdapter:
    """AWSAdapter over a real AWSClient whose boto3 EC2 client is faked."""
    with patch("boto3.Session"):
        client = AWSClient(region="us-west-2")
    client.ec2 = Mock(wraps=ec2)
    return AWSAdapter(client=client)


@pytest.fixture
def k8s_adapter(cluster: FakeCluster) -> KubernetesAdapter:
    """KubernetesAdapter over a real KubernetesClient with faked API objects."""
    with patch("kubernetes.config.load_kube_config"):
        client = KubernetesClient()
    client.custom_objects = Mock(wraps=cluster)
    client.core_v1 = Mock(wraps=cluster)
    return KubernetesAdapter(client=client)
