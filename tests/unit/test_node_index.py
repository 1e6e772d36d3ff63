"""Unit tests for NodeIndex."""

import pytest

from nodegc.gc.node_index import NodeIndex
from nodegc.interfaces.exceptions import KubernetesProviderError
from nodegc.interfaces.kubernetes_provider import NodeRecord


class TestNodeIndex:
    @pytest.mark.asyncio
    async def test_load_indexes_by_provider_id(self, kube):
        kube.add_node("node-a", "aws:///z/i-a")
        kube.nodes["no-provider"] = NodeRecord(name="no-provider")

        index = await NodeIndex.load(kube)

        assert index.lookup("aws:///z/i-a") == "node-a"
        assert index.lookup("aws:///z/i-b") is None
        assert len(index) == 1
        assert kube.list_nodes_calls == 1

    @pytest.mark.asyncio
    async def test_load_propagates_listing_errors(self, kube):
        kube.list_nodes_error = KubernetesProviderError("forbidden")

        with pytest.raises(KubernetesProviderError):
            await NodeIndex.load(kube)

    @pytest.mark.asyncio
    async def test_delete_existing_node(self, kube):
        kube.add_node("node-a", "aws:///z/i-a")
        index = await NodeIndex.load(kube)

        assert await index.delete("aws:///z/i-a") is True
        assert kube.deleted_nodes == ["node-a"]

    @pytest.mark.asyncio
    async def test_delete_unknown_provider_id_is_noop(self, kube):
        index = await NodeIndex.load(kube)

        assert await index.delete("aws:///z/i-a") is False

    @pytest.mark.asyncio
    async def test_delete_already_gone_node(self, kube):
        kube.add_node("node-a", "aws:///z/i-a")
        index = await NodeIndex.load(kube)
        del kube.nodes["node-a"]

        assert await index.delete("aws:///z/i-a") is False

    @pytest.mark.asyncio
    async def test_delete_propagates_other_errors(self, kube):
        kube.add_node("node-a", "aws:///z/i-a")
        kube.node_delete_errors["node-a"] = KubernetesProviderError("Forbidden")
        index = await NodeIndex.load(kube)

        with pytest.raises(KubernetesProviderError, match="Forbidden"):
            await index.delete("aws:///z/i-a")
