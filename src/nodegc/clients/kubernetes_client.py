"""Kubernetes client for Machine and Node operations."""

from typing import Any

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from kubernetes.client.models import V1Node
from urllib3.exceptions import HTTPError

from nodegc.core.exceptions import KubernetesError, KubernetesNotFoundError
from nodegc.utils.logging import get_logger
from nodegc.utils.rate_limiter import rate_limited
from nodegc.utils.retry import retry_on_exception

logger = get_logger(__name__)

LIST_PAGE_SIZE = 500


class KubernetesClient:
    """Kubernetes client wrapper."""

    def __init__(
        self,
        kubeconfig_path: str | None = None,
        context: str | None = None,
        machine_group: str = "karpenter.sh",
        machine_version: str = "v1alpha5",
        machine_plural: str = "machines",
    ):
        """Initialize Kubernetes client.

        Args:
            kubeconfig_path: Path to kubeconfig file (optional)
            context: Kubernetes context to use (optional)
            machine_group: API group of the Machine custom resource
            machine_version: API version of the Machine custom resource
            machine_plural: Plural resource name of the Machine custom resource
        """
        self.machine_group = machine_group
        self.machine_version = machine_version
        self.machine_plural = machine_plural

        try:
            if kubeconfig_path:
                config.load_kube_config(config_file=kubeconfig_path, context=context)
            else:
                # Try to load from default location or in-cluster config
                try:
                    config.load_kube_config(context=context)
                except config.ConfigException:
                    config.load_incluster_config()

            self.core_v1 = client.CoreV1Api()
            self.custom_objects = client.CustomObjectsApi()

            logger.debug("k8s_client_initialized", context=context)

        except Exception as e:
            logger.error("k8s_client_initialization_failed", error=str(e))
            raise KubernetesError("Failed to initialize Kubernetes client") from e

    @rate_limited("kubernetes_api")
    @retry_on_exception(exceptions=(KubernetesError,), max_attempts=3)
    def list_machines(self) -> list[dict[str, Any]]:
        """List all Machine custom resources (cluster-scoped).

        Returns:
            List of raw Machine objects

        Raises:
            KubernetesError: If machines cannot be retrieved
        """
        try:
            logger.debug("listing_machines", group=self.machine_group, version=self.machine_version)

            machines: list[dict[str, Any]] = []
            continue_token = None
            while True:
                kwargs: dict[str, Any] = {"limit": LIST_PAGE_SIZE}
                if continue_token:
                    kwargs["_continue"] = continue_token
                response = self.custom_objects.list_cluster_custom_object(
                    group=self.machine_group,
                    version=self.machine_version,
                    plural=self.machine_plural,
                    **kwargs,
                )
                machines.extend(response.get("items", []))
                continue_token = response.get("metadata", {}).get("continue")
                if not continue_token:
                    break

            logger.info("machines_retrieved", count=len(machines))
            return machines

        except ApiException as e:
            logger.error("list_machines_failed", status=e.status, reason=e.reason)
            raise KubernetesError(f"Failed to list machines: {e.reason}") from e
        except HTTPError as e:
            logger.error("list_machines_failed", error=str(e))
            raise KubernetesError(f"Failed to list machines: {e}") from e

    @rate_limited("kubernetes_api")
    @retry_on_exception(exceptions=(KubernetesError,), max_attempts=3)
    def list_nodes(self) -> list[V1Node]:
        """Get all nodes in the cluster.

        Returns:
            List of V1Node objects

        Raises:
            KubernetesError: If nodes cannot be retrieved
        """
        try:
            logger.debug("listing_nodes")

            nodes: list[V1Node] = []
            continue_token = None
            while True:
                kwargs: dict[str, Any] = {"limit": LIST_PAGE_SIZE}
                if continue_token:
                    kwargs["_continue"] = continue_token
                response = self.core_v1.list_node(**kwargs)
                nodes.extend(response.items)
                continue_token = response.metadata._continue if response.metadata else None
                if not continue_token:
                    break

            logger.info("nodes_retrieved", count=len(nodes))
            return nodes

        except ApiException as e:
            logger.error("list_nodes_failed", status=e.status, reason=e.reason)
            raise KubernetesError(f"Failed to list nodes: {e.reason}") from e
        except HTTPError as e:
            logger.error("list_nodes_failed", error=str(e))
            raise KubernetesError(f"Failed to list nodes: {e}") from e

    @rate_limited("kubernetes_api")
    @retry_on_exception(
        exceptions=(KubernetesError,), max_attempts=3, ignore=(KubernetesNotFoundError,)
    )
    def delete_node(self, name: str) -> None:
        """Delete a node by name.

        Args:
            name: Node name

        Raises:
            KubernetesNotFoundError: If the node does not exist
            KubernetesError: If deletion fails
        """
        try:
            logger.debug("deleting_node", name=name)
            self.core_v1.delete_node(name=name)
            logger.info("node_deleted", name=name)

        except ApiException as e:
            if e.status == 404:
                logger.debug("node_already_gone", name=name)
                raise KubernetesNotFoundError(f"Node {name} not found") from e

            logger.error("delete_node_failed", name=name, status=e.status, reason=e.reason)
            raise KubernetesError(f"Failed to delete node {name}: {e.reason}") from e
        except HTTPError as e:
            logger.error("delete_node_failed", name=name, error=str(e))
            raise KubernetesError(f"Failed to delete node {name}: {e}") from e
