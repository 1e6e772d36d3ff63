"""Exceptions for interface implementations."""


class InterfaceError(Exception):
    """Base exception for all interface-related errors."""


class CloudProviderError(InterfaceError):
    """Exception for cloud provider operations."""


class InstanceNotFoundError(CloudProviderError):
    """Instance is already gone (terminated or never existed)."""


class KubernetesProviderError(InterfaceError):
    """Exception for Kubernetes provider operations."""


class NodeNotFoundError(KubernetesProviderError):
    """Node is already gone."""
