"""Custom exceptions for nodegc."""


class NodeGCError(Exception):
    """Base exception for all nodegc errors."""


class ConfigurationError(NodeGCError):
    """Configuration-related errors."""


class AWSError(NodeGCError):
    """AWS operation failed."""


class InstanceNotFoundError(AWSError):
    """EC2 instance does not exist or is already terminated."""


class KubernetesError(NodeGCError):
    """Kubernetes operation failed."""


class KubernetesNotFoundError(KubernetesError):
    """Kubernetes object does not exist."""


class PassFailedError(NodeGCError):
    """A garbage collection pass could not list its inputs.

    No classification or deletion happened; the pass should be retried at the
    next trigger.
    """
