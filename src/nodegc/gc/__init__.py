"""Machine garbage collection: classification, deletion and the pass driver."""

from nodegc.gc.classifier import Classification, MachineIndex, classify
from nodegc.gc.deleter import Deleter
from nodegc.gc.link_cache import LinkCache
from nodegc.gc.node_index import NodeIndex
from nodegc.gc.reconciler import GarbageCollector

__all__ = [
    "Classification",
    "Deleter",
    "GarbageCollector",
    "LinkCache",
    "MachineIndex",
    "NodeIndex",
    "classify",
]
