"""Machine garbage collector (nodegc).

Reclaim cloud instances launched for a cluster that no Machine resource owns.
"""

__version__ = "0.1.0"
__author__ = "Platform Engineering Team"
__license__ = "Apache-2.0"
