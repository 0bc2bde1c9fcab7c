"""
Desired state functions for every object the operator manages. Each
component module exposes its ManagedResource values in apply order.
"""

from . import gc, master, prune, scc, topology, worker
