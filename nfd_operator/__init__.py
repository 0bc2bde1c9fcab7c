"""
Package exports
"""

# Local
from . import components, config, status
from .client import DryRunObjectClient, ObjectClientBase, OpenshiftObjectClient
from .convergence import ManagedResource, ResourceConvergence
from .exceptions import assert_cluster, assert_config
from .finalize import FinalizationSequencer
from .handlers import DEFAULT_HANDLERS, Handler
from .kinds import ResourceKind
from .prune import PruneJobOrchestrator, PruneState
from .reconcile import ReconcileCoordinator, ReconciliationResult
from .runner import ReconcileRunner
from .session import Session
from .shared import SharedResourceArbiter
from .status import ConditionAggregator
