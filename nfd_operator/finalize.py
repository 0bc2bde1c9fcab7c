"""
Ordered teardown of everything an instance owns, followed by the optional
prune job and finally removal of the instance finalizer
"""

# Standard
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

# First Party
import alog

# Local
from . import config, constants
from .convergence import ResourceConvergence
from .exceptions import NfdOperatorError, ObjectNotFoundError
from .kinds import ResourceKind
from .prune import PruneJobOrchestrator
from .session import Session
from .shared import SharedResourceArbiter
from .status import FINALIZING_REASON, Classification, ConditionAggregator
from .utils import has_finalizer, remove_finalizer

log = alog.use_channel("FINLZR")


@dataclass(frozen=True)
class DeleteStep:
    """One object removed during finalization. Cluster-scoped objects are
    shared and only removed when no other live instance remains.
    """

    kind: ResourceKind
    name: str
    topology_only: bool = False

    @property
    def shared(self) -> bool:
        return not self.kind.namespaced


DELETE_ORDER = [
    # Topology updater
    DeleteStep(ResourceKind.DAEMON_SET, constants.TOPOLOGY_NAME, topology_only=True),
    DeleteStep(
        ResourceKind.CLUSTER_ROLE_BINDING, constants.TOPOLOGY_NAME, topology_only=True
    ),
    DeleteStep(ResourceKind.CLUSTER_ROLE, constants.TOPOLOGY_NAME, topology_only=True),
    DeleteStep(
        ResourceKind.SERVICE_ACCOUNT, constants.TOPOLOGY_NAME, topology_only=True
    ),
    DeleteStep(
        ResourceKind.SECURITY_CONTEXT_CONSTRAINTS,
        constants.TOPOLOGY_NAME,
        topology_only=True,
    ),
    # Workloads
    DeleteStep(ResourceKind.DAEMON_SET, constants.WORKER_NAME),
    DeleteStep(ResourceKind.DEPLOYMENT, constants.MASTER_NAME),
    DeleteStep(ResourceKind.SERVICE, constants.MASTER_NAME),
    DeleteStep(ResourceKind.DEPLOYMENT, constants.GC_NAME),
    DeleteStep(ResourceKind.ROLE, constants.WORKER_NAME),
    # Shared cluster-scoped objects
    DeleteStep(ResourceKind.CLUSTER_ROLE, constants.MASTER_NAME),
    DeleteStep(ResourceKind.CLUSTER_ROLE_BINDING, constants.MASTER_NAME),
    DeleteStep(ResourceKind.CLUSTER_ROLE, constants.GC_NAME),
    DeleteStep(ResourceKind.CLUSTER_ROLE_BINDING, constants.GC_NAME),
    DeleteStep(ResourceKind.SECURITY_CONTEXT_CONSTRAINTS, constants.WORKER_NAME),
    # Bindings, accounts and config
    DeleteStep(ResourceKind.ROLE_BINDING, constants.WORKER_NAME),
    DeleteStep(ResourceKind.SERVICE_ACCOUNT, constants.WORKER_NAME),
    DeleteStep(ResourceKind.SERVICE_ACCOUNT, constants.MASTER_NAME),
    DeleteStep(ResourceKind.SERVICE_ACCOUNT, constants.GC_NAME),
    DeleteStep(ResourceKind.CONFIG_MAP, constants.WORKER_NAME),
]


class FinalizationSequencer:
    """Tears down an instance that carries a deletion timestamp"""

    def __init__(self, session: Session):
        self.session = session
        self.convergence = ResourceConvergence(session)
        self.arbiter = SharedResourceArbiter(session)
        self.prune = PruneJobOrchestrator(session, self.convergence)
        self.aggregator = ConditionAggregator(session)

    def delete_steps(self, shared_in_use: bool) -> List[DeleteStep]:
        """The steps that apply to this instance, in order"""
        return [
            step
            for step in DELETE_ORDER
            if (not step.topology_only or self.session.topology_updater_enabled)
            and not (step.shared and shared_in_use)
        ]

    @alog.logged_function(log.debug)
    def finalize(self) -> Optional[timedelta]:
        """Run one pass of finalization

        Returns:
            requeue_after:  Optional[timedelta]
                None once the finalizer has been removed, otherwise the delay
                before the next pass

        Raises:
            DeleteTimeoutError: A delete step did not succeed in its window
            PruneJobFailedError: The prune job failed
        """
        if not has_finalizer(self.session.finalizers, constants.FINALIZER):
            log.debug("Finalizer already removed from %s", self.session.name)
            return None

        # A failed earlier pass stays Degraded until the finalizer is removed
        if not self._degraded():
            self.aggregator.report(
                Classification.PROGRESSING,
                FINALIZING_REASON,
                "Removing node feature discovery components",
            )

        shared_in_use = self.arbiter.other_instances_exist()
        if shared_in_use:
            log.info("Keeping shared cluster-scoped objects used by other instances")
        steps = self.delete_steps(shared_in_use)
        for step in steps:
            self.convergence.delete_with_retry(step.kind, step.name)

        # Deletes are asynchronous on the server, so confirm before moving on
        remaining = [
            f"{step.kind}/{step.name}"
            for step in steps
            if self.convergence.exists(step.kind, step.name)
        ]
        if remaining:
            log.info("Waiting for %s to be removed", remaining)
            return timedelta(seconds=float(config.cleanup_requeue_seconds))

        if not self.prune.handle_prune().done:
            return timedelta(seconds=float(config.cleanup_requeue_seconds))

        return self.remove_finalizer()

    def remove_finalizer(self) -> Optional[timedelta]:
        """Remove the finalizer from the instance. A missing instance means it
        is already gone. Any other failure is retried later without an error.
        """
        manifest = self.session.manifest_copy()
        manifest["metadata"]["finalizers"] = remove_finalizer(
            self.session.finalizers, constants.FINALIZER
        )
        try:
            self.session.client.update(manifest)
        except ObjectNotFoundError:
            log.debug("Instance %s already deleted", self.session.name)
            return None
        except NfdOperatorError as err:
            log.warning("Failed to remove finalizer, will retry: %s", err)
            return timedelta(seconds=float(config.error_requeue_seconds))
        log.info("Finalizer removed from %s", self.session.name)
        return None

    def _degraded(self) -> bool:
        return any(
            condition.get("type") == Classification.DEGRADED.value
            and condition.get("status") == "True"
            for condition in self.session.conditions
        )
