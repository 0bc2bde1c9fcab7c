"""
Runs the one-shot prune job during finalization and cleans it up once it has
succeeded. Each call performs a single non-blocking check of the job.
"""

# Standard
from enum import Enum

# First Party
import alog

# Local
from . import constants
from .components import prune as prune_component
from .convergence import ResourceConvergence
from .exceptions import PruneJobFailedError
from .kinds import ResourceKind
from .session import Session
from .utils import nested_get

log = alog.use_channel("PRUNE")


class PruneState(Enum):
    """Result of a single prune check"""

    NOT_REQUESTED = "not_requested"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"

    @property
    def done(self) -> bool:
        return self != PruneState.IN_PROGRESS


class PruneJobOrchestrator:
    """Creates, checks and removes the nfd-prune job and its RBAC"""

    def __init__(self, session: Session, convergence: ResourceConvergence):
        self.session = session
        self.convergence = convergence

    @alog.logged_function(log.debug2)
    def handle_prune(self) -> PruneState:
        """Drive the prune job one step forward

        Returns:
            state:  PruneState
                NOT_REQUESTED or SUCCEEDED when finalization may continue,
                IN_PROGRESS when the caller must requeue

        Raises:
            PruneJobFailedError: The job has a failed pod. The failure is
                terminal until the job is remediated.
        """
        if not self.session.prune_on_delete:
            log.debug2("Prune on delete not requested")
            return PruneState.NOT_REQUESTED

        job = prune_component.JOB
        found = self.convergence.get_or_none(job.kind, job.name)
        if found is None:
            log.info("Creating prune job in %s", self.session.namespace)
            for resource in prune_component.RBAC_RESOURCES:
                self.convergence.apply(resource)
            self.convergence.apply(job)
            return PruneState.IN_PROGRESS

        failed = nested_get(found, "status.failed", 0)
        succeeded = nested_get(found, "status.succeeded", 0)
        if failed >= 1:
            raise PruneJobFailedError(
                f"Prune job {self.session.namespace}/{job.name} failed. The "
                "finalizer is kept until the job is remediated."
            )
        if succeeded < 1:
            log.debug("Prune job still running")
            return PruneState.IN_PROGRESS

        log.info("Prune job succeeded. Removing job and RBAC")
        self.cleanup()
        return PruneState.SUCCEEDED

    def cleanup(self):
        """Delete the job and its RBAC. Missing objects are success."""
        self.convergence.delete_with_retry(
            ResourceKind.JOB,
            constants.PRUNE_NAME,
            propagation_policy=constants.BACKGROUND_PROPAGATION,
        )
        for resource in reversed(prune_component.RBAC_RESOURCES):
            self.convergence.delete_with_retry(resource.kind, resource.name)
