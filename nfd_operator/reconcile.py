"""
The ReconcileCoordinator runs a single reconcile of a NodeFeatureDiscovery
instance. It sets up the session, manages the finalizer, runs the handler
chain for live instances and hands deleting instances to the finalization
sequence.
"""

# Standard
from dataclasses import dataclass, field
from typing import List, Optional
import datetime
import threading
import uuid

# First Party
import alog

# Local
from . import config, constants
from .client import ObjectClientBase
from .convergence import ResourceConvergence
from .exceptions import NfdOperatorError, ObjectNotFoundError, ResourceOperationError
from .finalize import FinalizationSequencer
from .handlers import DEFAULT_HANDLERS, Handler
from .kinds import ResourceKind
from .session import Session
from .status import DEPLOYMENT_STARTING_REASON, Classification, ConditionAggregator
from .utils import add_finalizer, has_finalizer

log = alog.use_channel("RECONCILE")


## Data models #################################################################


@dataclass
class RequeueParams:
    """RequeueParams holds parameters for requeue request"""

    requeue_after: datetime.timedelta = field(
        default_factory=lambda: datetime.timedelta(
            seconds=float(config.requeue_after_seconds)
        )
    )


@dataclass
class ReconciliationResult:
    """ReconciliationResult is the result of a reconciliation session"""

    # Flag to control requeue of current reconcile request
    requeue: bool
    # Parameters for requeue request
    requeue_params: RequeueParams = field(default_factory=RequeueParams)
    # Flag to identify if the reconciliation raised an exception
    exception: Exception = None

    @property
    def requeue_after(self) -> Optional[datetime.timedelta]:
        """The requested requeue delay or None if no requeue was requested"""
        return self.requeue_params.requeue_after if self.requeue else None

    @classmethod
    def after(cls, delay: Optional[datetime.timedelta]) -> "ReconciliationResult":
        """Build a result that requeues after the delay, or not at all if the
        delay is None
        """
        if delay is None:
            return cls(requeue=False)
        return cls(requeue=True, requeue_params=RequeueParams(requeue_after=delay))


## ReconcileCoordinator ########################################################


class ReconcileCoordinator:
    """This class manages reconciliations for NodeFeatureDiscovery instances.
    It holds no per-instance state between calls.
    """

    def __init__(
        self,
        client: ObjectClientBase,
        handlers: Optional[List[Handler]] = None,
    ):
        """
        Args:
            client:  ObjectClientBase
                The client used for every cluster operation
            handlers:  Optional[List[Handler]]
                Override of the handler chain (defaults to DEFAULT_HANDLERS)
        """
        self.client = client
        self.handlers = list(handlers if handlers is not None else DEFAULT_HANDLERS)

    ## Reconciliation ##########################################################

    def safe_reconcile(
        self,
        namespace: str,
        name: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReconciliationResult:
        """Run a reconcile and capture any error in the result instead of
        raising. The caller applies backoff when the result carries an
        exception.
        """
        try:
            return self.reconcile(namespace, name, cancel_event)
        except NfdOperatorError as err:
            if err.is_fatal_error:
                log.error("Fatal error reconciling %s/%s: %s", namespace, name, err)
            else:
                log.warning("Reconcile of %s/%s will retry: %s", namespace, name, err)
            return ReconciliationResult(requeue=True, exception=err)
        except Exception as err:  # pylint: disable=broad-except
            log.error(
                "Unexpected error reconciling %s/%s", namespace, name, exc_info=True
            )
            return ReconciliationResult(requeue=True, exception=err)

    @alog.timed_function(log.info, "Reconcile finished in: ")
    def reconcile(
        self,
        namespace: str,
        name: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReconciliationResult:
        """Run a single reconcile of the named instance

        Args:
            namespace:  str
                The namespace of the instance
            name:  str
                The name of the instance
            cancel_event:  Optional[threading.Event]
                Event observed by every bounded wait in this reconcile

        Returns:
            result:  ReconciliationResult
                The requeue request for this instance
        """
        kind = ResourceKind.NODE_FEATURE_DISCOVERY
        try:
            manifest = self.client.get(kind, name, namespace)
        except ObjectNotFoundError:
            log.debug("Instance %s/%s is gone. Nothing to do", namespace, name)
            return ReconciliationResult(requeue=False)
        except NfdOperatorError as err:
            raise ResourceOperationError(
                "get", kind.kind, namespace, name, err
            ) from err

        session = Session(
            reconciliation_id=str(uuid.uuid4()),
            cr_manifest=manifest,
            client=self.client,
            cancel_event=cancel_event,
        )
        log.info(
            "Reconciling %s/%s",
            namespace,
            name,
            extra={"resource": manifest, "reconciliationId": session.id},
        )

        if session.deleting:
            return self.finalize(session)

        if not has_finalizer(session.finalizers, constants.FINALIZER):
            self.add_finalizer(session)
            return ReconciliationResult.after(datetime.timedelta(0))

        self.run_handlers(session)

        if self._available(session):
            log.debug("Instance %s/%s converged", namespace, name)
            return ReconciliationResult(requeue=False)
        return ReconciliationResult.after(
            datetime.timedelta(seconds=float(config.requeue_after_seconds))
        )

    ## Steps ###################################################################

    @staticmethod
    def finalize(session: Session) -> ReconciliationResult:
        """Hand a deleting instance to the finalization sequence"""
        sequencer = FinalizationSequencer(session)
        try:
            return ReconciliationResult.after(sequencer.finalize())
        except Exception as err:
            _report_degraded(session, "FinalizationFailed", err)
            raise

    @staticmethod
    def add_finalizer(session: Session):
        """Append the finalizer and persist it"""
        log.debug("Adding finalizer to %s/%s", session.namespace, session.name)
        manifest = session.manifest_copy()
        manifest["metadata"]["finalizers"] = add_finalizer(
            session.finalizers, constants.FINALIZER
        )
        kind = ResourceKind.NODE_FEATURE_DISCOVERY
        try:
            updated = session.client.update(manifest)
        except NfdOperatorError as err:
            raise ResourceOperationError(
                "add finalizer to", kind.kind, session.namespace, session.name, err
            ) from err
        session.update_cr_manifest(updated)
        ConditionAggregator(session).report(
            Classification.PROGRESSING,
            DEPLOYMENT_STARTING_REASON,
            "Deployment is starting",
        )

    def run_handlers(self, session: Session):
        """Run the handler chain in order. The first failure aborts the chain,
        is reported as Degraded, and is raised to the caller.
        """
        convergence = ResourceConvergence(session)
        image = session.image
        for handler in self.handlers:
            if not handler.enabled(session):
                log.debug2("Skipping disabled handler %s", handler.name)
                continue
            if session.stopped():
                raise _cancelled(session)
            log.debug2("Running handler %s", handler.name)
            try:
                handler.run(session, convergence, image)
            except Exception as err:
                _report_degraded(
                    session, f"{handler.name.capitalize()}HandlerFailed", err
                )
                raise

    @staticmethod
    def _available(session: Session) -> bool:
        return any(
            condition.get("type") == constants.CONDITION_AVAILABLE
            and condition.get("status") == "True"
            for condition in session.conditions
        )


## Implementation Details ######################################################


def _report_degraded(session: Session, reason: str, err: Exception):
    """Surface a failure through the Degraded condition. A failure to write
    the status is logged and the original error is the one raised.
    """
    try:
        ConditionAggregator(session).report(Classification.DEGRADED, reason, str(err))
    except NfdOperatorError as status_err:
        log.warning("Unable to report degraded status: %s", status_err)


def _cancelled(session: Session) -> NfdOperatorError:
    return NfdOperatorError(
        f"Reconcile of {session.namespace}/{session.name} cancelled",
        is_fatal_error=False,
    )
