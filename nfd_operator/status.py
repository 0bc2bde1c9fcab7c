"""
This module holds the common functionality used to represent the status of
a NodeFeatureDiscovery instance and of the objects it manages.

The instance reports exactly four conditions:

* Available: True when every managed object is created and ready
* Upgradeable: Reported but never True while the operator manages the
    instance. The success state has Available as its only True condition.
* Progressing: True while an object is missing or still rolling out
* Degraded: True when an object or a reconcile step has failed

Exactly one of the four is True at any time.
"""

# Standard
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional
import copy

# Third Party
from deepdiff import DeepDiff

# First Party
import alog

# Local
from . import constants
from .convergence import ManagedResource, ResourceConvergence
from .exceptions import (
    AmbiguousConditionError,
    NfdOperatorError,
    ResourceOperationError,
)
from .kinds import ResourceKind
from .session import Session
from .utils import nested_get

log = alog.use_channel("STTUS")

## Public ######################################################################

# Reasons used for the instance level conditions
AVAILABLE_REASON = "AllComponentsAvailable"
AVAILABLE_MESSAGE = "All node feature discovery components are available"
AMBIGUOUS_REASON = "AmbiguousResourceCondition"
DEPLOYMENT_STARTING_REASON = "DeploymentStarting"
FINALIZING_REASON = "Finalizing"

# Timestamp fields ignored when comparing conditions
IGNORED_TIMESTAMP_KEYS = [constants.TIMESTAMP_KEY, "lastHeartbeatTime"]


class Classification(Enum):
    """The four-valued health classification of a single object or of the
    instance as a whole
    """

    AVAILABLE = constants.CONDITION_AVAILABLE
    UPGRADEABLE = constants.CONDITION_UPGRADEABLE
    PROGRESSING = constants.CONDITION_PROGRESSING
    DEGRADED = constants.CONDITION_DEGRADED

    @property
    def healthy(self) -> bool:
        return self in (Classification.AVAILABLE, Classification.UPGRADEABLE)


@dataclass(frozen=True)
class ResourceHealth:
    """Classification of a single managed object"""

    classification: Classification
    reason: str
    message: str


def classify_conditions(conditions: Iterable[dict]) -> Classification:
    """Map an object's own sub-conditions onto the four-valued shape.
    Conditions of unknown type are ignored.

    Args:
        conditions:  Iterable[dict]
            The conditions reported by the object

    Returns:
        classification:  Classification
            The single active classification

    Raises:
        AmbiguousConditionError: Zero or more than one classification is
            active
    """
    known = {member.value: member for member in Classification}
    active = [
        known[condition["type"]]
        for condition in conditions
        if condition.get("type") in known
        and str(condition.get("status", "")).lower() == "true"
    ]
    if len(active) != 1:
        raise AmbiguousConditionError(
            f"Expected exactly one active condition, found "
            f"{[member.value for member in active]}"
        )
    return active[0]


def classify_resource(
    kind: ResourceKind, name: str, obj: Optional[dict]
) -> ResourceHealth:
    """Classify a single object. A missing object is Progressing, never
    Degraded.

    Args:
        kind:  ResourceKind
            The kind of the object
        name:  str
            The name of the object
        obj:  Optional[dict]
            The live object or None if it does not exist

    Returns:
        health:  ResourceHealth
            The classification with a reason and message for reporting

    Raises:
        AmbiguousConditionError: The object's own conditions do not resolve to
            a single classification
    """
    if obj is None:
        return ResourceHealth(
            Classification.PROGRESSING,
            f"{kind.kind}NotCreated",
            f"{kind.kind} {name} has not been created yet",
        )

    derive = _DERIVED_CONDITIONS.get(kind)
    if derive is not None:
        conditions, message = derive(obj)
    else:
        conditions = nested_get(obj, "status.conditions")
        if not conditions:
            return ResourceHealth(
                Classification.AVAILABLE, f"{kind.kind}Available", ""
            )
        message = ""

    try:
        classification = classify_conditions(conditions)
    except AmbiguousConditionError as err:
        raise AmbiguousConditionError(f"{kind.kind} {name}: {err}") from err
    return ResourceHealth(
        classification,
        f"{kind.kind}{classification.value}",
        f"{kind.kind} {name}: {message}" if message else "",
    )


def make_conditions(
    classification: Classification,
    reason: str,
    message: str = "",
    now: Optional[datetime] = None,
) -> List[dict]:
    """Build the full four-condition list with exactly one True entry.
    Upgradeable is folded into Available.

    Args:
        classification:  Classification
            The active classification
        reason:  str
            The reason carried by every condition
        message:  str
            The message carried by the active condition

    Returns:
        conditions:  List[dict]
            One condition per type, in a fixed order
    """
    if classification == Classification.UPGRADEABLE:
        classification = Classification.AVAILABLE
    timestamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")
    return [
        {
            "type": condition_type,
            "status": "True" if condition_type == classification.value else "False",
            "reason": reason,
            "message": message if condition_type == classification.value else "",
            constants.TIMESTAMP_KEY: timestamp,
        }
        for condition_type in constants.CONDITION_TYPES
    ]


def conditions_changed(current: List[dict], new: List[dict]) -> bool:
    """Compare two condition lists to determine if there is a meaningful
    change. A meaningful change is any type, status, reason or message
    difference. Timestamps and ordering are ignored.
    """
    return bool(
        DeepDiff(
            _by_type(current),
            _by_type(new),
            exclude_obj_callback=lambda _, path: any(
                path.endswith(f"['{key}']") for key in IGNORED_TIMESTAMP_KEYS
            ),
        )
    )


def carry_transition_times(current: List[dict], new: List[dict]) -> List[dict]:
    """Keep the stored transition time of every condition whose status did
    not change
    """
    current_by_type = _by_type(current)
    merged = []
    for condition in new:
        condition = copy.deepcopy(condition)
        previous = current_by_type.get(condition["type"])
        if previous and previous.get("status") == condition.get("status"):
            previous_time = previous.get(constants.TIMESTAMP_KEY)
            if previous_time:
                condition[constants.TIMESTAMP_KEY] = previous_time
        merged.append(condition)
    return merged


class ConditionAggregator:
    """Computes the instance conditions from the health of every expected
    object and persists them only when they change
    """

    def __init__(self, session: Session):
        self.session = session
        self._convergence = ResourceConvergence(session)

    @alog.logged_function(log.debug2)
    def compute(self, expected: Iterable[ManagedResource]) -> List[dict]:
        """Compute the instance conditions. The first Degraded object wins,
        then the first Progressing object, otherwise the instance is Available.

        Args:
            expected:  Iterable[ManagedResource]
                Every object that should exist for the instance

        Returns:
            conditions:  List[dict]
                The four-condition list
        """
        first_progressing = None
        for resource in expected:
            found = self._convergence.get_or_none(resource.kind, resource.name)
            try:
                health = classify_resource(resource.kind, resource.name, found)
            except AmbiguousConditionError as err:
                log.warning("Ambiguous resource condition: %s", err)
                return make_conditions(
                    Classification.DEGRADED, AMBIGUOUS_REASON, str(err)
                )
            log.debug3(
                "%s %s classified %s",
                resource.kind,
                resource.name,
                health.classification.value,
            )
            if health.classification == Classification.DEGRADED:
                return make_conditions(
                    Classification.DEGRADED, health.reason, health.message
                )
            if (
                health.classification == Classification.PROGRESSING
                and first_progressing is None
            ):
                first_progressing = health

        if first_progressing is not None:
            return make_conditions(
                Classification.PROGRESSING,
                first_progressing.reason,
                first_progressing.message,
            )
        return make_conditions(
            Classification.AVAILABLE, AVAILABLE_REASON, AVAILABLE_MESSAGE
        )

    @alog.logged_function(log.debug2)
    def persist(self, conditions: List[dict]) -> bool:
        """Write the conditions to the instance status if they changed

        Args:
            conditions:  List[dict]
                The newly computed conditions

        Returns:
            updated:  bool
                True if a status update was issued
        """
        current = self.session.conditions
        if not conditions_changed(current, conditions):
            log.debug2("Conditions unchanged. Skipping status update")
            return False

        manifest = self.session.manifest_copy()
        status = dict(manifest.get("status") or {})
        status[constants.CONDITIONS_KEY] = carry_transition_times(current, conditions)
        manifest["status"] = status
        log.debug("Updating instance conditions")
        log.debug4(status)
        kind = ResourceKind.NODE_FEATURE_DISCOVERY
        try:
            updated = self.session.client.update_status(manifest)
        except NfdOperatorError as err:
            raise ResourceOperationError(
                "update status of",
                kind.kind,
                self.session.namespace,
                self.session.name,
                err,
            ) from err
        self.session.update_cr_manifest(updated)
        return True

    def report(
        self, classification: Classification, reason: str, message: str = ""
    ) -> bool:
        """Shortcut to build and persist conditions for a known state"""
        return self.persist(make_conditions(classification, reason, message))


## Implementation Details ######################################################


def _by_type(conditions: Optional[List[dict]]) -> dict:
    return {
        condition.get("type"): dict(condition) for condition in (conditions or [])
    }


def _workload_conditions(available: bool, progressing: bool, degraded: bool):
    return [
        {"type": constants.CONDITION_AVAILABLE, "status": str(available)},
        {"type": constants.CONDITION_PROGRESSING, "status": str(progressing)},
        {"type": constants.CONDITION_DEGRADED, "status": str(degraded)},
    ]


def _rolled_out(obj: dict) -> bool:
    """True once the workload controller has observed the latest spec"""
    observed = nested_get(obj, "status.observedGeneration")
    if observed is None:
        return False
    return observed >= nested_get(obj, "metadata.generation", 0)


def _daemon_set_conditions(obj: dict):
    status = obj.get("status") or {}
    desired = status.get("desiredNumberScheduled", 0)
    updated = status.get("updatedNumberScheduled", 0)
    available = status.get("numberAvailable", 0)
    misscheduled = status.get("numberMisscheduled", 0)
    message = f"{available} of {desired} pods available"

    degraded = misscheduled > 0
    if degraded:
        message = f"{misscheduled} pods running on nodes they should not run on"
    progressing = not degraded and (
        not _rolled_out(obj) or updated < desired or available < desired
    )
    return (
        _workload_conditions(not (degraded or progressing), progressing, degraded),
        message,
    )


def _deployment_conditions(obj: dict):
    status = obj.get("status") or {}
    replicas = nested_get(obj, "spec.replicas", 1)
    updated = status.get("updatedReplicas", 0)
    available = status.get("availableReplicas", 0)
    message = f"{available} of {replicas} replicas available"

    degraded = False
    for condition in status.get("conditions") or []:
        failed_replicas = (
            condition.get("type") == "ReplicaFailure"
            and condition.get("status") == "True"
        )
        deadline_exceeded = (
            condition.get("type") == "Progressing"
            and condition.get("status") == "False"
            and condition.get("reason") == "ProgressDeadlineExceeded"
        )
        if failed_replicas or deadline_exceeded:
            degraded = True
            message = condition.get("message") or condition.get("reason", "")
            break
    progressing = not degraded and (
        not _rolled_out(obj) or updated < replicas or available < replicas
    )
    return (
        _workload_conditions(not (degraded or progressing), progressing, degraded),
        message,
    )


def _job_conditions(obj: dict):
    failed = nested_get(obj, "status.failed", 0)
    succeeded = nested_get(obj, "status.succeeded", 0)
    degraded = failed >= 1
    available = not degraded and succeeded >= 1
    return (
        _workload_conditions(available, not (degraded or available), degraded),
        f"{succeeded} succeeded, {failed} failed",
    )


_DERIVED_CONDITIONS = {
    ResourceKind.DAEMON_SET: _daemon_set_conditions,
    ResourceKind.DEPLOYMENT: _deployment_conditions,
    ResourceKind.JOB: _job_conditions,
}
