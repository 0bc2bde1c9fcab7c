"""
The DryRunObjectClient implements the ObjectClientBase interface against an
in-memory representation of the cluster
"""

# Standard
from datetime import datetime, timezone
from threading import RLock
from typing import List, Optional
import copy
import itertools
import uuid

# First Party
import alog

# Local
from ..exceptions import ClusterError, ObjectConflictError, ObjectNotFoundError
from ..kinds import ResourceKind
from .base import ObjectClientBase

log = alog.use_channel("DRY-RUN")

# Key used to store cluster-scoped objects
_CLUSTER_SCOPE = ""


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class DryRunObjectClient(ObjectClientBase):
    """
    Object client which doesn't touch a real cluster! Content is stored as
    _cluster_content[namespace][kind][name].
    """

    def __init__(
        self,
        resources: Optional[List[dict]] = None,
        simulate_workload_readiness: bool = False,
    ):
        """Construct with an optional list of objects that should already
        exist in the cluster

        Args:
            resources:  Optional[List[dict]]
                Objects to preload. Their status sections are kept as given.
            simulate_workload_readiness:  bool
                If true, DaemonSets and Deployments report a completed rollout
                as soon as they are written, standing in for the workload
                controllers of a real cluster
        """
        self.simulate_workload_readiness = simulate_workload_readiness
        self._cluster_content = {}
        self._lock = RLock()
        self._resource_version = itertools.count(1)
        for resource in resources or []:
            self._store_new(copy.deepcopy(resource))

    ## Interface ###############################################################

    def get(self, kind, name, namespace=None):
        log.debug2("DRY RUN get [%s/%s] in [%s]", kind, name, namespace)
        with self._lock:
            return copy.deepcopy(self._lookup(kind, name, namespace))

    def create(self, manifest):
        kind = ResourceKind.from_manifest(manifest)
        name, namespace = self._identity(kind, manifest)
        log.debug("DRY RUN create [%s/%s] in [%s]", kind, name, namespace)
        log.debug4(manifest)
        with self._lock:
            if name in self._kind_entries(kind, namespace):
                raise ClusterError(f"{kind} {name} already exists")
            manifest = copy.deepcopy(manifest)
            manifest.pop("status", None)
            stored = self._store_new(manifest)
            return copy.deepcopy(self._simulate_readiness(kind, stored))

    def update(self, manifest):
        kind = ResourceKind.from_manifest(manifest)
        name, namespace = self._identity(kind, manifest)
        log.debug("DRY RUN update [%s/%s] in [%s]", kind, name, namespace)
        log.debug4(manifest)
        with self._lock:
            current = self._lookup(kind, name, namespace)
            self._check_resource_version(current, manifest)
            updated = copy.deepcopy(manifest)
            updated["metadata"]["uid"] = current["metadata"]["uid"]
            updated["metadata"]["creationTimestamp"] = current["metadata"][
                "creationTimestamp"
            ]
            if "deletionTimestamp" in current["metadata"]:
                updated["metadata"]["deletionTimestamp"] = current["metadata"][
                    "deletionTimestamp"
                ]
            if "status" in current:
                updated["status"] = current["status"]
            else:
                updated.pop("status", None)
            updated["metadata"]["resourceVersion"] = self._next_resource_version()
            self._simulate_readiness(kind, updated)
            self._kind_entries(kind, namespace)[name] = updated

            # Objects being deleted are removed once their finalizers clear
            if updated["metadata"].get("deletionTimestamp") and not updated[
                "metadata"
            ].get("finalizers"):
                self._remove(kind, name, namespace)
            return copy.deepcopy(updated)

    def update_status(self, manifest):
        kind = ResourceKind.from_manifest(manifest)
        name, namespace = self._identity(kind, manifest)
        log.debug("DRY RUN update_status [%s/%s] in [%s]", kind, name, namespace)
        with self._lock:
            current = self._lookup(kind, name, namespace)
            self._check_resource_version(current, manifest)
            current["status"] = copy.deepcopy(manifest.get("status", {}))
            current["metadata"]["resourceVersion"] = self._next_resource_version()
            return copy.deepcopy(current)

    def delete(self, kind, name, namespace=None, propagation_policy=None):
        log.debug(
            "DRY RUN delete [%s/%s] in [%s] (propagation: %s)",
            kind,
            name,
            namespace,
            propagation_policy,
        )
        with self._lock:
            current = self._lookup(kind, name, namespace)
            if current["metadata"].get("finalizers"):
                current["metadata"].setdefault("deletionTimestamp", _now())
                current["metadata"]["resourceVersion"] = self._next_resource_version()
            else:
                self._remove(kind, name, namespace)

    def list(self, kind, namespace=None):
        log.debug2("DRY RUN list [%s] in [%s]", kind, namespace)
        with self._lock:
            if namespace is not None or not kind.namespaced:
                return [
                    copy.deepcopy(obj)
                    for obj in self._kind_entries(kind, namespace).values()
                ]
            return [
                copy.deepcopy(obj)
                for kinds in self._cluster_content.values()
                for obj in kinds.get(kind, {}).values()
            ]

    ## Implementation Details ##################################################

    @staticmethod
    def _identity(kind: ResourceKind, manifest: dict):
        metadata = manifest.get("metadata", {})
        name = metadata.get("name")
        if not name:
            raise ClusterError(f"{kind} manifest has no metadata.name")
        return name, metadata.get("namespace")

    def _kind_entries(self, kind: ResourceKind, namespace: Optional[str]) -> dict:
        scope = namespace if kind.namespaced else _CLUSTER_SCOPE
        return self._cluster_content.setdefault(scope or _CLUSTER_SCOPE, {}).setdefault(
            kind, {}
        )

    def _lookup(self, kind: ResourceKind, name: str, namespace: Optional[str]) -> dict:
        current = self._kind_entries(kind, namespace).get(name)
        if current is None:
            raise ObjectNotFoundError(f"{kind} {name} not found in {namespace}")
        return current

    def _next_resource_version(self) -> str:
        return str(next(self._resource_version))

    @staticmethod
    def _check_resource_version(current: dict, manifest: dict):
        requested = manifest.get("metadata", {}).get("resourceVersion")
        if requested and requested != current["metadata"]["resourceVersion"]:
            raise ObjectConflictError(
                f"resourceVersion {requested} is out of date "
                f"(current: {current['metadata']['resourceVersion']})"
            )

    def _store_new(self, manifest: dict) -> dict:
        kind = ResourceKind.from_manifest(manifest)
        name, namespace = self._identity(kind, manifest)
        metadata = manifest["metadata"]
        if not kind.namespaced:
            metadata.pop("namespace", None)
        metadata.setdefault("uid", str(uuid.uuid4()))
        metadata.setdefault("creationTimestamp", _now())
        metadata["resourceVersion"] = self._next_resource_version()
        self._kind_entries(kind, namespace)[name] = manifest
        return manifest

    def _remove(self, kind: ResourceKind, name: str, namespace: Optional[str]):
        removed = self._kind_entries(kind, namespace).pop(name)
        self._collect_garbage(removed["metadata"]["uid"])

    def _collect_garbage(self, owner_uid: str):
        """Remove every object holding an owner reference to the given uid"""
        orphans = [
            (kind, name, obj["metadata"].get("namespace"))
            for kinds in self._cluster_content.values()
            for kind, entries in kinds.items()
            for name, obj in entries.items()
            if any(
                ref.get("uid") == owner_uid
                for ref in obj["metadata"].get("ownerReferences", [])
            )
        ]
        for kind, name, namespace in orphans:
            log.debug2("DRY RUN garbage collecting [%s/%s]", kind, name)
            if name in self._kind_entries(kind, namespace):
                self._remove(kind, name, namespace)

    def _simulate_readiness(self, kind: ResourceKind, obj: dict) -> dict:
        """Fill in the status a workload controller would report once the
        rollout of the object's current spec completes
        """
        if not self.simulate_workload_readiness:
            return obj
        generation = obj["metadata"].get("generation", 1)
        if kind == ResourceKind.DAEMON_SET:
            obj["status"] = {
                "observedGeneration": generation,
                "desiredNumberScheduled": 1,
                "currentNumberScheduled": 1,
                "updatedNumberScheduled": 1,
                "numberReady": 1,
                "numberAvailable": 1,
                "numberMisscheduled": 0,
            }
        elif kind == ResourceKind.DEPLOYMENT:
            replicas = obj.get("spec", {}).get("replicas", 1)
            obj["status"] = {
                "observedGeneration": generation,
                "replicas": replicas,
                "updatedReplicas": replicas,
                "readyReplicas": replicas,
                "availableReplicas": replicas,
            }
        return obj
