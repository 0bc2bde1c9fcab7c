"""
Idempotent get-or-create-or-update and delete primitives shared by every
handler, the finalization sequence and the prune job orchestration
"""

# Standard
from dataclasses import dataclass
from typing import Callable, Optional
import copy
import time

# Third Party
from deepdiff import DeepDiff

# First Party
import alog

# Local
from . import config
from .client import set_owner_reference
from .exceptions import (
    DeleteTimeoutError,
    NfdOperatorError,
    ObjectNotFoundError,
    ResourceOperationError,
)
from .kinds import ResourceKind
from .session import Session
from .utils import nested_get, nested_set

log = alog.use_channel("CONVRG")

# Signature of the per-kind mutation hook. The hook receives the session, the
# object to mutate in place (either a fresh skeleton or the live object) and the
# operand image.
SetDesiredFn = Callable[[Session, dict, str], None]

# Fields copied from the live object onto the object being persisted, per kind.
# resourceVersion is always preserved.
_PRESERVED_FIELDS = {
    ResourceKind.SERVICE: ["spec.clusterIP", "spec.clusterIPs"],
}


@dataclass(frozen=True)
class ManagedResource:
    """A single object managed on behalf of an instance"""

    kind: ResourceKind
    name: str
    set_desired: SetDesiredFn


class ResourceConvergence:
    """ResourceConvergence converges individual objects toward the desired
    state computed by their SetDesiredFn
    """

    def __init__(self, session: Session):
        """
        Args:
            session:  Session
                The session for the current reconciliation
        """
        self.session = session

    ## Public ##################################################################

    @alog.logged_function(log.debug2)
    def apply(self, resource: ManagedResource, image: Optional[str] = None) -> bool:
        """Make sure the object exists with its desired state

        Args:
            resource:  ManagedResource
                The object to converge
            image:  Optional[str]
                The operand image (defaults to the session's image)

        Returns:
            changed:  bool
                True if a create or update was issued
        """
        image = image or self.session.image
        kind = resource.kind
        namespace = self._namespace_for(kind)
        found = self.get_or_none(kind, resource.name, namespace)

        if found is None:
            obj = kind.empty_manifest(resource.name, namespace)
            self._populate(resource, obj, image, namespace)
            self._own(obj, kind, resource.name, namespace)
            log.debug("Creating %s %s/%s", kind, namespace, resource.name)
            self._write("create", resource, namespace, obj)
            return True

        desired = copy.deepcopy(found)
        self._populate(resource, desired, image, namespace)
        self._own(desired, kind, resource.name, namespace)
        self._preserve_fields(kind, found, desired)

        diff = DeepDiff(found, desired)
        if not diff:
            log.debug3("No change for %s %s/%s", kind, namespace, resource.name)
            return False

        log.debug("Updating %s %s/%s", kind, namespace, resource.name)
        log.debug4("Diff: %s", diff)
        self._write("update", resource, namespace, desired)
        return True

    @alog.logged_function(log.debug2)
    def delete(
        self,
        kind: ResourceKind,
        name: str,
        namespace: Optional[str] = None,
        propagation_policy: Optional[str] = None,
    ) -> bool:
        """Delete an object if it exists. A missing object is success.

        Args:
            kind:  ResourceKind
                The kind to delete
            name:  str
                The name to delete
            namespace:  Optional[str]
                Defaults to the instance namespace for namespaced kinds
            propagation_policy:  Optional[str]
                Optional deletion propagation policy

        Returns:
            deleted:  bool
                True if a delete was issued
        """
        namespace = namespace or self._namespace_for(kind)
        if self.get_or_none(kind, name, namespace) is None:
            log.debug3("%s %s/%s already absent", kind, namespace, name)
            return False
        log.debug("Deleting %s %s/%s", kind, namespace, name)
        try:
            self.session.client.delete(
                kind, name, namespace, propagation_policy=propagation_policy
            )
        except ObjectNotFoundError:
            return False
        except NfdOperatorError as err:
            raise ResourceOperationError(
                "delete", kind.kind, namespace, name, err
            ) from err
        return True

    def delete_with_retry(
        self,
        kind: ResourceKind,
        name: str,
        namespace: Optional[str] = None,
        propagation_policy: Optional[str] = None,
    ) -> bool:
        """Delete with a bounded retry window. Each attempt is idempotent. The
        wait between attempts observes the session's cancel event.

        Raises:
            DeleteTimeoutError: The delete did not succeed before the timeout
                or the reconcile was cancelled
        """
        retry_interval = float(config.delete.retry_interval_seconds)
        deadline = time.monotonic() + float(config.delete.timeout_seconds)
        while True:
            if self.session.stopped():
                raise DeleteTimeoutError(f"Cancelled while deleting {kind} {name}")
            try:
                return self.delete(kind, name, namespace, propagation_policy)
            except ResourceOperationError as err:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise DeleteTimeoutError(
                        f"Timed out deleting {kind} {name}: {err}"
                    ) from err
                log.debug2("Retrying delete of %s %s: %s", kind, name, err)
                if self.session.cancel_event.wait(min(retry_interval, remaining)):
                    raise DeleteTimeoutError(
                        f"Cancelled while deleting {kind} {name}: {err}"
                    ) from err

    def exists(
        self, kind: ResourceKind, name: str, namespace: Optional[str] = None
    ) -> bool:
        """True if the object is still present, including objects that are
        terminating
        """
        return self.get_or_none(kind, name, namespace) is not None

    def get_or_none(
        self, kind: ResourceKind, name: str, namespace: Optional[str] = None
    ) -> Optional[dict]:
        """Fetch an object, returning None if it does not exist"""
        namespace = namespace or self._namespace_for(kind)
        try:
            return self.session.client.get(kind, name, namespace)
        except ObjectNotFoundError:
            return None
        except NfdOperatorError as err:
            raise ResourceOperationError(
                "get", kind.kind, namespace, name, err
            ) from err

    ## Implementation Details ##################################################

    def _namespace_for(self, kind: ResourceKind) -> Optional[str]:
        return self.session.namespace if kind.namespaced else None

    def _populate(
        self,
        resource: ManagedResource,
        obj: dict,
        image: str,
        namespace: Optional[str],
    ):
        """Run the mutation hook and pin the object identity"""
        try:
            resource.set_desired(self.session, obj, image)
        except Exception as err:  # pylint: disable=broad-except
            raise ResourceOperationError(
                "populate", resource.kind.kind, namespace, resource.name, err
            ) from err
        obj["apiVersion"] = resource.kind.api_version
        obj["kind"] = resource.kind.kind
        metadata = obj.setdefault("metadata", {})
        metadata["name"] = resource.name
        if namespace:
            metadata["namespace"] = namespace
        else:
            metadata.pop("namespace", None)

    def _own(self, obj: dict, kind: ResourceKind, name: str, namespace: Optional[str]):
        """Namespaced objects are owned by the instance. Cluster-scoped objects
        are shared and never carry an owner reference.
        """
        if not kind.namespaced:
            return
        try:
            set_owner_reference(self.session.cr_manifest, obj)
        except NfdOperatorError as err:
            raise ResourceOperationError(
                "set owner reference on", kind.kind, namespace, name, err
            ) from err

    @staticmethod
    def _preserve_fields(kind: ResourceKind, found: dict, desired: dict):
        paths = ["metadata.resourceVersion"] + _PRESERVED_FIELDS.get(kind, [])
        for path in paths:
            val = nested_get(found, path)
            if val is not None:
                nested_set(desired, path, copy.deepcopy(val))

    def _write(
        self,
        operation: str,
        resource: ManagedResource,
        namespace: Optional[str],
        obj: dict,
    ):
        try:
            return getattr(self.session.client, operation)(obj)
        except NfdOperatorError as err:
            raise ResourceOperationError(
                operation, resource.kind.kind, namespace, resource.name, err
            ) from err
