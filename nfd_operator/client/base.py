"""
This defines the base class for all object client types.
"""

# Standard
from typing import List, Optional
import abc

# Local
from ..kinds import ResourceKind


class ObjectClientBase(abc.ABC):
    """
    Base class for object clients which carry out the actual CRUD operations
    against the cluster. All operations work on plain manifest dicts.

    Every implementation raises ObjectNotFoundError when the named object does
    not exist, ObjectConflictError when an update carries a stale
    resourceVersion, and ClusterError for any other failure.
    """

    @abc.abstractmethod
    def get(
        self,
        kind: ResourceKind,
        name: str,
        namespace: Optional[str] = None,
    ) -> dict:
        """Fetch the current state of a single object

        Args:
            kind:  ResourceKind
                The kind of the object to fetch
            name:  str
                The name of the object to fetch
            namespace:  Optional[str]
                The namespace to search (ignored for cluster-scoped kinds)

        Returns:
            current_state:  dict
                The full manifest of the object in the cluster
        """

    @abc.abstractmethod
    def create(self, manifest: dict) -> dict:
        """Create a new object

        Args:
            manifest:  dict
                The object to create

        Returns:
            created:  dict
                The object as stored by the server
        """

    @abc.abstractmethod
    def update(self, manifest: dict) -> dict:
        """Replace an existing object. The status section is not modified.

        Args:
            manifest:  dict
                The full object to persist. If metadata.resourceVersion is set,
                the update is conditional on it.

        Returns:
            updated:  dict
                The object as stored by the server
        """

    @abc.abstractmethod
    def update_status(self, manifest: dict) -> dict:
        """Replace only the status section of an existing object

        Args:
            manifest:  dict
                The object carrying the desired status

        Returns:
            updated:  dict
                The object as stored by the server
        """

    @abc.abstractmethod
    def delete(
        self,
        kind: ResourceKind,
        name: str,
        namespace: Optional[str] = None,
        propagation_policy: Optional[str] = None,
    ):
        """Delete a single object

        Args:
            kind:  ResourceKind
                The kind of the object to delete
            name:  str
                The name of the object to delete
            namespace:  Optional[str]
                The namespace of the object (ignored for cluster-scoped kinds)
            propagation_policy:  Optional[str]
                Optional deletion propagation policy (ie Background)
        """

    @abc.abstractmethod
    def list(
        self,
        kind: ResourceKind,
        namespace: Optional[str] = None,
    ) -> List[dict]:
        """List all objects of a kind

        Args:
            kind:  ResourceKind
                The kind to list
            namespace:  Optional[str]
                Restrict to a namespace. None lists across all namespaces.

        Returns:
            objects:  List[dict]
                The manifests of every matching object
        """
