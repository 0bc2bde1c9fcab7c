"""
Typed registry of every object kind the operator reads or manages
"""

# Standard
from enum import Enum
from typing import Dict, Tuple

# Local
from .exceptions import ConfigError


class ResourceKind(Enum):
    """Each member is (api_version, kind, namespaced)"""

    NODE_FEATURE_DISCOVERY = ("nfd.openshift.io/v1", "NodeFeatureDiscovery", True)
    SERVICE_ACCOUNT = ("v1", "ServiceAccount", True)
    CONFIG_MAP = ("v1", "ConfigMap", True)
    SERVICE = ("v1", "Service", True)
    ROLE = ("rbac.authorization.k8s.io/v1", "Role", True)
    ROLE_BINDING = ("rbac.authorization.k8s.io/v1", "RoleBinding", True)
    CLUSTER_ROLE = ("rbac.authorization.k8s.io/v1", "ClusterRole", False)
    CLUSTER_ROLE_BINDING = (
        "rbac.authorization.k8s.io/v1",
        "ClusterRoleBinding",
        False,
    )
    DAEMON_SET = ("apps/v1", "DaemonSet", True)
    DEPLOYMENT = ("apps/v1", "Deployment", True)
    JOB = ("batch/v1", "Job", True)
    SECURITY_CONTEXT_CONSTRAINTS = (
        "security.openshift.io/v1",
        "SecurityContextConstraints",
        False,
    )

    def __init__(self, api_version: str, kind: str, namespaced: bool):
        self.api_version = api_version
        self.kind = kind
        self.namespaced = namespaced

    def __str__(self) -> str:
        return self.kind

    def empty_manifest(self, name: str, namespace: str = None) -> dict:
        """Build the minimal manifest skeleton for an object of this kind"""
        metadata = {"name": name}
        if self.namespaced and namespace:
            metadata["namespace"] = namespace
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": metadata,
        }

    @classmethod
    def from_manifest(cls, manifest: dict) -> "ResourceKind":
        """Resolve the kind of a decoded manifest by its exact apiVersion and
        kind pair

        Args:
            manifest:  dict
                The decoded manifest

        Returns:
            resource_kind:  ResourceKind
                The registry entry for the manifest

        Raises:
            ConfigError: The apiVersion/kind pair is not supported
        """
        key = (manifest.get("apiVersion"), manifest.get("kind"))
        resource_kind = _KIND_LOOKUP.get(key)
        if resource_kind is None:
            raise ConfigError(f"Unsupported manifest kind {key[1]} ({key[0]})")
        return resource_kind


_KIND_LOOKUP: Dict[Tuple[str, str], ResourceKind] = {
    (member.api_version, member.kind): member for member in ResourceKind
}
