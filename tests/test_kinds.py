"""
Tests for the typed kind registry
"""

# Third Party
import pytest

# Local
from nfd_operator.exceptions import ConfigError
from nfd_operator.kinds import ResourceKind


def test_from_manifest_known_kinds():
    """Make sure every registry entry round trips through its own manifest"""
    for kind in ResourceKind:
        assert ResourceKind.from_manifest(kind.empty_manifest("x", "ns")) is kind


def test_from_manifest_requires_exact_api_version():
    """Make sure a kind with an unexpected apiVersion is rejected"""
    with pytest.raises(ConfigError):
        ResourceKind.from_manifest({"apiVersion": "apps/v1beta1", "kind": "DaemonSet"})


def test_from_manifest_unknown_kind():
    """Make sure an unsupported kind is a ConfigError"""
    with pytest.raises(ConfigError):
        ResourceKind.from_manifest({"apiVersion": "v1", "kind": "Secret"})


def test_scope():
    """Make sure the cluster-scoped kinds are the ones that are shared"""
    cluster_scoped = {kind for kind in ResourceKind if not kind.namespaced}
    assert cluster_scoped == {
        ResourceKind.CLUSTER_ROLE,
        ResourceKind.CLUSTER_ROLE_BINDING,
        ResourceKind.SECURITY_CONTEXT_CONSTRAINTS,
    }


def test_empty_manifest_cluster_scoped_has_no_namespace():
    """Make sure the skeleton of a cluster-scoped object has no namespace"""
    manifest = ResourceKind.CLUSTER_ROLE.empty_manifest("nfd-master", "nfd")
    assert manifest == {
        "apiVersion": "rbac.authorization.k8s.io/v1",
        "kind": "ClusterRole",
        "metadata": {"name": "nfd-master"},
    }
    assert str(ResourceKind.CLUSTER_ROLE) == "ClusterRole"
