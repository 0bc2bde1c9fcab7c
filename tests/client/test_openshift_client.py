"""
Tests for the OpenshiftObjectClient using a mocked DynamicClient
"""

# Standard
from unittest import mock

# Third Party
from kubernetes.client.exceptions import ApiException
from openshift.dynamic.exceptions import (
    ConflictError,
    NotFoundError,
    ResourceNotFoundError,
)
import kubernetes
import pytest

# Local
from nfd_operator.client import OpenshiftObjectClient
from nfd_operator.exceptions import (
    ClusterError,
    ObjectConflictError,
    ObjectNotFoundError,
)
from nfd_operator.kinds import ResourceKind
from nfd_operator.test_helpers.helpers import TEST_NAMESPACE

## Helpers #####################################################################


def setup_testable_client():
    """Set up a client whose DynamicClient hands back a single mock handle"""
    dynamic_client = mock.MagicMock()
    handle = mock.MagicMock()
    dynamic_client.resources.get.return_value = handle
    return OpenshiftObjectClient(dynamic_client=dynamic_client), dynamic_client, handle


def api_error(error_type, status):
    return error_type(ApiException(status=status, reason="test"))


def make_service_account():
    return ResourceKind.SERVICE_ACCOUNT.empty_manifest("sa", TEST_NAMESPACE)


## Operations ##################################################################


def test_get():
    """Make sure get passes the identity through and returns a dict"""
    client, dynamic_client, handle = setup_testable_client()
    handle.get.return_value.to_dict.return_value = {"kind": "ServiceAccount"}
    assert client.get(ResourceKind.SERVICE_ACCOUNT, "sa", TEST_NAMESPACE) == {
        "kind": "ServiceAccount"
    }
    handle.get.assert_called_once_with(name="sa", namespace=TEST_NAMESPACE)
    dynamic_client.resources.get.assert_called_once_with(
        kind="ServiceAccount", api_version="v1"
    )


def test_get_cluster_scoped_drops_namespace():
    """Make sure cluster-scoped kinds are fetched without a namespace"""
    client, _, handle = setup_testable_client()
    client.get(ResourceKind.CLUSTER_ROLE, "nfd-master", TEST_NAMESPACE)
    handle.get.assert_called_once_with(name="nfd-master", namespace=None)


def test_resource_handle_cached():
    """Make sure discovery only happens once per kind"""
    client, dynamic_client, _ = setup_testable_client()
    client.get(ResourceKind.SERVICE_ACCOUNT, "a", TEST_NAMESPACE)
    client.get(ResourceKind.SERVICE_ACCOUNT, "b", TEST_NAMESPACE)
    assert dynamic_client.resources.get.call_count == 1


def test_discovery_failure():
    """Make sure a kind the cluster does not serve is a ClusterError"""
    client, dynamic_client, _ = setup_testable_client()
    dynamic_client.resources.get.side_effect = ResourceNotFoundError("nope")
    with pytest.raises(ClusterError):
        client.get(ResourceKind.SECURITY_CONTEXT_CONSTRAINTS, "nfd-worker")


def test_get_not_found():
    """Make sure a 404 is an ObjectNotFoundError"""
    client, _, handle = setup_testable_client()
    handle.get.side_effect = api_error(NotFoundError, 404)
    with pytest.raises(ObjectNotFoundError):
        client.get(ResourceKind.SERVICE_ACCOUNT, "sa", TEST_NAMESPACE)


def test_create():
    """Make sure create sends the manifest to the manifest's namespace"""
    client, _, handle = setup_testable_client()
    manifest = make_service_account()
    client.create(manifest)
    handle.create.assert_called_once_with(body=manifest, namespace=TEST_NAMESPACE)


def test_create_api_error():
    """Make sure an unexpected api error is a ClusterError"""
    client, _, handle = setup_testable_client()
    handle.create.side_effect = ApiException(status=500, reason="boom")
    with pytest.raises(ClusterError):
        client.create(make_service_account())


def test_update_conflict():
    """Make sure a 409 on update is an ObjectConflictError"""
    client, _, handle = setup_testable_client()
    handle.replace.side_effect = api_error(ConflictError, 409)
    with pytest.raises(ObjectConflictError):
        client.update(make_service_account())


def test_update_status():
    """Make sure the status subresource is used for status writes"""
    client, _, handle = setup_testable_client()
    manifest = make_service_account()
    client.update_status(manifest)
    handle.status.replace.assert_called_once_with(body=manifest)
    handle.replace.assert_not_called()


def test_delete_with_propagation_policy():
    """Make sure the propagation policy is sent as DeleteOptions"""
    client, _, handle = setup_testable_client()
    client.delete(ResourceKind.JOB, "nfd-prune", TEST_NAMESPACE, "Background")
    handle.delete.assert_called_once_with(
        name="nfd-prune",
        namespace=TEST_NAMESPACE,
        body={
            "apiVersion": "v1",
            "kind": "DeleteOptions",
            "propagationPolicy": "Background",
        },
    )


def test_delete_not_found():
    """Make sure deleting a missing object is an ObjectNotFoundError"""
    client, _, handle = setup_testable_client()
    handle.delete.side_effect = api_error(NotFoundError, 404)
    with pytest.raises(ObjectNotFoundError):
        client.delete(ResourceKind.SERVICE_ACCOUNT, "sa", TEST_NAMESPACE)


def test_list():
    """Make sure list returns the items of the list response"""
    client, _, handle = setup_testable_client()
    handle.get.return_value.to_dict.return_value = {"items": [{"a": 1}]}
    assert client.list(ResourceKind.NODE_FEATURE_DISCOVERY) == [{"a": 1}]
    handle.get.assert_called_once_with(namespace=None)


## Client setup ################################################################


def test_setup_client_falls_back_to_kubeconfig():
    """Make sure the kubeconfig is used when not running in a cluster"""
    with mock.patch(
        "kubernetes.config.load_incluster_config",
        side_effect=kubernetes.config.ConfigException,
    ), mock.patch(
        "kubernetes.config.new_client_from_config"
    ) as new_client_mock, mock.patch(
        "nfd_operator.client.openshift_client.DynamicClient"
    ) as dynamic_client_mock:
        client = OpenshiftObjectClient()
        assert client.client is dynamic_client_mock.return_value
        dynamic_client_mock.assert_called_once_with(new_client_mock.return_value)
