"""
Tests for the ResourceConvergence primitives
"""

# Standard
from unittest import mock
import threading

# Third Party
import pytest

# Local
from nfd_operator.components import worker
from nfd_operator.convergence import ManagedResource, ResourceConvergence
from nfd_operator.exceptions import (
    ClusterError,
    DeleteTimeoutError,
    ObjectNotFoundError,
    ResourceOperationError,
)
from nfd_operator.kinds import ResourceKind
from nfd_operator.test_helpers.helpers import (
    TEST_IMAGE,
    TEST_INSTANCE_UID,
    TEST_NAMESPACE,
    FailOnce,
    MockObjectClient,
    get_obj,
    library_config,
    setup_instance,
    setup_session,
)

## Helpers #####################################################################


def set_data(data):
    def set_config_map_as_desired(_session, obj, image):
        obj["data"] = dict(data, image=image)

    return set_config_map_as_desired


def config_map(name="cm", **data):
    return ManagedResource(ResourceKind.CONFIG_MAP, name, set_data(data))


def setup_convergence(**kwargs):
    session = setup_session(**kwargs)
    return ResourceConvergence(session), session.client


## apply #######################################################################


def test_apply_creates_with_owner_reference():
    """Make sure a missing object is created, populated and owned"""
    convergence, client = setup_convergence()
    assert convergence.apply(config_map(a="1"))
    created = get_obj(client, ResourceKind.CONFIG_MAP, "cm", TEST_NAMESPACE)
    assert created["data"] == {"a": "1", "image": TEST_IMAGE}
    assert created["metadata"]["ownerReferences"][0]["uid"] == TEST_INSTANCE_UID
    client.create.assert_called_once()


def test_apply_unchanged_is_noop():
    """Make sure a second apply with the same desired state writes nothing"""
    convergence, client = setup_convergence()
    convergence.apply(config_map(a="1"))
    assert not convergence.apply(config_map(a="1"))
    client.update.assert_not_called()


def test_apply_updates_on_change():
    """Make sure a changed desired state is written with an update"""
    convergence, client = setup_convergence()
    convergence.apply(config_map(a="1"))
    assert convergence.apply(config_map(a="2"))
    client.update.assert_called_once()
    updated = get_obj(client, ResourceKind.CONFIG_MAP, "cm", TEST_NAMESPACE)
    assert updated["data"]["a"] == "2"


def test_apply_keeps_foreign_fields():
    """Make sure fields the hook does not own survive an update"""
    convergence, client = setup_convergence()
    convergence.apply(config_map(a="1"))
    live = get_obj(client, ResourceKind.CONFIG_MAP, "cm", TEST_NAMESPACE)
    live["metadata"]["labels"] = {"someone": "else"}
    client.update(live)
    convergence.apply(config_map(a="2"))
    updated = get_obj(client, ResourceKind.CONFIG_MAP, "cm", TEST_NAMESPACE)
    assert updated["metadata"]["labels"] == {"someone": "else"}


def test_apply_cluster_scoped_has_no_owner():
    """Make sure cluster-scoped objects are created without an owner"""
    convergence, client = setup_convergence()

    def set_rules(_session, obj, _image):
        obj["rules"] = []

    convergence.apply(ManagedResource(ResourceKind.CLUSTER_ROLE, "cr", set_rules))
    created = get_obj(client, ResourceKind.CLUSTER_ROLE, "cr")
    assert "ownerReferences" not in created["metadata"]
    assert "namespace" not in created["metadata"]


def test_apply_preserves_service_cluster_ip():
    """Make sure the server allocated cluster IP is not cleared"""
    convergence, client = setup_convergence()

    def set_service(_session, obj, _image):
        obj["spec"] = {"type": "ClusterIP", "ports": [{"port": 1}]}

    resource = ManagedResource(ResourceKind.SERVICE, "svc", set_service)
    convergence.apply(resource)
    live = get_obj(client, ResourceKind.SERVICE, "svc", TEST_NAMESPACE)
    live["spec"]["clusterIP"] = "10.0.0.1"
    client.update(live)

    assert not convergence.apply(resource)
    live = get_obj(client, ResourceKind.SERVICE, "svc", TEST_NAMESPACE)
    assert live["spec"]["clusterIP"] == "10.0.0.1"


def test_apply_keeps_server_defaulted_template_fields():
    """Make sure fields the server defaults inside a pod template do not cause
    an update on every apply
    """
    convergence, client = setup_convergence()
    convergence.apply(worker.DAEMON_SET)

    live = get_obj(client, ResourceKind.DAEMON_SET, worker.NAME, TEST_NAMESPACE)
    pod_spec = live["spec"]["template"]["spec"]
    pod_spec["schedulerName"] = "default-scheduler"
    pod_spec["securityContext"] = {}
    pod_spec["containers"][0]["terminationMessagePath"] = "/dev/termination-log"
    pod_spec["containers"][0]["env"][0]["valueFrom"]["fieldRef"]["apiVersion"] = "v1"
    pod_spec["volumes"][0]["hostPath"]["type"] = ""
    live["spec"]["revisionHistoryLimit"] = 10
    client.update(live)
    client.update.reset_mock()

    assert not convergence.apply(worker.DAEMON_SET)
    client.update.assert_not_called()


def test_apply_template_change_keeps_defaults():
    """Make sure a real template change is written without dropping the
    fields the server defaulted
    """
    convergence, client = setup_convergence()
    convergence.apply(worker.DAEMON_SET)
    live = get_obj(client, ResourceKind.DAEMON_SET, worker.NAME, TEST_NAMESPACE)
    live["spec"]["template"]["spec"]["schedulerName"] = "default-scheduler"
    live["spec"]["template"]["spec"]["containers"][0]["image"] = "old:image"
    client.update(live)
    client.update.reset_mock()

    assert convergence.apply(worker.DAEMON_SET)
    client.update.assert_called_once()
    live = get_obj(client, ResourceKind.DAEMON_SET, worker.NAME, TEST_NAMESPACE)
    pod_spec = live["spec"]["template"]["spec"]
    assert pod_spec["schedulerName"] == "default-scheduler"
    assert pod_spec["containers"][0]["image"] == TEST_IMAGE


def test_apply_owner_before_create():
    """Make sure the owner reference is on the manifest passed to create"""
    convergence, client = setup_convergence()
    convergence.apply(config_map())
    created_manifest = client.create.call_args[0][0]
    assert created_manifest["metadata"]["ownerReferences"]


def test_apply_create_failure_wrapped():
    """Make sure a failed create carries the object identity"""
    client = MockObjectClient(create_fail=True, resources=[setup_instance()])
    convergence, _ = setup_convergence(client=client)
    with pytest.raises(ResourceOperationError) as exc_info:
        convergence.apply(config_map())
    assert exc_info.value.operation == "create"
    assert exc_info.value.kind == "ConfigMap"
    assert exc_info.value.name == "cm"
    assert exc_info.value.namespace == TEST_NAMESPACE


def test_apply_populate_failure_wrapped():
    """Make sure a failing mutation hook is reported against the object"""
    convergence, client = setup_convergence()

    def set_broken(_session, _obj, _image):
        raise ValueError("bad desired state")

    with pytest.raises(ResourceOperationError) as exc_info:
        convergence.apply(ManagedResource(ResourceKind.CONFIG_MAP, "cm", set_broken))
    assert exc_info.value.operation == "populate"
    client.create.assert_not_called()


## delete ######################################################################


def test_delete_missing_is_success():
    """Make sure deleting a missing object is not an error"""
    convergence, client = setup_convergence()
    assert not convergence.delete(ResourceKind.CONFIG_MAP, "cm")
    client.delete.assert_not_called()


def test_delete_existing():
    """Make sure an existing object is deleted"""
    convergence, client = setup_convergence()
    convergence.apply(config_map())
    assert convergence.delete(ResourceKind.CONFIG_MAP, "cm")
    assert not convergence.exists(ResourceKind.CONFIG_MAP, "cm")


def test_delete_race_is_success():
    """Make sure an object removed between the get and the delete is fine"""
    convergence, client = setup_convergence()
    convergence.apply(config_map())
    client.delete.side_effect = ObjectNotFoundError("gone")
    assert not convergence.delete(ResourceKind.CONFIG_MAP, "cm")


def test_delete_with_retry_recovers():
    """Make sure a transient delete failure is retried"""
    convergence, client = setup_convergence()
    convergence.apply(config_map())
    client.delete_fail = FailOnce(ClusterError)
    client.enable_mocks()
    with library_config(delete={"retry_interval_seconds": 0.01}):
        assert convergence.delete_with_retry(ResourceKind.CONFIG_MAP, "cm")
    assert client.delete.call_count == 2


def test_delete_with_retry_times_out():
    """Make sure a persistent failure ends in a DeleteTimeoutError"""
    convergence, client = setup_convergence()
    convergence.apply(config_map())
    client.delete_fail = True
    client.enable_mocks()
    with library_config(
        delete={"retry_interval_seconds": 0.01, "timeout_seconds": 0.05}
    ):
        with pytest.raises(DeleteTimeoutError):
            convergence.delete_with_retry(ResourceKind.CONFIG_MAP, "cm")
    assert client.delete.call_count >= 2


def test_delete_with_retry_cancelled():
    """Make sure a cancelled session stops retrying immediately"""
    event = threading.Event()
    convergence, client = setup_convergence(cancel_event=event)
    convergence.apply(config_map())
    client.delete_fail = True
    client.enable_mocks()
    event.set()
    with pytest.raises(DeleteTimeoutError):
        convergence.delete_with_retry(ResourceKind.CONFIG_MAP, "cm")
    client.delete.assert_not_called()


## get_or_none #################################################################


def test_get_or_none_failure_wrapped():
    """Make sure a failed get is not mistaken for a missing object"""
    convergence, client = setup_convergence()
    client.get = mock.Mock(side_effect=ClusterError("api down"))
    with pytest.raises(ResourceOperationError):
        convergence.get_or_none(ResourceKind.CONFIG_MAP, "cm")
