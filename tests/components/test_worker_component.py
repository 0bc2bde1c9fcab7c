"""
Tests for the nfd-worker desired state
"""

# Local
from nfd_operator import constants
from nfd_operator.components import worker
from nfd_operator.kinds import ResourceKind
from nfd_operator.test_helpers.helpers import TEST_IMAGE, TEST_NAMESPACE, setup_session


def render(resource, **session_kwargs):
    session = setup_session(**session_kwargs)
    obj = resource.kind.empty_manifest(resource.name, TEST_NAMESPACE)
    resource.set_desired(session, obj, TEST_IMAGE)
    return obj


def test_resources_order():
    """Make sure the config map is applied before the daemon set"""
    kinds = [resource.kind for resource in worker.RESOURCES]
    assert kinds.index(ResourceKind.CONFIG_MAP) < kinds.index(ResourceKind.DAEMON_SET)
    assert all(resource.name == constants.WORKER_NAME for resource in worker.RESOURCES)


def test_config_map_data():
    """Make sure the config blobs are copied verbatim"""
    obj = render(
        worker.CONFIG_MAP,
        spec={
            "workerConfig": {"configData": "sources: {}"},
            "customConfig": {"configData": "x: y"},
        },
    )
    assert obj["data"] == {
        constants.WORKER_CONFIG_KEY: "sources: {}",
        constants.CUSTOM_CONFIG_KEY: "x: y",
    }


def test_daemon_set():
    """Make sure the daemon set runs the operand image with the worker config
    mounted
    """
    obj = render(worker.DAEMON_SET, spec={"operand": {"imagePullPolicy": "Always"}})
    template = obj["spec"]["template"]
    assert obj["spec"]["selector"] == {"matchLabels": {"app": constants.WORKER_NAME}}
    assert template["metadata"]["labels"] == {"app": constants.WORKER_NAME}
    pod_spec = template["spec"]
    assert pod_spec["serviceAccountName"] == constants.WORKER_NAME
    container = pod_spec["containers"][0]
    assert container["image"] == TEST_IMAGE
    assert container["imagePullPolicy"] == "Always"
    assert container["command"] == [constants.WORKER_NAME]
    config_volume = [vol for vol in pod_spec["volumes"] if "configMap" in vol][0]
    assert config_volume["configMap"]["name"] == constants.WORKER_NAME


def test_role_rules():
    """Make sure the worker role grants access to its node features"""
    obj = render(worker.ROLE)
    resources = {res for rule in obj["rules"] for res in rule["resources"]}
    assert resources == {"nodefeatures", "pods"}


def test_role_binding_subject():
    """Make sure the binding points at the worker service account"""
    obj = render(worker.ROLE_BINDING)
    assert obj["roleRef"]["kind"] == "Role"
    assert obj["subjects"] == [
        {
            "kind": "ServiceAccount",
            "name": constants.WORKER_NAME,
            "namespace": TEST_NAMESPACE,
        }
    ]
