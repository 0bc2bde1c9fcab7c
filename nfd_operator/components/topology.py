"""
Desired state for the optional nfd-topology-updater daemon
"""

# Local
from .. import constants
from ..convergence import ManagedResource
from ..kinds import ResourceKind
from .common import (
    TOPOLOGY_API_GROUP,
    cluster_role,
    cluster_role_binding,
    host_path_volume,
    operand_container,
    service_account,
    set_pod_template,
    volume_mount,
)

NAME = constants.TOPOLOGY_NAME

KUBELET_DIR = "/host-var/lib/kubelet"

CLUSTER_ROLE_RULES = [
    {"apiGroups": [""], "resources": ["nodes"], "verbs": ["get", "list"]},
    {"apiGroups": [""], "resources": ["nodes/proxy"], "verbs": ["get"]},
    {"apiGroups": [""], "resources": ["pods"], "verbs": ["get"]},
    {
        "apiGroups": [TOPOLOGY_API_GROUP],
        "resources": ["noderesourcetopologies"],
        "verbs": ["create", "get", "update"],
    },
]


def set_topology_daemon_set_as_desired(session, obj, image):
    container = operand_container(
        session,
        image,
        NAME,
        args=[
            f"--kubelet-config-uri=file://{KUBELET_DIR}/config.yaml",
            f"--podresources-socket={KUBELET_DIR}/pod-resources/kubelet.sock",
            "--sleep-interval=3s",
        ],
    )
    container["securityContext"] = {
        "readOnlyRootFilesystem": True,
        "runAsUser": 0,
    }
    container["volumeMounts"] = [
        volume_mount("kubelet-config", f"{KUBELET_DIR}/config.yaml"),
        volume_mount(
            "kubelet-podresources-sock",
            f"{KUBELET_DIR}/pod-resources/kubelet.sock",
        ),
        volume_mount("host-sys", "/host-sys"),
    ]
    set_pod_template(
        obj,
        NAME,
        {
            "serviceAccountName": NAME,
            "dnsPolicy": "ClusterFirstWithHostNet",
            "containers": [container],
            "volumes": [
                host_path_volume("kubelet-config", "/var/lib/kubelet/config.yaml"),
                host_path_volume(
                    "kubelet-podresources-sock",
                    "/var/lib/kubelet/pod-resources/kubelet.sock",
                ),
                host_path_volume("host-sys", "/sys"),
            ],
        },
    )


SERVICE_ACCOUNT = service_account(NAME)
CLUSTER_ROLE = cluster_role(NAME, CLUSTER_ROLE_RULES)
CLUSTER_ROLE_BINDING = cluster_role_binding(NAME)
DAEMON_SET = ManagedResource(
    ResourceKind.DAEMON_SET, NAME, set_topology_daemon_set_as_desired
)

RESOURCES = [SERVICE_ACCOUNT, CLUSTER_ROLE, CLUSTER_ROLE_BINDING, DAEMON_SET]
