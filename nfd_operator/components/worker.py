"""
Desired state for the nfd-worker daemon and its supporting objects
"""

# Local
from .. import constants
from ..convergence import ManagedResource
from ..kinds import ResourceKind
from .common import (
    NFD_API_GROUP,
    host_path_volume,
    operand_container,
    restricted_security_context,
    role,
    role_binding,
    service_account,
    set_labels,
    set_pod_template,
    volume_mount,
)

NAME = constants.WORKER_NAME

CONFIG_DIR = "/etc/kubernetes/node-feature-discovery"

ROLE_RULES = [
    {
        "apiGroups": [NFD_API_GROUP],
        "resources": ["nodefeatures"],
        "verbs": ["create", "get", "update", "delete"],
    },
    {"apiGroups": [""], "resources": ["pods"], "verbs": ["get"]},
]


def set_worker_config_map_as_desired(session, obj, _image):
    set_labels(obj, NAME)
    obj["data"] = {
        constants.WORKER_CONFIG_KEY: session.worker_config,
        constants.CUSTOM_CONFIG_KEY: session.custom_config,
    }


def set_worker_daemon_set_as_desired(session, obj, image):
    container = operand_container(
        session,
        image,
        NAME,
        args=[f"--config={CONFIG_DIR}/nfd-worker.conf"],
    )
    container["securityContext"] = restricted_security_context()
    container["volumeMounts"] = [
        volume_mount("host-boot", "/host-boot"),
        volume_mount("host-os-release", "/host-etc/os-release"),
        volume_mount("host-sys", "/host-sys"),
        volume_mount("host-usr-lib", "/host-usr/lib"),
        volume_mount("host-lib", "/host-lib"),
        volume_mount("source-d", f"{CONFIG_DIR}/source.d/"),
        volume_mount("features-d", f"{CONFIG_DIR}/features.d/"),
        volume_mount("nfd-worker-config", CONFIG_DIR),
    ]
    set_pod_template(
        obj,
        NAME,
        {
            "serviceAccountName": NAME,
            "dnsPolicy": "ClusterFirstWithHostNet",
            "tolerations": [{"operator": "Exists", "effect": "NoSchedule"}],
            "containers": [container],
            "volumes": [
                host_path_volume("host-boot", "/boot"),
                host_path_volume("host-os-release", "/etc/os-release"),
                host_path_volume("host-sys", "/sys"),
                host_path_volume("host-usr-lib", "/usr/lib"),
                host_path_volume("host-lib", "/lib"),
                host_path_volume("source-d", f"{CONFIG_DIR}/source.d/"),
                host_path_volume("features-d", f"{CONFIG_DIR}/features.d/"),
                {
                    "name": "nfd-worker-config",
                    "configMap": {
                        "name": NAME,
                        "items": [
                            {
                                "key": constants.WORKER_CONFIG_KEY,
                                "path": "nfd-worker.conf",
                            }
                        ],
                    },
                },
            ],
        },
    )


SERVICE_ACCOUNT = service_account(NAME)
ROLE = role(NAME, ROLE_RULES)
ROLE_BINDING = role_binding(NAME)
CONFIG_MAP = ManagedResource(
    ResourceKind.CONFIG_MAP, NAME, set_worker_config_map_as_desired
)
DAEMON_SET = ManagedResource(
    ResourceKind.DAEMON_SET, NAME, set_worker_daemon_set_as_desired
)

# The config map is applied before the daemon set that mounts it
RESOURCES = [SERVICE_ACCOUNT, ROLE, ROLE_BINDING, CONFIG_MAP, DAEMON_SET]
