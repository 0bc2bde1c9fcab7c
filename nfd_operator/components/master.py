"""
Desired state for the nfd-master deployment, its service and its RBAC
"""

# Local
from .. import constants
from ..convergence import ManagedResource
from ..kinds import ResourceKind
from .common import (
    NFD_API_GROUP,
    TOPOLOGY_API_GROUP,
    cluster_role,
    cluster_role_binding,
    operand_container,
    restricted_security_context,
    service_account,
    set_labels,
    set_pod_template,
)

NAME = constants.MASTER_NAME

CLUSTER_ROLE_RULES = [
    {
        "apiGroups": [""],
        "resources": ["nodes", "nodes/status"],
        "verbs": ["get", "list", "patch", "update", "watch"],
    },
    {
        "apiGroups": [NFD_API_GROUP],
        "resources": ["nodefeatures", "nodefeaturerules", "nodefeaturegroups"],
        "verbs": ["get", "list", "watch"],
    },
    {
        "apiGroups": [NFD_API_GROUP],
        "resources": ["nodefeaturegroups/status"],
        "verbs": ["patch", "update"],
    },
    {
        "apiGroups": [TOPOLOGY_API_GROUP],
        "resources": ["noderesourcetopologies"],
        "verbs": ["create", "get", "update"],
    },
    {
        "apiGroups": ["coordination.k8s.io"],
        "resources": ["leases"],
        "verbs": ["create", "get", "update"],
    },
]

CONTROL_PLANE_TOLERATIONS = [
    {
        "key": "node-role.kubernetes.io/master",
        "operator": "Equal",
        "value": "",
        "effect": "NoSchedule",
    },
    {
        "key": "node-role.kubernetes.io/control-plane",
        "operator": "Equal",
        "value": "",
        "effect": "NoSchedule",
    },
]


def master_args(session) -> list:
    """Build the nfd-master command line. Optional flags are only passed when
    the instance sets them.
    """
    args = [f"--port={session.service_port}"]
    if session.instance_discriminator:
        args.append(f"--instance={session.instance_discriminator}")
    if session.extra_label_ns:
        args.append(f"--extra-label-ns={','.join(session.extra_label_ns)}")
    if session.resource_labels:
        args.append(f"--resource-labels={','.join(session.resource_labels)}")
    if session.label_whitelist:
        args.append(f"--label-whitelist={session.label_whitelist}")
    return args


def set_master_deployment_as_desired(session, obj, image):
    container = operand_container(session, image, NAME, master_args(session))
    container["securityContext"] = restricted_security_context()
    container["ports"] = [
        {"containerPort": session.service_port, "name": "grpc", "protocol": "TCP"}
    ]
    obj.setdefault("spec", {})["replicas"] = 1
    set_pod_template(
        obj,
        NAME,
        {
            "serviceAccountName": NAME,
            "tolerations": list(CONTROL_PLANE_TOLERATIONS),
            "affinity": {
                "nodeAffinity": {
                    "preferredDuringSchedulingIgnoredDuringExecution": [
                        {
                            "weight": 1,
                            "preference": {
                                "matchExpressions": [
                                    {
                                        "key": "node-role.kubernetes.io/control-plane",
                                        "operator": "Exists",
                                    }
                                ]
                            },
                        }
                    ]
                }
            },
            "containers": [container],
        },
    )


def set_master_service_as_desired(session, obj, _image):
    set_labels(obj, NAME)
    spec = obj.setdefault("spec", {})
    spec["type"] = "ClusterIP"
    spec["selector"] = {constants.APP_LABEL: NAME}
    spec["ports"] = [
        {
            "name": "grpc",
            "port": session.service_port,
            "protocol": "TCP",
            "targetPort": session.service_port,
        }
    ]


SERVICE_ACCOUNT = service_account(NAME)
CLUSTER_ROLE = cluster_role(NAME, CLUSTER_ROLE_RULES)
CLUSTER_ROLE_BINDING = cluster_role_binding(NAME)
DEPLOYMENT = ManagedResource(
    ResourceKind.DEPLOYMENT, NAME, set_master_deployment_as_desired
)
SERVICE = ManagedResource(ResourceKind.SERVICE, NAME, set_master_service_as_desired)

RESOURCES = [SERVICE_ACCOUNT, CLUSTER_ROLE, CLUSTER_ROLE_BINDING, DEPLOYMENT, SERVICE]
