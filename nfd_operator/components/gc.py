"""
Desired state for the nfd-gc deployment which removes stale NodeFeature
objects
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
    set_pod_template,
)

NAME = constants.GC_NAME

CLUSTER_ROLE_RULES = [
    {"apiGroups": [""], "resources": ["nodes"], "verbs": ["list", "watch"]},
    {"apiGroups": [""], "resources": ["nodes/proxy"], "verbs": ["get"]},
    {
        "apiGroups": [NFD_API_GROUP],
        "resources": ["nodefeatures"],
        "verbs": ["delete", "list"],
    },
    {
        "apiGroups": [TOPOLOGY_API_GROUP],
        "resources": ["noderesourcetopologies"],
        "verbs": ["delete", "list"],
    },
]


def set_gc_deployment_as_desired(session, obj, image):
    container = operand_container(session, image, NAME, args=["--gc-interval=1h"])
    container["securityContext"] = restricted_security_context()
    obj.setdefault("spec", {})["replicas"] = 1
    set_pod_template(
        obj,
        NAME,
        {
            "serviceAccountName": NAME,
            "dnsPolicy": "ClusterFirstWithHostNet",
            "containers": [container],
        },
    )


SERVICE_ACCOUNT = service_account(NAME)
CLUSTER_ROLE = cluster_role(NAME, CLUSTER_ROLE_RULES)
CLUSTER_ROLE_BINDING = cluster_role_binding(NAME)
DEPLOYMENT = ManagedResource(
    ResourceKind.DEPLOYMENT, NAME, set_gc_deployment_as_desired
)

RESOURCES = [SERVICE_ACCOUNT, CLUSTER_ROLE, CLUSTER_ROLE_BINDING, DEPLOYMENT]
